"""Subscription tiers shown on the pricing view.

Prices and call allowances also drive MRR in the admin stats and the
simulated top-up on the dashboard.
"""

from dataclasses import dataclass

from accountable.backend.models import SubscriptionTier


@dataclass(frozen=True, slots=True)
class Tier:
    tier: SubscriptionTier
    name: str
    price_monthly: int
    calls: int
    features: tuple[str, ...] = ()


TIERS: tuple[Tier, ...] = (
    Tier(
        tier=SubscriptionTier.BASIC,
        name="Basic Accountability",
        price_monthly=20,
        calls=50,
        features=(
            "50 Human Calls per month",
            "Task Dashboard",
            "Email Reminders",
            "Basic Statistics",
        ),
    ),
    Tier(
        tier=SubscriptionTier.PRO,
        name="Pro Discipline",
        price_monthly=40,
        calls=100,
        features=(
            "100 Human Calls per month",
            "Priority Scheduling",
            "Detailed Performance Analytics",
            "Rollover unused calls",
            "Dedicated Verification Agent",
        ),
    ),
)


def tier_for(tier: SubscriptionTier | str) -> Tier:
    """Return the paid tier definition. Raises ``KeyError`` for ``NONE``."""
    wanted = SubscriptionTier(tier)
    for entry in TIERS:
        if entry.tier is wanted:
            return entry
    raise KeyError(wanted)


def monthly_price(tier: SubscriptionTier | str) -> int:
    """Price of *tier* in dollars; 0 for unpaid profiles."""
    try:
        return tier_for(tier).price_monthly
    except KeyError:
        return 0
