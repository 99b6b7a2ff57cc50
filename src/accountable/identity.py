"""Resolved actor identities.

``Identity`` is a tagged union of three frozen dataclasses. Match on the
type rather than probing attributes::

    match identity:
        case User(is_admin=True): ...
        case User(): ...
        case AdminSession(): ...
        case Anonymous(): ...
"""

from dataclasses import dataclass

from accountable.backend.models import Profile, SubscriptionTier


@dataclass(frozen=True, slots=True)
class Anonymous:
    """Nobody is signed in. Eliminates ``None`` checks."""

    is_authenticated: bool = False


@dataclass(frozen=True, slots=True)
class User:
    """A signed-in customer. ``credits`` is the remaining call balance."""

    id: str
    email: str = ""
    is_admin: bool = False
    credits: int = 0
    tier: SubscriptionTier = SubscriptionTier.NONE
    full_name: str | None = None
    is_authenticated: bool = True

    @classmethod
    def from_profile(cls, profile: Profile) -> "User":
        return cls(
            id=profile.id,
            email=profile.email,
            is_admin=profile.is_admin,
            credits=profile.calls_remaining,
            tier=profile.tier,
            full_name=profile.full_name,
        )

    @classmethod
    def default(cls, user_id: str, email: str = "") -> "User":
        """Identity for a session whose profile row is missing."""
        return cls(id=user_id, email=email)


@dataclass(frozen=True, slots=True)
class AdminCredentials:
    """An out-of-band admin username/password pair."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"AdminCredentials(username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class AdminSession:
    """An operator elevated through the admin entry.

    Holds whatever the admin RPC needs to authorise later calls: the
    shared-secret pair (bypass path) or a bearer token (admin profile path).
    """

    username: str
    credentials: AdminCredentials | None = None
    access_token: str | None = None
    is_authenticated: bool = True


type Identity = Anonymous | User | AdminSession

ANONYMOUS = Anonymous()


def has_admin_role(identity: Identity) -> bool:
    """True for admin sessions and for users carrying the admin flag."""
    match identity:
        case AdminSession():
            return True
        case User(is_admin=True):
            return True
        case _:
            return False
