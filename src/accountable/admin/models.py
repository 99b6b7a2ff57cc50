"""Records exchanged between the admin RPC and its client.

Wire names are camelCase, matching the JSON the dashboard has always
consumed; the Python side uses snake_case attributes.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from accountable.backend._mapping import parse_timestamp
from accountable.backend.models import Profile, SubscriptionTier, Task, TaskStatus


@dataclass(frozen=True, slots=True)
class Signup:
    email: str
    tier: SubscriptionTier
    created_at: datetime

    @classmethod
    def from_profile(cls, profile: Profile) -> "Signup":
        return cls(email=profile.email, tier=profile.tier, created_at=profile.created_at)

    def to_json(self) -> dict[str, Any]:
        return {"email": self.email, "tier": self.tier.value, "created_at": self.created_at.isoformat()}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Signup":
        return cls(
            email=data.get("email", ""),
            tier=SubscriptionTier(data.get("tier") or SubscriptionTier.NONE),
            created_at=parse_timestamp(data["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class AdminStats:
    """Aggregates for the admin overview."""

    total_users: int
    mrr: int
    conversion_rate: int
    recent_signups: tuple[Signup, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {
            "totalUsers": self.total_users,
            "mrr": self.mrr,
            "conversionRate": self.conversion_rate,
            "recentSignups": [signup.to_json() for signup in self.recent_signups],
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "AdminStats":
        return cls(
            total_users=int(data.get("totalUsers") or 0),
            mrr=int(data.get("mrr") or 0),
            conversion_rate=int(data.get("conversionRate") or 0),
            recent_signups=tuple(Signup.from_json(s) for s in data.get("recentSignups") or ()),
        )


@dataclass(frozen=True, slots=True)
class TaskOverview:
    """A task joined with the owner's contact details and balance.

    What an operator needs to place the verification call.
    """

    id: str
    title: str
    scheduled_at: datetime
    status: TaskStatus
    user_id: str
    email: str = ""
    whatsapp: str | None = None
    calls_remaining: int = 0
    description: str | None = None
    ends_at: datetime | None = None
    notes: str | None = None

    @classmethod
    def join(cls, task: Task, owner: Profile | None) -> "TaskOverview":
        return cls(
            id=task.id,
            title=task.title,
            scheduled_at=task.scheduled_at,
            status=task.status,
            user_id=task.user_id,
            email=owner.email if owner else "",
            whatsapp=owner.whatsapp if owner else None,
            calls_remaining=owner.calls_remaining if owner else 0,
            description=task.description,
            ends_at=task.ends_at,
            notes=task.notes,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "scheduledAt": self.scheduled_at.isoformat(),
            "endsAt": self.ends_at.isoformat() if self.ends_at else None,
            "status": self.status.value,
            "notes": self.notes,
            "userId": self.user_id,
            "email": self.email,
            "whatsapp": self.whatsapp,
            "callsRemaining": self.calls_remaining,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "TaskOverview":
        ends_at = data.get("endsAt")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            scheduled_at=parse_timestamp(data["scheduledAt"]),
            status=TaskStatus(data.get("status") or TaskStatus.PENDING),
            user_id=data.get("userId", ""),
            email=data.get("email") or "",
            whatsapp=data.get("whatsapp"),
            calls_remaining=int(data.get("callsRemaining") or 0),
            description=data.get("description"),
            ends_at=parse_timestamp(ends_at) if ends_at else None,
            notes=data.get("notes"),
        )
