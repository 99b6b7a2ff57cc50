"""Records owned by the hosted storage service.

``profiles`` and ``tasks`` mirror the service tables; the app references
them but never owns them.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class SubscriptionTier(StrEnum):
    NONE = "NONE"
    BASIC = "BASIC"
    PRO = "PRO"


class TaskStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    MISSED = "missed"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Profile:
    """A row of the ``profiles`` table. One per registered user."""

    id: str
    email: str
    full_name: str | None = None
    tier: SubscriptionTier = SubscriptionTier.NONE
    calls_remaining: int = 0
    is_admin: bool = False
    whatsapp: str | None = None
    created_at: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class Task:
    """A row of the ``tasks`` table.

    ``status`` only changes through the verification workflow: an operator
    verifying the task, or the deadline passing while it is still pending.
    """

    id: str
    user_id: str
    title: str
    scheduled_at: datetime
    description: str | None = None
    ends_at: datetime | None = None
    status: TaskStatus = TaskStatus.PENDING
    notes: str | None = None

    @property
    def deadline(self) -> datetime:
        """End of the task window, or its start when no end is set."""
        return self.ends_at or self.scheduled_at


@dataclass(frozen=True, slots=True)
class AuthSession:
    """An active session issued by the identity service."""

    access_token: str
    user_id: str
    email: str = ""

    def __repr__(self) -> str:
        return f"AuthSession(user_id={self.user_id!r}, email={self.email!r})"
