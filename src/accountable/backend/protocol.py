"""Backend protocols — the opaque identity/storage service.

No base class required. ``MemoryBackend`` and ``RestBackend`` satisfy all
three protocols; tests and alternative hosts can bring their own.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from accountable.backend.models import AuthSession, Profile, Task
from accountable.routing import Subscription

# Pushed on sign-in, sign-out and session expiry. ``None`` means signed out.
type SessionListener = Callable[[AuthSession | None], Awaitable[None]]


class IdentityService(Protocol):
    """Session operations of the hosted identity service."""

    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        """Register an account. ``None`` when email confirmation is pending."""
        ...

    async def check_credentials(self, email: str, password: str) -> AuthSession:
        """Exchange a pair for a session that is neither stored nor published."""
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def sign_out(self) -> None: ...

    async def get_session(self) -> AuthSession | None: ...

    def subscribe(self, listener: SessionListener) -> Subscription: ...

    async def profile_for_token(self, access_token: str) -> Profile | None: ...


class DataService(Protocol):
    """Row access scoped to the signed-in user."""

    async def fetch_profile(self, user_id: str) -> Profile | None: ...

    async def update_profile(self, user_id: str, **changes: Any) -> Profile: ...

    async def list_tasks(self, user_id: str) -> list[Task]:
        """Return the user's tasks, newest ``scheduled_at`` first."""
        ...

    async def insert_task(self, task: Task) -> Task: ...

    async def update_task(self, task_id: str, **changes: Any) -> Task: ...


class AdminStore(Protocol):
    """Service-role access across all users, used by the admin RPC."""

    async def list_profiles(self) -> list[Profile]: ...

    async def get_profile(self, user_id: str) -> Profile | None: ...

    async def update_profile(self, user_id: str, **changes: Any) -> Profile: ...

    async def list_all_tasks(self) -> list[Task]: ...

    async def get_task(self, task_id: str) -> Task | None: ...

    async def update_task(self, task_id: str, **changes: Any) -> Task: ...

    async def profile_for_token(self, access_token: str) -> Profile | None:
        """Resolve a bearer session token to its owner's profile."""
        ...


class Backend(IdentityService, DataService, Protocol):
    """Identity plus data access, what the app shell consumes."""
