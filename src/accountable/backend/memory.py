"""In-process backend for offline demo mode and tests.

Implements ``IdentityService``, ``DataService`` and ``AdminStore`` over
plain dicts. A few switches simulate the failure modes the real service
has: an outage (``offline``), a provisioning trigger that never created the
profile row (``provision_profiles=False``), and a session expiring
elsewhere (``expire_session()``).
"""

import dataclasses
import hmac
import secrets
import uuid
from typing import Any

from accountable.backend.models import AuthSession, Profile, SubscriptionTier, Task
from accountable.backend.protocol import SessionListener
from accountable.errors import NotFound, ServiceUnavailable, Unauthorized
from accountable.routing import Subscription


class MemoryBackend:
    """Dict-backed stand-in for the hosted identity/storage service.

    Usage::

        backend = MemoryBackend()
        backend.add_user("ada@example.com", "pw", tier=SubscriptionTier.PRO, calls_remaining=10)
        session = await backend.sign_in("ada@example.com", "pw")
    """

    def __init__(self, *, provision_profiles: bool = True) -> None:
        self.provision_profiles = provision_profiles
        self.offline = False
        self._passwords: dict[str, tuple[str, str]] = {}  # email -> (user_id, password)
        self._tokens: dict[str, str] = {}  # access_token -> user_id
        self._profiles: dict[str, Profile] = {}
        self._tasks: dict[str, Task] = {}
        self._current: AuthSession | None = None
        self._listeners: list[SessionListener] = []

    # -- Seeding ----------------------------------------------------------

    def add_user(self, email: str, password: str, **profile_fields: Any) -> Profile:
        """Register an account directly, with its profile row."""
        user_id = profile_fields.pop("id", None) or uuid.uuid4().hex
        self._passwords[email.lower()] = (user_id, password)
        profile = Profile(id=user_id, email=email, **profile_fields)
        self._profiles[user_id] = profile
        return profile

    def add_profile(self, profile: Profile) -> Profile:
        """Store a profile row with no login behind it."""
        self._profiles[profile.id] = profile
        return profile

    def add_task(self, task: Task) -> Task:
        self._tasks[task.id] = task
        return task

    def issue_token(self, user_id: str) -> str:
        """Mint a bearer token for *user_id* without signing in."""
        token = secrets.token_urlsafe(24)
        self._tokens[token] = user_id
        return token

    # -- Simulation -------------------------------------------------------

    def _check_online(self) -> None:
        if self.offline:
            msg = "Backend unreachable"
            raise ServiceUnavailable(msg)

    async def _publish(self, session: AuthSession | None) -> None:
        for listener in list(self._listeners):
            await listener(session)

    async def expire_session(self) -> None:
        """Invalidate the current session as if it timed out elsewhere."""
        if self._current is not None:
            self._tokens.pop(self._current.access_token, None)
        self._current = None
        await self._publish(None)

    # -- IdentityService --------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    async def get_session(self) -> AuthSession | None:
        self._check_online()
        return self._current

    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        self._check_online()
        if email.lower() in self._passwords:
            msg = "User already registered"
            raise Unauthorized(msg)
        user_id = uuid.uuid4().hex
        self._passwords[email.lower()] = (user_id, password)
        if self.provision_profiles:
            self._profiles[user_id] = Profile(id=user_id, email=email)
        return await self._start_session(user_id, email)

    async def check_credentials(self, email: str, password: str) -> AuthSession:
        self._check_online()
        entry = self._passwords.get(email.lower())
        if entry is None or not hmac.compare_digest(entry[1], password):
            msg = "Invalid login credentials"
            raise Unauthorized(msg)
        return AuthSession(access_token=self.issue_token(entry[0]), user_id=entry[0], email=email)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        return await self._adopt(await self.check_credentials(email, password))

    async def _start_session(self, user_id: str, email: str) -> AuthSession:
        return await self._adopt(AuthSession(access_token=self.issue_token(user_id), user_id=user_id, email=email))

    async def _adopt(self, session: AuthSession) -> AuthSession:
        self._current = session
        await self._publish(session)
        return session

    async def sign_out(self) -> None:
        self._check_online()
        if self._current is not None:
            self._tokens.pop(self._current.access_token, None)
        self._current = None
        await self._publish(None)

    # -- DataService / AdminStore -----------------------------------------

    async def fetch_profile(self, user_id: str) -> Profile | None:
        self._check_online()
        return self._profiles.get(user_id)

    async def get_profile(self, user_id: str) -> Profile | None:
        return await self.fetch_profile(user_id)

    async def update_profile(self, user_id: str, **changes: Any) -> Profile:
        self._check_online()
        profile = self._profiles.get(user_id)
        if profile is None:
            msg = f"Profile {user_id!r} not found"
            raise NotFound(msg)
        if "tier" in changes:
            changes["tier"] = SubscriptionTier(changes["tier"])
        updated = dataclasses.replace(profile, **changes)
        self._profiles[user_id] = updated
        return updated

    async def list_profiles(self) -> list[Profile]:
        self._check_online()
        return list(self._profiles.values())

    async def list_tasks(self, user_id: str) -> list[Task]:
        self._check_online()
        owned = [t for t in self._tasks.values() if t.user_id == user_id]
        return sorted(owned, key=lambda t: t.scheduled_at, reverse=True)

    async def list_all_tasks(self) -> list[Task]:
        self._check_online()
        return list(self._tasks.values())

    async def get_task(self, task_id: str) -> Task | None:
        self._check_online()
        return self._tasks.get(task_id)

    async def insert_task(self, task: Task) -> Task:
        self._check_online()
        if not task.id:
            task = dataclasses.replace(task, id=uuid.uuid4().hex)
        self._tasks[task.id] = task
        return task

    async def update_task(self, task_id: str, **changes: Any) -> Task:
        self._check_online()
        task = self._tasks.get(task_id)
        if task is None:
            msg = f"Task {task_id!r} not found"
            raise NotFound(msg)
        updated = dataclasses.replace(task, **changes)
        self._tasks[task_id] = updated
        return updated

    async def profile_for_token(self, access_token: str) -> Profile | None:
        self._check_online()
        user_id = self._tokens.get(access_token)
        return self._profiles.get(user_id) if user_id else None
