"""Shared fixtures."""

from datetime import UTC, datetime

import pytest

from accountable.auth.local import LocalSessionStore
from accountable.auth.resolver import AdminSecrets, IdentityResolver
from accountable.backend.memory import MemoryBackend
from accountable.backend.models import SubscriptionTier
from accountable.routes import build_route_table
from accountable.routing import Router
from accountable.scheduler import ManualClock
from accountable.security.lockout import LockoutConfig, LoginLockout
from accountable.storage import MemoryStorage

# 2024-05-01T12:00:00Z
START = datetime(2024, 5, 1, 12, 0, tzinfo=UTC).timestamp()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def backend() -> MemoryBackend:
    backend = MemoryBackend()
    backend.add_user(
        "ada@example.com",
        "correct-horse",
        id="u-ada",
        tier=SubscriptionTier.PRO,
        calls_remaining=10,
    )
    backend.add_user("root@example.com", "root-password", id="u-root", is_admin=True)
    return backend


@pytest.fixture
def lockout(clock: ManualClock) -> LoginLockout:
    return LoginLockout(LockoutConfig(max_failures=3, base_lock_seconds=60), now=clock.now)


@pytest.fixture
def resolver(backend: MemoryBackend, storage: MemoryStorage, lockout: LoginLockout) -> IdentityResolver:
    return IdentityResolver(
        backend,
        LocalSessionStore(storage, "test-secret"),
        admin_secrets=AdminSecrets("admin", "admin"),
        lockout=lockout,
    )


@pytest.fixture
def router() -> Router:
    return Router(build_route_table())
