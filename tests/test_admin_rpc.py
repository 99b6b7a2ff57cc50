"""Tests for accountable.admin — the admin RPC server and its client."""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from accountable.admin.client import AdminClient, AdminOverview
from accountable.admin.rpc import AdminRPC, compute_stats
from accountable.auth.resolver import AdminSecrets
from accountable.backend.memory import MemoryBackend
from accountable.backend.models import Profile, SubscriptionTier, Task, TaskStatus
from accountable.errors import ServiceUnavailable, Unauthorized
from accountable.identity import AdminCredentials
from accountable.scheduler import ManualClock
from accountable.security.audit import SecurityEvent, set_security_event_sink
from accountable.security.lockout import LoginLockout

URL = "http://admin.test/functions/v1/get-admin-stats"
T0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def store() -> MemoryBackend:
    store = MemoryBackend()
    store.add_user("root@example.com", "root-password", id="u-root", is_admin=True, created_at=T0)
    for i, tier in enumerate(
        [SubscriptionTier.PRO, SubscriptionTier.PRO, SubscriptionTier.BASIC, SubscriptionTier.NONE,
         SubscriptionTier.BASIC, SubscriptionTier.NONE]
    ):
        store.add_user(
            f"user{i}@example.com",
            "pw-123456",
            id=f"u{i}",
            tier=tier,
            calls_remaining=1 if i == 0 else 5,
            whatsapp="+15550100" if i == 0 else None,
            created_at=T0 + timedelta(days=i + 1),
        )
    store.add_task(Task(id="t-late", user_id="u0", title="Gym", scheduled_at=T0 + timedelta(days=3)))
    store.add_task(Task(id="t-soon", user_id="u1", title="Report", scheduled_at=T0 + timedelta(hours=2)))
    return store


@pytest.fixture
def rpc(store: MemoryBackend, lockout: LoginLockout) -> AdminRPC:
    return AdminRPC(store, secrets=AdminSecrets("admin", "admin"), lockout=lockout)


def _client(app: AdminRPC) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://admin.test")


def _admin_client(app: AdminRPC, **kwargs: object) -> AdminClient:
    return AdminClient(URL, "anon-key", client=_client(app), **kwargs)  # type: ignore[arg-type]


CREDS = {"username": "admin", "password": "admin"}


class TestComputeStats:
    def test_figures(self, store: MemoryBackend) -> None:
        stats = compute_stats(list(store._profiles.values()))
        assert stats.total_users == 7
        assert stats.mrr == 2 * 40 + 2 * 20
        assert stats.conversion_rate == 29  # 2 / 7
        assert len(stats.recent_signups) == 5
        assert stats.recent_signups[0].email == "user5@example.com"

    def test_empty(self) -> None:
        stats = compute_stats([])
        assert stats.total_users == 0
        assert stats.conversion_rate == 0

    def test_half_rounds_up(self) -> None:
        profiles = [
            Profile(id="a", email="a@x.io", tier=SubscriptionTier.PRO),
            Profile(id="b", email="b@x.io"),
            Profile(id="c", email="c@x.io"),
            Profile(id="d", email="d@x.io"),
            Profile(id="e", email="e@x.io"),
            Profile(id="f", email="f@x.io"),
            Profile(id="g", email="g@x.io"),
            Profile(id="h", email="h@x.io"),
        ]
        assert compute_stats(profiles).conversion_rate == 13  # 12.5


class TestAuthorisation:
    @pytest.mark.anyio
    async def test_options_preflight(self, rpc: AdminRPC) -> None:
        async with _client(rpc) as client:
            response = await client.options("/")
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.anyio
    async def test_get_not_allowed(self, rpc: AdminRPC) -> None:
        async with _client(rpc) as client:
            response = await client.get("/")
        assert response.status_code == 405

    @pytest.mark.anyio
    async def test_wrong_secret(self, rpc: AdminRPC) -> None:
        async with _client(rpc) as client:
            response = await client.post("/", json={"username": "admin", "password": "nope", "action": "stats"})
        assert response.status_code == 401
        assert "error" in response.json()

    @pytest.mark.anyio
    async def test_no_credentials(self, rpc: AdminRPC) -> None:
        async with _client(rpc) as client:
            response = await client.post("/", json={"action": "stats"})
        assert response.status_code == 401

    @pytest.mark.anyio
    async def test_admin_token(self, rpc: AdminRPC, store: MemoryBackend) -> None:
        token = store.issue_token("u-root")
        async with _client(rpc) as client:
            response = await client.post(
                "/", json={"action": "stats"}, headers={"Authorization": f"Bearer {token}"}
            )
        assert response.status_code == 200

    @pytest.mark.anyio
    async def test_non_admin_token(self, rpc: AdminRPC, store: MemoryBackend) -> None:
        token = store.issue_token("u0")
        async with _client(rpc) as client:
            response = await client.post(
                "/", json={"action": "stats"}, headers={"Authorization": f"Bearer {token}"}
            )
        assert response.status_code == 401

    @pytest.mark.anyio
    async def test_credentials_without_configured_secrets(self, store: MemoryBackend) -> None:
        rpc = AdminRPC(store)
        async with _client(rpc) as client:
            response = await client.post("/", json={**CREDS, "action": "stats"})
        assert response.status_code == 400
        assert response.json() == {"error": "Server misconfiguration"}

    @pytest.mark.anyio
    async def test_lockout(self, rpc: AdminRPC, clock: ManualClock) -> None:
        events: list[SecurityEvent] = []
        set_security_event_sink(events.append)
        try:
            async with _client(rpc) as client:
                statuses = [
                    (await client.post("/", json={"username": "admin", "password": "x", "action": "stats"})).status_code
                    for _ in range(3)
                ]
                locked = await client.post("/", json={**CREDS, "action": "stats"})
                clock.advance(61)
                unlocked = await client.post("/", json={**CREDS, "action": "stats"})
        finally:
            set_security_event_sink(None)

        assert statuses == [401, 401, 429]
        assert locked.status_code == 429
        assert int(locked.headers["retry-after"]) > 0
        assert unlocked.status_code == 200
        assert "admin.rpc.locked" in [event.name for event in events]


class TestActions:
    @pytest.mark.anyio
    async def test_stats(self, rpc: AdminRPC) -> None:
        async with _client(rpc) as client:
            response = await client.post("/", json={**CREDS, "action": "stats"})
        body = response.json()
        assert response.status_code == 200
        assert body["totalUsers"] == 7
        assert body["mrr"] == 120
        assert len(body["recentSignups"]) == 5

    @pytest.mark.anyio
    async def test_tasks_soonest_first_with_owner(self, rpc: AdminRPC) -> None:
        async with _client(rpc) as client:
            response = await client.post("/", json={**CREDS, "action": "tasks"})
        body = response.json()
        assert [t["id"] for t in body] == ["t-soon", "t-late"]
        assert body[1]["email"] == "user0@example.com"
        assert body[1]["whatsapp"] == "+15550100"
        assert body[1]["callsRemaining"] == 1

    @pytest.mark.anyio
    async def test_verify_task_consumes_a_call(self, rpc: AdminRPC, store: MemoryBackend) -> None:
        async with _client(rpc) as client:
            response = await client.post("/", json={**CREDS, "action": "verify_task", "taskId": "t-late"})
            again = await client.post("/", json={**CREDS, "action": "verify_task", "taskId": "t-late"})
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "t-late"
        assert body["status"] == "verified"
        assert body["callsRemaining"] == 0
        assert again.status_code == 200
        assert again.json()["callsRemaining"] == 0

        task = await store.get_task("t-late")
        owner = await store.get_profile("u0")
        assert task.status is TaskStatus.VERIFIED  # type: ignore[union-attr]
        assert owner.calls_remaining == 0  # type: ignore[union-attr]

    @pytest.mark.anyio
    async def test_balance_never_goes_negative(self, rpc: AdminRPC, store: MemoryBackend) -> None:
        await store.update_profile("u1", calls_remaining=0)
        async with _client(rpc) as client:
            await client.post("/", json={**CREDS, "action": "verify_task", "taskId": "t-soon"})
        assert (await store.get_profile("u1")).calls_remaining == 0  # type: ignore[union-attr]

    @pytest.mark.parametrize(
        "payload",
        [
            {"action": "explode"},
            {},
            {"action": "verify_task"},
            {"action": "verify_task", "taskId": "t-missing"},
        ],
    )
    @pytest.mark.anyio
    async def test_bad_requests(self, rpc: AdminRPC, payload: dict) -> None:
        async with _client(rpc) as client:
            response = await client.post("/", json={**CREDS, **payload})
        assert response.status_code == 400
        assert response.json()["error"]

    @pytest.mark.anyio
    async def test_store_outage(self, rpc: AdminRPC, store: MemoryBackend) -> None:
        store.offline = True
        async with _client(rpc) as client:
            response = await client.post("/", json={**CREDS, "action": "stats"})
        assert response.status_code == 400


class TestAdminClient:
    @pytest.mark.anyio
    async def test_stats_and_tasks(self, rpc: AdminRPC) -> None:
        async with _admin_client(rpc, credentials=AdminCredentials("admin", "admin")) as admin:
            stats = await admin.stats()
            tasks = await admin.tasks()
        assert stats.total_users == 7
        assert stats.recent_signups[0].tier is SubscriptionTier.NONE
        assert tasks[0].id == "t-soon"

    @pytest.mark.anyio
    async def test_verify_task(self, rpc: AdminRPC) -> None:
        async with _admin_client(rpc, credentials=AdminCredentials("admin", "admin")) as admin:
            verified = await admin.verify_task("t-soon")
        assert verified.status is TaskStatus.VERIFIED
        assert verified.calls_remaining == 4

    @pytest.mark.anyio
    async def test_token_auth(self, rpc: AdminRPC, store: MemoryBackend) -> None:
        async with _admin_client(rpc, access_token=store.issue_token("u-root")) as admin:
            assert (await admin.stats()).total_users == 7

    @pytest.mark.anyio
    async def test_unauthorized(self, rpc: AdminRPC) -> None:
        async with _admin_client(rpc, credentials=AdminCredentials("admin", "bad")) as admin:
            with pytest.raises(Unauthorized):
                await admin.stats()

    @pytest.mark.anyio
    async def test_bad_request_is_service_unavailable(self, rpc: AdminRPC) -> None:
        async with _admin_client(rpc, credentials=AdminCredentials("admin", "admin")) as admin:
            with pytest.raises(ServiceUnavailable):
                await admin.verify_task("t-missing")


class TestAdminOverview:
    @pytest.mark.anyio
    async def test_demo_mode(self) -> None:
        overview = AdminOverview(None)
        stats = await overview.load()
        assert overview.demo is True
        assert stats.total_users == 1248

    @pytest.mark.anyio
    async def test_falls_back_when_function_missing(self) -> None:
        def not_deployed(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "Function not found"})

        client = AdminClient(URL, "anon-key", client=httpx.AsyncClient(transport=httpx.MockTransport(not_deployed)))
        overview = AdminOverview(client)
        await overview.load()
        assert overview.demo is True
        assert overview.stats.mrr == 42380  # type: ignore[union-attr]

    @pytest.mark.anyio
    async def test_live(self, rpc: AdminRPC) -> None:
        overview = AdminOverview(_admin_client(rpc, credentials=AdminCredentials("admin", "admin")))
        await overview.load()
        assert overview.demo is False
        assert len(overview.tasks) == 2
        await overview.verify_task("t-soon")
        assert overview.tasks[0].status is TaskStatus.VERIFIED
        await overview.aclose()

    @pytest.mark.anyio
    async def test_unauthorized_propagates(self, rpc: AdminRPC) -> None:
        overview = AdminOverview(_admin_client(rpc, credentials=AdminCredentials("admin", "bad")))
        with pytest.raises(Unauthorized):
            await overview.load()
