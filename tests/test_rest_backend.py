"""Tests for accountable.backend.rest — the hosted service over httpx."""

import json
from datetime import UTC, datetime

import httpx
import pytest

from accountable.backend.models import AuthSession, SubscriptionTier, Task, TaskStatus
from accountable.backend.rest import SESSION_KEY, RestBackend
from accountable.connection import ServiceEndpoint
from accountable.errors import NotFound, ServiceUnavailable, Unauthorized
from accountable.storage import MemoryStorage

BASE = "https://svc.test"
KEY = "anon-key"


class _FakeService:
    """Just enough of the auth and rest APIs to exercise the backend."""

    def __init__(self) -> None:
        self.users = {"ada@example.com": ("u-ada", "correct-horse")}
        self.tokens: dict[str, str] = {"tok-existing": "u-ada"}
        self.profiles = {
            "u-ada": {
                "id": "u-ada",
                "email": "ada@example.com",
                "tier": "PRO",
                "calls_remaining": "7",
                "is_admin": False,
                "created_at": "2024-04-01T09:00:00+00:00",
            }
        }
        self.tasks: dict[str, dict] = {}
        self.down = False
        self.requests: list[httpx.Request] = []

    def _token(self, request: httpx.Request) -> str:
        return request.headers.get("authorization", "").removeprefix("Bearer ")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            return httpx.Response(503, json={"message": "upstream down"})
        path = request.url.path
        params = request.url.params

        if path == "/auth/v1/token":
            body = json.loads(request.content)
            entry = self.users.get(body["email"])
            if entry is None or entry[1] != body["password"]:
                return httpx.Response(400, json={"error_description": "Invalid login credentials"})
            token = f"tok-{len(self.tokens)}"
            self.tokens[token] = entry[0]
            return httpx.Response(200, json={"access_token": token, "user": {"id": entry[0], "email": body["email"]}})

        if path == "/auth/v1/signup":
            body = json.loads(request.content)
            return httpx.Response(200, json={"id": "u-new", "email": body["email"]})

        if path == "/auth/v1/user":
            user_id = self.tokens.get(self._token(request))
            if user_id is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json={"id": user_id})

        if path == "/auth/v1/logout":
            self.tokens.pop(self._token(request), None)
            return httpx.Response(204)

        table = path.removeprefix("/rest/v1/")
        rows = self.profiles if table == "profiles" else self.tasks
        row_id = params.get("id", "").removeprefix("eq.")

        if request.method == "GET":
            if row_id:
                return httpx.Response(200, json=[rows[row_id]] if row_id in rows else [])
            user_id = params.get("user_id", "").removeprefix("eq.")
            return httpx.Response(
                200, json=[r for r in rows.values() if not user_id or r["user_id"] == user_id]
            )
        if request.method == "POST":
            (row,) = json.loads(request.content)
            row = {"id": f"t-{len(rows) + 1}", **row}
            rows[row["id"]] = row
            return httpx.Response(201, json=[row])
        if request.method == "PATCH":
            if row_id not in rows:
                return httpx.Response(200, json=[])
            rows[row_id] = {**rows[row_id], **json.loads(request.content)}
            return httpx.Response(200, json=[rows[row_id]])
        return httpx.Response(405)


@pytest.fixture
def service() -> _FakeService:
    return _FakeService()


@pytest.fixture
def rest_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def rest(service: _FakeService, rest_storage: MemoryStorage) -> RestBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(service), base_url=BASE)
    return RestBackend(ServiceEndpoint(BASE, KEY), storage=rest_storage, client=client)


class TestSessions:
    @pytest.mark.anyio
    async def test_sign_in_persists_and_publishes(
        self, rest: RestBackend, rest_storage: MemoryStorage
    ) -> None:
        seen: list[AuthSession | None] = []

        async def listener(session: AuthSession | None) -> None:
            seen.append(session)

        rest.subscribe(listener)
        session = await rest.sign_in("ada@example.com", "correct-horse")

        assert session.user_id == "u-ada"
        assert seen == [session]
        assert rest_storage.get_item(SESSION_KEY)["user_id"] == "u-ada"

    @pytest.mark.anyio
    async def test_check_credentials_does_not_adopt_session(
        self, rest: RestBackend, rest_storage: MemoryStorage
    ) -> None:
        seen: list[AuthSession | None] = []

        async def listener(session: AuthSession | None) -> None:
            seen.append(session)

        rest.subscribe(listener)
        candidate = await rest.check_credentials("ada@example.com", "correct-horse")

        assert candidate.user_id == "u-ada"
        assert seen == []
        assert rest_storage.get_item(SESSION_KEY) is None
        assert await rest.get_session() is None

    @pytest.mark.anyio
    async def test_profile_for_token_reads_with_that_token(
        self, rest: RestBackend, service: _FakeService
    ) -> None:
        await rest.profile_for_token("tok-existing")
        request = service.requests[-1]
        assert request.url.path == "/rest/v1/profiles"
        assert request.headers["authorization"] == "Bearer tok-existing"

    @pytest.mark.anyio
    async def test_bad_credentials(self, rest: RestBackend) -> None:
        with pytest.raises(Unauthorized) as exc_info:
            await rest.sign_in("ada@example.com", "wrong")
        assert exc_info.value.detail == "Invalid login credentials"

    @pytest.mark.anyio
    async def test_get_session_survives_restart(
        self, service: _FakeService, rest_storage: MemoryStorage, rest: RestBackend
    ) -> None:
        rest_storage.set_item(
            SESSION_KEY, {"access_token": "tok-existing", "user_id": "u-ada", "email": "ada@example.com"}
        )
        session = await rest.get_session()
        assert session is not None
        assert session.user_id == "u-ada"

    @pytest.mark.anyio
    async def test_expired_session_is_dropped(
        self, rest_storage: MemoryStorage, rest: RestBackend
    ) -> None:
        rest_storage.set_item(SESSION_KEY, {"access_token": "stale", "user_id": "u-ada", "email": ""})
        assert await rest.get_session() is None
        assert rest_storage.get_item(SESSION_KEY) is None

    @pytest.mark.anyio
    async def test_sign_up_pending_confirmation(self, rest: RestBackend) -> None:
        assert await rest.sign_up("new@example.com", "secret-pw") is None

    @pytest.mark.anyio
    async def test_sign_out(self, rest: RestBackend, service: _FakeService) -> None:
        session = await rest.sign_in("ada@example.com", "correct-horse")
        await rest.sign_out()
        assert session.access_token not in service.tokens
        assert await rest.get_session() is None

    @pytest.mark.anyio
    async def test_outage_is_service_unavailable(self, rest: RestBackend, service: _FakeService) -> None:
        service.down = True
        with pytest.raises(ServiceUnavailable):
            await rest.sign_in("ada@example.com", "correct-horse")

    @pytest.mark.anyio
    async def test_transport_error_is_service_unavailable(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url=BASE)
        backend = RestBackend(ServiceEndpoint(BASE, KEY), client=client)
        with pytest.raises(ServiceUnavailable):
            await backend.fetch_profile("u-ada")


class TestRows:
    @pytest.mark.anyio
    async def test_fetch_profile_coerces_types(self, rest: RestBackend) -> None:
        profile = await rest.fetch_profile("u-ada")
        assert profile is not None
        assert profile.tier is SubscriptionTier.PRO
        assert profile.calls_remaining == 7
        assert profile.created_at == datetime(2024, 4, 1, 9, 0, tzinfo=UTC)

    @pytest.mark.anyio
    async def test_missing_profile(self, rest: RestBackend) -> None:
        assert await rest.fetch_profile("u-ghost") is None

    @pytest.mark.anyio
    async def test_requests_carry_key_and_user_token(
        self, rest: RestBackend, service: _FakeService
    ) -> None:
        session = await rest.sign_in("ada@example.com", "correct-horse")
        await rest.list_tasks("u-ada")
        request = service.requests[-1]
        assert request.headers["apikey"] == KEY
        assert request.headers["authorization"] == f"Bearer {session.access_token}"
        assert request.url.params["order"] == "scheduled_at.desc"

    @pytest.mark.anyio
    async def test_insert_and_update_task(self, rest: RestBackend) -> None:
        created = await rest.insert_task(
            Task(
                id="",
                user_id="u-ada",
                title="Write report",
                scheduled_at=datetime(2024, 5, 2, 9, 0, tzinfo=UTC),
            )
        )
        assert created.id == "t-1"
        assert created.status is TaskStatus.PENDING

        updated = await rest.update_task(created.id, status=TaskStatus.VERIFIED)
        assert updated.status is TaskStatus.VERIFIED

    @pytest.mark.anyio
    async def test_update_missing_row(self, rest: RestBackend) -> None:
        with pytest.raises(NotFound):
            await rest.update_task("t-404", status=TaskStatus.MISSED)

    @pytest.mark.anyio
    async def test_profile_for_token(self, rest: RestBackend) -> None:
        profile = await rest.profile_for_token("tok-existing")
        assert profile is not None
        assert profile.id == "u-ada"
        assert await rest.profile_for_token("bogus") is None
