"""Backend for the hosted Supabase-compatible service, over raw HTTP.

Talks to the three API families via ``httpx``:

    - ``/auth/v1/*``      sessions (sign-up, password grant, logout, user)
    - ``/rest/v1/*``      ``profiles`` and ``tasks`` rows (PostgREST filters)
    - ``/functions/v1/*`` edge functions (see ``accountable.admin.client``)

User-scoped calls carry the signed-in user's access token, so row-level
security applies. Constructed with a service-role key and no session, the
same class serves as the ``AdminStore`` behind the admin RPC.
"""

import dataclasses
import logging
from datetime import datetime
from enum import Enum
from typing import Any

import httpx

from accountable.backend._mapping import map_row, map_rows, to_row
from accountable.backend.models import AuthSession, Profile, Task
from accountable.backend.protocol import SessionListener
from accountable.connection import ServiceEndpoint
from accountable.errors import NotFound, ServiceUnavailable, Unauthorized
from accountable.routing import Subscription
from accountable.storage import MemoryStorage, Storage

logger = logging.getLogger("accountable.backend")

# Storage key for the persisted access token
SESSION_KEY = "accountable_auth_session"


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase


class RestBackend:
    """``Backend`` and ``AdminStore`` over the hosted HTTP API.

    Usage::

        endpoint = ServiceEndpoint("https://xyz.supabase.co", "anon-key")
        async with RestBackend(endpoint, storage=FileStorage(".accountable")) as backend:
            session = await backend.sign_in("ada@example.com", "pw")
            tasks = await backend.list_tasks(session.user_id)
    """

    def __init__(
        self,
        endpoint: ServiceEndpoint,
        *,
        storage: Storage | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._endpoint = endpoint
        self._storage = storage if storage is not None else MemoryStorage()
        self._client = client or httpx.AsyncClient(base_url=endpoint.url, timeout=timeout)
        self._listeners: list[SessionListener] = []
        self._session: AuthSession | None = None

    @property
    def endpoint(self) -> ServiceEndpoint:
        return self._endpoint

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RestBackend":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # -- HTTP plumbing ----------------------------------------------------

    def _headers(self, token: str | None = None) -> dict[str, str]:
        bearer = token or (self._session.access_token if self._session else self._endpoint.key)
        return {
            "apikey": self._endpoint.key,
            "Authorization": f"Bearer {bearer}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        credentials: bool = False,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and map failures onto the error taxonomy.

        With *credentials*, 400/401/422 responses mean bad credentials.
        """
        merged = self._headers(token)
        if headers:
            merged.update(headers)
        try:
            response = await self._client.request(method, path, headers=merged, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            msg = f"Service unreachable: {exc}"
            raise ServiceUnavailable(msg) from exc

        if response.is_success:
            return response

        message = _error_message(response)
        if response.status_code in (401, 403) or (
            credentials and response.status_code in (400, 422)
        ):
            raise Unauthorized(message)
        if response.status_code == 404:
            raise NotFound(message)
        logger.warning("%s %s -> %d: %s", method, path, response.status_code, message)
        raise ServiceUnavailable(message)

    # -- Sessions ---------------------------------------------------------

    def _remember(self, session: AuthSession | None) -> None:
        self._session = session
        if session is None:
            self._storage.remove_item(SESSION_KEY)
        else:
            self._storage.set_item(SESSION_KEY, dataclasses.asdict(session))

    async def _publish(self, session: AuthSession | None) -> None:
        for listener in list(self._listeners):
            await listener(session)

    @staticmethod
    def _session_from(body: dict[str, Any]) -> AuthSession | None:
        token = body.get("access_token")
        user = body.get("user") or {}
        if not token or not user.get("id"):
            return None
        return AuthSession(access_token=token, user_id=user["id"], email=user.get("email", ""))

    def subscribe(self, listener: SessionListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    async def get_session(self) -> AuthSession | None:
        """Return the persisted session if the service still accepts it."""
        if self._session is None:
            stored = self._storage.get_item(SESSION_KEY)
            if not isinstance(stored, dict):
                return None
            try:
                self._session = AuthSession(**stored)
            except TypeError:
                self._remember(None)
                return None

        try:
            await self._request("GET", "/auth/v1/user", token=self._session.access_token)
        except Unauthorized:
            logger.info("Stored session for %s expired", self._session.user_id)
            self._remember(None)
            return None
        return self._session

    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        response = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password},
            credentials=True,
        )
        session = self._session_from(response.json())
        if session is None:
            logger.info("Sign-up for %s awaits email confirmation", email)
            return None
        self._remember(session)
        await self._publish(session)
        return session

    async def check_credentials(self, email: str, password: str) -> AuthSession:
        """Run the password grant without adopting the resulting session."""
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            credentials=True,
        )
        session = self._session_from(response.json())
        if session is None:
            msg = "Identity service returned no session"
            raise ServiceUnavailable(msg)
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        session = await self.check_credentials(email, password)
        self._remember(session)
        await self._publish(session)
        return session

    async def sign_out(self) -> None:
        if self._session is not None:
            try:
                await self._request("POST", "/auth/v1/logout")
            except Unauthorized:
                pass  # already invalid server-side
        self._remember(None)
        await self._publish(None)

    # -- Rows -------------------------------------------------------------

    async def _select(
        self, table: str, params: dict[str, str], *, token: str | None = None
    ) -> list[dict[str, Any]]:
        response = await self._request("GET", f"/rest/v1/{table}", token=token, params={"select": "*", **params})
        return response.json()

    async def _patch(self, table: str, row_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params={"id": f"eq.{row_id}"},
            json=_jsonable(changes),
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        if not rows:
            msg = f"{table} row {row_id!r} not found"
            raise NotFound(msg)
        return rows[0]

    async def fetch_profile(self, user_id: str) -> Profile | None:
        rows = await self._select("profiles", {"id": f"eq.{user_id}"})
        return map_row(Profile, rows[0]) if rows else None

    async def get_profile(self, user_id: str) -> Profile | None:
        return await self.fetch_profile(user_id)

    async def update_profile(self, user_id: str, **changes: Any) -> Profile:
        return map_row(Profile, await self._patch("profiles", user_id, changes))

    async def list_profiles(self) -> list[Profile]:
        return map_rows(Profile, await self._select("profiles", {"order": "created_at.desc"}))

    async def list_tasks(self, user_id: str) -> list[Task]:
        rows = await self._select("tasks", {"user_id": f"eq.{user_id}", "order": "scheduled_at.desc"})
        return map_rows(Task, rows)

    async def list_all_tasks(self) -> list[Task]:
        return map_rows(Task, await self._select("tasks", {"order": "scheduled_at.asc"}))

    async def get_task(self, task_id: str) -> Task | None:
        rows = await self._select("tasks", {"id": f"eq.{task_id}"})
        return map_row(Task, rows[0]) if rows else None

    async def insert_task(self, task: Task) -> Task:
        row = to_row(task)
        if not row["id"]:
            del row["id"]  # let the database assign it
        response = await self._request(
            "POST",
            "/rest/v1/tasks",
            json=[row],
            headers={"Prefer": "return=representation"},
        )
        return map_row(Task, response.json()[0])

    async def update_task(self, task_id: str, **changes: Any) -> Task:
        return map_row(Task, await self._patch("tasks", task_id, changes))

    async def profile_for_token(self, access_token: str) -> Profile | None:
        try:
            response = await self._request("GET", "/auth/v1/user", token=access_token)
        except Unauthorized:
            return None
        user_id = response.json().get("id")
        if not user_id:
            return None
        rows = await self._select("profiles", {"id": f"eq.{user_id}"}, token=access_token)
        return map_row(Profile, rows[0]) if rows else None


def _jsonable(changes: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in changes.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        out[key] = value
    return out
