"""Client for the admin RPC, and the overview the admin view shows.

``AdminClient`` speaks the wire contract over ``httpx``. ``AdminOverview``
wraps it for the admin view: when the function is not deployed or
unreachable, the overview shows demo figures instead of an error page.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from accountable.admin.models import AdminStats, Signup, TaskOverview
from accountable.backend.models import SubscriptionTier
from accountable.errors import ServiceUnavailable, Unauthorized
from accountable.identity import AdminCredentials

logger = logging.getLogger("accountable.admin")


def demo_stats() -> AdminStats:
    """Figures shown when the admin function cannot be reached."""
    now = datetime.now(UTC)
    return AdminStats(
        total_users=1248,
        mrr=42380,
        conversion_rate=4,
        recent_signups=(
            Signup("demo_user_1@example.com", SubscriptionTier.PRO, now),
            Signup("demo_user_2@example.com", SubscriptionTier.BASIC, now),
            Signup("demo_user_3@example.com", SubscriptionTier.PRO, now),
        ),
    )


class AdminClient:
    """Call the admin RPC with either the shared-secret pair or a token.

    Usage::

        async with AdminClient(endpoint.function_url("get-admin-stats"), endpoint.key,
                               credentials=AdminCredentials("admin", "pw")) as admin:
            stats = await admin.stats()
    """

    def __init__(
        self,
        function_url: str,
        api_key: str,
        *,
        credentials: AdminCredentials | None = None,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._url = function_url
        self._api_key = api_key
        self._credentials = credentials
        self._access_token = access_token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AdminClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def _call(self, action: str, **fields: Any) -> Any:
        body: dict[str, Any] = {"action": action, **fields}
        if self._credentials is not None:
            body["username"] = self._credentials.username
            body["password"] = self._credentials.password
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }

        try:
            response = await self._client.post(self._url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            msg = f"Admin function unreachable: {exc}"
            raise ServiceUnavailable(msg) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        error = data.get("error") if isinstance(data, dict) else None

        if response.status_code in (401, 403, 429):
            retry_after = response.headers.get("retry-after")
            raise Unauthorized(
                error or "Unauthorized",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if not response.is_success:
            msg = error or f"Admin function returned {response.status_code}"
            raise ServiceUnavailable(msg)
        return data

    async def stats(self) -> AdminStats:
        return AdminStats.from_json(await self._call("stats"))

    async def tasks(self) -> list[TaskOverview]:
        return [TaskOverview.from_json(item) for item in await self._call("tasks")]

    async def verify_task(self, task_id: str) -> TaskOverview:
        return TaskOverview.from_json(await self._call("verify_task", taskId=task_id))


class AdminOverview:
    """State behind the admin view.

    *client* is ``None`` in demo mode. ``demo`` is true whenever the
    figures on screen are the built-in ones.
    """

    def __init__(self, client: AdminClient | None) -> None:
        self._client = client
        self.stats: AdminStats | None = None
        self.tasks: list[TaskOverview] = []
        self.demo = False
        self.error: str | None = None

    async def load(self) -> AdminStats:
        """Load stats and the task queue.

        ``Unauthorized`` propagates; everything else degrades.
        """
        if self._client is None:
            return self._use_demo()
        try:
            self.stats = await self._client.stats()
        except ServiceUnavailable as exc:
            logger.warning("Admin stats unavailable, showing demo figures: %s", exc)
            return self._use_demo()

        self.demo = False
        try:
            self.tasks = await self._client.tasks()
            self.error = None
        except ServiceUnavailable as exc:
            logger.warning("Admin task queue unavailable: %s", exc)
            self.error = "Could not load the task queue."
        return self.stats

    def _use_demo(self) -> AdminStats:
        self.stats = demo_stats()
        self.tasks = []
        self.demo = True
        return self.stats

    async def verify_task(self, task_id: str) -> TaskOverview:
        if self._client is None:
            msg = "No admin function configured"
            raise ServiceUnavailable(msg)
        verified = await self._client.verify_task(task_id)
        self.tasks = [verified if t.id == task_id else t for t in self.tasks]
        return verified

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
