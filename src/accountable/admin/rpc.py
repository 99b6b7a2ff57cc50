"""Admin RPC — the privileged edge function behind the admin dashboard.

A bare ASGI application. Every call is a POST with a JSON body::

    {"username": "...", "password": "...", "action": "stats"}
    {"action": "verify_task", "taskId": "..."}   # with Authorization: Bearer <token>

Callers authorise with the operator's shared-secret pair, or with the
session token of a profile carrying the admin flag. Repeated failures from
one client are locked out with ``429`` and ``Retry-After``.

Actions:
    - ``stats``        totals, MRR, PRO conversion, five most recent signups
    - ``tasks``        every task joined with its owner, soonest first
    - ``verify_task``  mark a task verified and consume one of the owner's calls

Run it with uvicorn::

    uvicorn.run(AdminRPC(store, secrets=secrets), port=8787)
"""

import json as json_module
import logging
import math
from collections.abc import Awaitable, Callable
from typing import Any

import anyio

from accountable._internal.asgi import HTTPScope, Receive, Scope, Send, read_body, send_bytes, send_json
from accountable.admin.models import AdminStats, Signup, TaskOverview
from accountable.auth.resolver import AdminSecrets
from accountable.backend.models import Profile, SubscriptionTier, TaskStatus
from accountable.backend.protocol import AdminStore
from accountable.errors import (
    ConfigurationError,
    NotFound,
    ServiceUnavailable,
    Unauthorized,
    ValidationError,
)
from accountable.pricing import monthly_price
from accountable.security.audit import emit_security_event
from accountable.security.lockout import LOCKED_MESSAGE, LoginLockout
from accountable.security.passwords import verify_secret

logger = logging.getLogger("accountable.admin")

type TokenVerifier = Callable[[str], Awaitable[Profile | None]]

RECENT_SIGNUPS = 5

CORS_HEADERS = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Headers", "authorization, x-client-info, apikey, content-type"),
    ("Access-Control-Allow-Methods", "POST, OPTIONS"),
)


def compute_stats(profiles: list[Profile]) -> AdminStats:
    """Aggregate the admin overview figures from all profiles."""
    total = len(profiles)
    pro = sum(1 for p in profiles if p.tier is SubscriptionTier.PRO)
    mrr = sum(monthly_price(p.tier) for p in profiles)
    # Half rounds up, the way the dashboard has always displayed it
    conversion = math.floor(pro * 100 / total + 0.5) if total else 0
    recent = sorted(profiles, key=lambda p: p.created_at, reverse=True)[:RECENT_SIGNUPS]
    return AdminStats(
        total_users=total,
        mrr=mrr,
        conversion_rate=conversion,
        recent_signups=tuple(Signup.from_profile(p) for p in recent),
    )


class AdminRPC:
    """ASGI callable serving the admin actions.

    *secrets* enables the shared-secret path; without it only admin
    session tokens are accepted. *verify_token* resolves a bearer token to
    a profile and defaults to ``store.profile_for_token``.
    """

    def __init__(
        self,
        store: AdminStore,
        *,
        secrets: AdminSecrets | None = None,
        verify_token: TokenVerifier | None = None,
        lockout: LoginLockout | None = None,
    ) -> None:
        self._store = store
        self._secrets = secrets
        self._verify_token = verify_token or store.profile_for_token
        self._lockout = lockout or LoginLockout()
        self._verify_lock = anyio.Lock()
        self._actions: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            "stats": self._stats,
            "tasks": self._tasks,
            "verify_task": self._verify_task,
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        request = HTTPScope.from_scope(scope)
        if request.method == "OPTIONS":
            await send_bytes(send, status=200, body=b"ok", headers=CORS_HEADERS)
            return
        if request.method != "POST":
            await self._error(send, 405, "Method not allowed. Use POST.")
            return

        client = request.client_host
        locked, retry_after = self._lockout.is_locked(client)
        if locked:
            emit_security_event("admin.rpc.locked", client=client, details={"retry_after": retry_after})
            await self._locked(send, retry_after)
            return

        payload = _parse(await read_body(receive))

        try:
            caller = await self._authorise(request, payload)
        except Unauthorized as exc:
            now_locked, retry_after = self._lockout.record_failure(client)
            emit_security_event("admin.rpc.failure", client=client, details={"locked": now_locked})
            logger.warning("Rejected admin RPC call from %s: %s", client, exc.detail)
            if now_locked:
                await self._locked(send, retry_after)
            else:
                await self._error(send, 401, "Unauthorized: Invalid credentials")
            return
        except ConfigurationError as exc:
            logger.error("Admin RPC misconfigured: %s", exc)
            await self._error(send, 400, str(exc))
            return

        self._lockout.record_success(client)

        action = payload.get("action")
        handler = self._actions.get(action) if isinstance(action, str) else None
        if handler is None:
            await self._error(send, 400, f"Unknown action: {action!r}" if action else "Missing action")
            return

        try:
            result = await handler(payload)
        except ValidationError as exc:
            await self._error(send, 400, "; ".join(f"{k}: {', '.join(v)}" for k, v in exc.errors.items()))
            return
        except NotFound as exc:
            await self._error(send, 400, exc.detail)
            return
        except ServiceUnavailable as exc:
            logger.warning("Admin action %s failed: %s", action, exc)
            await self._error(send, 400, str(exc))
            return

        logger.info("Admin %s ran %s", caller, action)
        await send_json(send, status=200, body=result, headers=CORS_HEADERS)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _error(self, send: Send, status: int, message: str) -> None:
        await send_json(send, status=status, body={"error": message}, headers=CORS_HEADERS)

    async def _locked(self, send: Send, retry_after: int) -> None:
        await send_json(
            send,
            status=429,
            body={"error": LOCKED_MESSAGE},
            headers=(*CORS_HEADERS, ("Retry-After", str(retry_after))),
        )

    # -- Authorisation ----------------------------------------------------

    async def _authorise(self, request: HTTPScope, payload: dict[str, Any]) -> str:
        """Return a label for the authorised caller or raise ``Unauthorized``."""
        username, password = payload.get("username"), payload.get("password")
        if username is not None or password is not None:
            if self._secrets is None:
                msg = "Server misconfiguration"
                raise ConfigurationError(msg)
            user_ok = verify_secret(str(username or ""), self._secrets.username)
            password_ok = verify_secret(str(password or ""), self._secrets.password)
            if not (user_ok and password_ok):
                raise Unauthorized
            return str(username)

        authorization = request.header("authorization") or ""
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise Unauthorized
        try:
            profile = await self._verify_token(token.strip())
        except (ServiceUnavailable, NotFound, Unauthorized):
            profile = None
        if profile is None or not profile.is_admin:
            raise Unauthorized
        return profile.email or profile.id

    # -- Actions ----------------------------------------------------------

    async def _stats(self, payload: dict[str, Any]) -> dict[str, Any]:
        return compute_stats(await self._store.list_profiles()).to_json()

    async def _tasks(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        tasks = await self._store.list_all_tasks()
        owners = {p.id: p for p in await self._store.list_profiles()}
        overview = [TaskOverview.join(task, owners.get(task.user_id)) for task in tasks]
        overview.sort(key=lambda t: t.scheduled_at)
        return [task.to_json() for task in overview]

    async def _verify_task(self, payload: dict[str, Any]) -> dict[str, Any]:
        task_id = payload.get("taskId")
        if not isinstance(task_id, str) or not task_id.strip():
            raise ValidationError({"taskId": ["This field is required"]})

        async with self._verify_lock:
            task = await self._store.get_task(task_id)
            if task is None:
                msg = f"Task {task_id!r} not found"
                raise NotFound(msg)

            owner = await self._store.get_profile(task.user_id)
            if task.status is not TaskStatus.VERIFIED:
                task = await self._store.update_task(task_id, status=TaskStatus.VERIFIED)
                if owner is not None:
                    owner = await self._store.update_profile(
                        owner.id, calls_remaining=max(0, owner.calls_remaining - 1)
                    )
                logger.info("Verified task %s for %s", task_id, task.user_id)

        return TaskOverview.join(task, owner).to_json()


def _parse(body: bytes) -> dict[str, Any]:
    """Decode the JSON body; anything unreadable counts as empty."""
    if not body:
        return {}
    try:
        payload = json_module.loads(body)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
