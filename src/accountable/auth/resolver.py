"""Session/identity resolver.

Owns the process-wide ``Identity``. Consults the identity service at
startup and whenever it pushes a session change (sign-in or sign-out in
another tab/device, expiry), and handles the auth view's actions:
sign-in, sign-up, sign-out and admin elevation.

Failure direction: any backend error while resolving degrades to
``Anonymous``. Rendering the login view is always safe; rendering an
authenticated view on stale data is not.

Usage::

    resolver = IdentityResolver(backend, LocalSessionStore(storage, secret))
    identity = await resolver.bootstrap()
    with resolver.subscribe(lambda identity: print(identity)):
        await resolver.sign_in("ada@example.com", "pw")
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

import anyio

from accountable.auth.local import LocalSessionStore
from accountable.backend.models import AuthSession, Profile, SubscriptionTier
from accountable.backend.protocol import Backend
from accountable.errors import AccountableError, ServiceUnavailable, Unauthorized
from accountable.identity import (
    ANONYMOUS,
    AdminCredentials,
    AdminSession,
    Identity,
    User,
)
from accountable.routing import Subscription
from accountable.security.audit import emit_security_event
from accountable.security.lockout import LOCKED_MESSAGE, LoginLockout, normalize_key
from accountable.security.passwords import verify_secret
from accountable.validation import email, ensure_valid, min_length, required

logger = logging.getLogger("accountable.auth")

type IdentityListener = Callable[[Identity], None]

# Demo-mode account, used when no backend is configured
DEMO_USER_ID = "demo-user"
DEMO_TIER = SubscriptionTier.BASIC
DEMO_CALLS = 12

_CREDENTIAL_RULES = {
    "email": [required, email],
    "password": [required, min_length(6)],
}


@dataclass(frozen=True, slots=True)
class AdminSecrets:
    """Operator-configured admin pair. ``password`` may be an argon2 hash."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"AdminSecrets(username={self.username!r}, password='***')"


class IdentityResolver:
    """Resolve and own the current ``Identity``.

    *backend* is ``None`` in demo mode; the signed local artifact in
    *sessions* then stands in for the identity service.
    """

    def __init__(
        self,
        backend: Backend | None,
        sessions: LocalSessionStore,
        *,
        admin_secrets: AdminSecrets | None = None,
        lockout: LoginLockout | None = None,
        demo_delay: float = 0.0,
    ) -> None:
        self._backend = backend
        self._sessions = sessions
        self._admin_secrets = admin_secrets
        self._lockout = lockout or LoginLockout()
        self._demo_delay = demo_delay
        self._identity: Identity = ANONYMOUS
        self._listeners: list[IdentityListener] = []
        self._generation = 0
        self._backend_subscription: Subscription | None = None

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def demo_mode(self) -> bool:
        return self._backend is None

    def subscribe(self, listener: IdentityListener) -> Subscription:
        """Register *listener* for identity changes."""
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def _set(self, identity: Identity) -> None:
        if identity == self._identity:
            return
        logger.info("Identity changed: %s -> %s", type(self._identity).__name__, type(identity).__name__)
        self._identity = identity
        for listener in list(self._listeners):
            listener(identity)

    # -- Resolution -------------------------------------------------------

    async def bootstrap(self) -> Identity:
        """Resolve the identity on cold start.

        Subscribes to backend session pushes the first time it runs.
        """
        if self._backend is None:
            profile = self._sessions.load()
            self._set(User.from_profile(profile) if profile is not None else ANONYMOUS)
            return self._identity

        if self._backend_subscription is None:
            self._backend_subscription = self._backend.subscribe(self._on_session_changed)

        generation = self._next_generation()
        try:
            session = await self._backend.get_session()
            identity = await self._identity_for(session)
        except AccountableError as exc:
            logger.warning("Could not resolve identity during bootstrap: %s", exc)
            identity = ANONYMOUS
        self._apply(generation, identity)
        return self._identity

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _apply(self, generation: int, identity: Identity) -> None:
        """Apply a resolution result unless a newer one superseded it."""
        if generation != self._generation:
            logger.debug("Dropping superseded identity resolution #%d", generation)
            return
        self._set(identity)

    async def _identity_for(self, session: AuthSession | None) -> Identity:
        if session is None:
            return ANONYMOUS
        assert self._backend is not None
        profile = await self._backend.fetch_profile(session.user_id)
        if profile is None:
            logger.warning("No profile row for %s; using defaults", session.user_id)
            return User.default(session.user_id, session.email)
        return User.from_profile(profile)

    async def _on_session_changed(self, session: AuthSession | None) -> None:
        current = self._identity
        if isinstance(current, AdminSession):
            # Bypass-path admins do not depend on a backend session; token
            # admins lose their token with it.
            if session is None and current.access_token is not None:
                self._next_generation()
                self._set(ANONYMOUS)
            return

        generation = self._next_generation()
        try:
            identity = await self._identity_for(session)
        except AccountableError as exc:
            logger.warning("Could not resolve identity after a session change: %s", exc)
            identity = ANONYMOUS
        self._apply(generation, identity)

    async def refresh(self) -> Identity:
        """Re-read the profile, e.g. after a credit top-up."""
        if self._backend is None:
            return self._identity
        generation = self._next_generation()
        try:
            identity = await self._identity_for(await self._backend.get_session())
        except AccountableError as exc:
            logger.warning("Could not refresh identity: %s", exc)
            return self._identity
        self._apply(generation, identity)
        return self._identity

    # -- Auth view actions ------------------------------------------------

    async def sign_in(self, email_address: str, password: str) -> Identity:
        """Sign in with email and password.

        Raises ``ValidationError`` for malformed input and ``Unauthorized``
        for rejected credentials.
        """
        data = ensure_valid({"email": email_address, "password": password}, _CREDENTIAL_RULES)
        if self._backend is None:
            return await self._demo_sign_in(data["email"])
        await self._backend.sign_in(data["email"], data["password"])
        return self._identity

    async def sign_up(self, email_address: str, password: str) -> Identity:
        """Register and, when the service issues a session at once, sign in."""
        data = ensure_valid({"email": email_address, "password": password}, _CREDENTIAL_RULES)
        if self._backend is None:
            return await self._demo_sign_in(data["email"])
        await self._backend.sign_up(data["email"], data["password"])
        return self._identity

    async def _demo_sign_in(self, email_address: str) -> Identity:
        if self._demo_delay:
            await anyio.sleep(self._demo_delay)
        profile = Profile(
            id=DEMO_USER_ID,
            email=email_address,
            tier=DEMO_TIER,
            calls_remaining=DEMO_CALLS,
        )
        self._sessions.remember(profile)
        self._next_generation()
        self._set(User.from_profile(profile))
        return self._identity

    def remember_profile(self, profile: Profile) -> None:
        """Update the identity after the user's own profile changed."""
        if not isinstance(self._identity, User) or self._identity.id != profile.id:
            return
        if self._backend is None:
            self._sessions.remember(profile)
        self._next_generation()
        self._set(User.from_profile(profile))

    async def sign_out(self) -> None:
        """End the session everywhere and transition to ``Anonymous``."""
        was_admin = isinstance(self._identity, AdminSession)
        self._next_generation()
        # Drop any admin session before the backend pushes its sign-out
        self._set(ANONYMOUS)
        if self._backend is None:
            self._sessions.clear()
        else:
            try:
                await self._backend.sign_out()
            except ServiceUnavailable as exc:
                logger.warning("Sign-out could not reach the identity service: %s", exc)
        if was_admin:
            emit_security_event("auth.admin.logout")
        emit_security_event("auth.logout.success")

    # -- Admin elevation --------------------------------------------------

    async def elevate_to_admin(self, credentials: AdminCredentials) -> AdminSession:
        """Verify an admin pair and switch to an ``AdminSession``.

        Raises ``Unauthorized`` for bad credentials, a non-admin account,
        or an active lockout (``retry_after`` set).
        """
        key = normalize_key(credentials.username)
        locked, retry_after = self._lockout.is_locked(key)
        if locked:
            emit_security_event("auth.admin.locked", subject=key, details={"retry_after": retry_after})
            raise Unauthorized(LOCKED_MESSAGE, retry_after=retry_after)

        try:
            session = await self._verify_admin(credentials)
        except Unauthorized:
            locked, retry_after = self._lockout.record_failure(key)
            emit_security_event("auth.admin.failure", subject=key, details={"locked": locked})
            logger.warning("Rejected admin elevation for %r", key)
            msg = "Unauthorized: Invalid Admin Credentials"
            raise Unauthorized(msg, retry_after=retry_after if locked else None) from None

        self._lockout.record_success(key)
        emit_security_event("auth.admin.success", subject=key)
        self._next_generation()
        self._set(session)
        return session

    async def _verify_admin(self, credentials: AdminCredentials) -> AdminSession:
        secrets = self._admin_secrets
        if secrets is not None:
            user_ok = verify_secret(credentials.username, secrets.username)
            password_ok = verify_secret(credentials.password, secrets.password)
            if not (user_ok and password_ok):
                raise Unauthorized
            return AdminSession(username=credentials.username, credentials=credentials)

        if self._backend is None:
            msg = "Admin access is not configured"
            raise Unauthorized(msg)

        # Never adopted: the current backend session stays as it was
        candidate = await self._backend.check_credentials(credentials.username, credentials.password)
        profile = await self._backend.profile_for_token(candidate.access_token)
        if profile is None or not profile.is_admin:
            raise Unauthorized
        return AdminSession(username=profile.email, access_token=candidate.access_token)

    def close(self) -> None:
        if self._backend_subscription is not None:
            self._backend_subscription()
            self._backend_subscription = None
