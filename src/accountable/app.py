"""Accountable application — the composition root.

Builds the router, identity resolver, shell and scheduler from an
``AppConfig`` and hands them out. Nothing is process-global: two ``App``
instances with different storage never see each other's state.

Usage::

    app = App(AppConfig.from_env())
    screen = await app.start("/dashboard")
    if screen.view is View.DASHBOARD:
        dashboard = await app.open_dashboard()
    ...
    await app.close()
"""

import logging
import secrets
from datetime import UTC, datetime, timedelta

from accountable.admin.client import AdminClient, AdminOverview
from accountable.auth.local import LocalSessionStore
from accountable.auth.resolver import AdminSecrets, IdentityResolver
from accountable.backend.memory import MemoryBackend
from accountable.backend.models import Profile, Task, TaskStatus
from accountable.backend.protocol import Backend, DataService
from accountable.backend.rest import RestBackend
from accountable.config import AppConfig
from accountable.connection import ServiceEndpoint, resolve_endpoint
from accountable.dashboard import Dashboard, DeadlineMonitor
from accountable.errors import Unauthorized
from accountable.identity import AdminSession, Identity, User
from accountable.notifications import LogNotifier, Notifier
from accountable.routes import build_route_table
from accountable.routing import Router
from accountable.scheduler import CancelToken, Clock, Scheduler, SystemClock
from accountable.security.lockout import LockoutConfig, LoginLockout
from accountable.shell import AppShell, Screen
from accountable.storage import FileStorage, Storage

logger = logging.getLogger("accountable.app")

SECRET_STORAGE_KEY = "accountable_secret_key"

# Offline demo operator pair, only honoured when no backend is configured
DEMO_ADMIN = AdminSecrets(username="admin", password="admin")


def _secret_key(config: AppConfig, storage: Storage) -> str:
    """The configured signing key, else one generated once per data dir."""
    if config.secret_key:
        return config.secret_key
    stored = storage.get_item(SECRET_STORAGE_KEY)
    if isinstance(stored, str) and stored:
        return stored
    generated = secrets.token_urlsafe(32)
    storage.set_item(SECRET_STORAGE_KEY, generated)
    return generated


def _admin_secrets(config: AppConfig, demo_mode: bool) -> AdminSecrets | None:
    if config.admin_user and config.admin_password:
        return AdminSecrets(config.admin_user, config.admin_password)
    return DEMO_ADMIN if demo_mode else None


def demo_tasks(user_id: str, now: datetime) -> list[Task]:
    """Sample tasks for a fresh demo dashboard."""
    return [
        Task(
            id="demo-1",
            user_id=user_id,
            title="Finish Q3 Report",
            scheduled_at=now + timedelta(days=1),
        ),
        Task(
            id="demo-2",
            user_id=user_id,
            title="Gym Workout",
            scheduled_at=now - timedelta(days=1),
            status=TaskStatus.VERIFIED,
        ),
        Task(
            id="demo-3",
            user_id=user_id,
            title="Clean Garage",
            scheduled_at=now - timedelta(days=2),
            status=TaskStatus.MISSED,
        ),
    ]


class App:
    """Owns one running instance of the app.

    *backend* overrides the endpoint resolution (tests pass a
    ``MemoryBackend``). Without one, a configured or stored endpoint gets a
    ``RestBackend``; with neither the app runs in offline demo mode.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        storage: Storage | None = None,
        backend: Backend | None = None,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.storage = storage if storage is not None else FileStorage(self.config.data_dir)
        self.clock = clock or SystemClock()
        self.notifier = notifier or LogNotifier()

        self.endpoint: ServiceEndpoint | None = resolve_endpoint(self.config, self.storage)
        self._owned_backend: RestBackend | None = None
        if backend is None and self.endpoint is not None:
            backend = self._owned_backend = RestBackend(
                self.endpoint, storage=self.storage, timeout=self.config.http_timeout
            )
        self.backend = backend
        # Stands in for the hosted tables while in demo mode
        self.demo_data = MemoryBackend() if backend is None else None

        lockout = LoginLockout(LockoutConfig.from_app_config(self.config), now=self.clock.now)
        self.resolver = IdentityResolver(
            backend,
            LocalSessionStore(self.storage, _secret_key(self.config, self.storage)),
            admin_secrets=_admin_secrets(self.config, demo_mode=backend is None),
            lockout=lockout,
            demo_delay=self.config.demo_delay if backend is None else 0.0,
        )
        self.router = Router(build_route_table())
        self.shell = AppShell(self.router, self.resolver)
        self.scheduler = Scheduler(self.clock)

        self._seeded: set[str] = set()
        self._dashboard: Dashboard | None = None
        self._monitor: DeadlineMonitor | None = None
        self._identity_subscription = self.resolver.subscribe(self._on_identity)

    @property
    def demo_mode(self) -> bool:
        return self.backend is None

    @property
    def identity(self) -> Identity:
        return self.resolver.identity

    @property
    def screen(self) -> Screen | None:
        return self.shell.screen

    async def start(self, initial_path: str = "/") -> Screen | None:
        """Resolve the identity, then land on *initial_path*."""
        identity = await self.resolver.bootstrap()
        logger.info(
            "Starting in %s mode as %s",
            "demo" if self.demo_mode else "connected",
            type(identity).__name__,
        )
        self.shell.start()
        self.router.navigate(initial_path)
        return self.shell.screen

    def navigate(self, path: str) -> Screen | None:
        self.shell.navigate(path)
        return self.shell.screen

    # -- Dashboard --------------------------------------------------------

    def _data_service(self, user: User) -> DataService:
        if self.backend is not None:
            return self.backend
        assert self.demo_data is not None
        store = self.demo_data
        if user.id not in self._seeded:
            self._seeded.add(user.id)
            store.add_profile(
                Profile(
                    id=user.id,
                    email=user.email,
                    full_name=user.full_name,
                    tier=user.tier,
                    calls_remaining=user.credits,
                )
            )
            now = datetime.fromtimestamp(self.clock.now(), UTC)
            for task in demo_tasks(user.id, now):
                store.add_task(task)
        return store

    async def open_dashboard(self) -> Dashboard:
        """Build the dashboard for the signed-in user and start its monitor.

        Raises ``Unauthorized`` when nobody (or an operator) is signed in.
        """
        user = self.resolver.identity
        if not isinstance(user, User):
            msg = "Sign in to open the dashboard"
            raise Unauthorized(msg)

        self._stop_monitor()
        dashboard = Dashboard(user, self._data_service(user), on_profile=self.resolver.remember_profile)
        await dashboard.load()
        self._dashboard = dashboard
        self._monitor = DeadlineMonitor(
            dashboard,
            self.scheduler,
            self.notifier,
            clock=self.clock,
            poll_interval=self.config.poll_interval,
            lead_time=self.config.reminder_lead,
        )
        self._monitor.start()
        return dashboard

    def _stop_monitor(self) -> None:
        if self._monitor is not None:
            self._monitor.stop()
        self._monitor = None
        self._dashboard = None

    def _on_identity(self, identity: Identity) -> None:
        if self._dashboard is None:
            return
        if not isinstance(identity, User) or identity.id != self._dashboard.user.id:
            logger.info("Identity changed; stopping the deadline monitor")
            self._stop_monitor()

    # -- Admin ------------------------------------------------------------

    async def open_admin(self) -> AdminOverview:
        """Load the admin overview for the current operator."""
        identity = self.resolver.identity
        client: AdminClient | None = None
        if self.endpoint is not None:
            function_url = self.endpoint.function_url(self.config.admin_function)
            match identity:
                case AdminSession(credentials=credentials, access_token=token):
                    client = AdminClient(
                        function_url,
                        self.endpoint.key,
                        credentials=credentials,
                        access_token=token,
                        timeout=self.config.http_timeout,
                    )
                case User(is_admin=True):
                    session = await self.backend.get_session() if self.backend else None
                    client = AdminClient(
                        function_url,
                        self.endpoint.key,
                        access_token=session.access_token if session else None,
                        timeout=self.config.http_timeout,
                    )
                case _:
                    msg = "Admin access required"
                    raise Unauthorized(msg)
        elif not isinstance(identity, AdminSession) and not (isinstance(identity, User) and identity.is_admin):
            msg = "Admin access required"
            raise Unauthorized(msg)

        overview = AdminOverview(client)
        await overview.load()
        return overview

    # -- Lifecycle --------------------------------------------------------

    async def run(self, stop: CancelToken | None = None) -> None:
        """Run scheduled jobs until *stop* is cancelled."""
        await self.scheduler.run_forever(stop)

    async def close(self) -> None:
        self._stop_monitor()
        self.scheduler.cancel_all()
        self._identity_subscription()
        self.shell.close()
        self.resolver.close()
        if self._owned_backend is not None:
            await self._owned_backend.aclose()

