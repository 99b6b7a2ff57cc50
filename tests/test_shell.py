"""Tests for accountable.shell — guard re-evaluation on one event queue."""

import pytest

from accountable.auth.resolver import IdentityResolver
from accountable.backend.memory import MemoryBackend
from accountable.errors import ConfigurationError
from accountable.guard import View
from accountable.identity import ANONYMOUS, AdminCredentials, AdminSession, Identity, User
from accountable.routing import RouteDefinition, Router, RouteTable, Subscription
from accountable.shell import AppShell, Screen, StaticIdentity


def _shell(router: Router, identity=ANONYMOUS) -> AppShell:
    shell = AppShell(router, StaticIdentity(identity))
    shell.start()
    return shell


class TestNavigation:
    def test_start_renders_landing(self, router: Router) -> None:
        shell = _shell(router)
        assert shell.screen is not None
        assert shell.screen.view is View.LANDING

    def test_anonymous_dashboard_lands_on_auth(self, router: Router) -> None:
        shell = _shell(router)
        shell.navigate("/dashboard")
        assert router.current_location().pathname == "/auth"
        assert shell.screen.view is View.AUTH  # type: ignore[union-attr]

    def test_admin_user_renders_admin(self, router: Router) -> None:
        shell = _shell(router, User(id="u", is_admin=True))
        shell.navigate("/admin")
        assert shell.screen.view is View.ADMIN  # type: ignore[union-attr]

    def test_anonymous_admin_follows_two_hops(self, router: Router) -> None:
        shell = _shell(router)
        shell.navigate("/admin")
        assert router.current_location().pathname == "/auth"

    def test_admin_session_on_auth_goes_to_admin(self, router: Router) -> None:
        shell = _shell(router, AdminSession(username="admin"))
        shell.navigate("/auth")
        assert shell.screen.view is View.ADMIN  # type: ignore[union-attr]

    def test_unmatched_path_redirects_home(self, router: Router) -> None:
        shell = _shell(router)
        shell.navigate("/nowhere")
        assert router.current_location().pathname == "/"
        assert shell.screen.view is View.LANDING  # type: ignore[union-attr]

    def test_blog_post_resolves(self, router: Router) -> None:
        shell = _shell(router)
        shell.navigate("#/blog/2")
        assert shell.screen.view is View.BLOG_POST  # type: ignore[union-attr]
        assert shell.screen.post.id == 2  # type: ignore[union-attr]

    @pytest.mark.parametrize("path", ["/blog/999", "/blog/abc"])
    def test_unknown_blog_post_redirects_home(self, router: Router, path: str) -> None:
        shell = _shell(router)
        shell.navigate(path)
        assert router.current_location().pathname == "/"

    def test_screens_are_published_once_per_change(self, router: Router) -> None:
        shell = _shell(router)
        screens: list[Screen] = []
        shell.subscribe(screens.append)
        shell.navigate("/pricing")
        shell.navigate("/pricing")
        shell.navigate("/dashboard")
        assert [s.view for s in screens] == [View.PRICING, View.AUTH]

    def test_redirect_loop_is_a_configuration_error(self) -> None:
        table = RouteTable([
            RouteDefinition("/", View.LANDING),
            RouteDefinition("/dashboard", View.DASHBOARD),
            RouteDefinition("/auth", View.DASHBOARD),
        ])
        shell = _shell(Router(table))
        with pytest.raises(ConfigurationError):
            shell.navigate("/dashboard")


class TestIdentityChanges:
    @pytest.mark.anyio
    async def test_expiry_on_dashboard_redirects_without_navigation(
        self, router: Router, resolver: IdentityResolver, backend: MemoryBackend
    ) -> None:
        await resolver.bootstrap()
        shell = AppShell(router, resolver)
        shell.start()
        await resolver.sign_in("ada@example.com", "correct-horse")
        shell.navigate("/dashboard")
        assert shell.screen.view is View.DASHBOARD  # type: ignore[union-attr]

        await backend.expire_session()

        assert router.current_location().pathname == "/auth"
        assert shell.screen.view is View.AUTH  # type: ignore[union-attr]
        assert shell.screen.identity == ANONYMOUS  # type: ignore[union-attr]

    @pytest.mark.anyio
    async def test_sign_in_on_auth_moves_to_dashboard(
        self, router: Router, resolver: IdentityResolver
    ) -> None:
        await resolver.bootstrap()
        shell = AppShell(router, resolver)
        shell.start()
        shell.navigate("/auth")

        await resolver.sign_in("ada@example.com", "correct-horse")

        assert shell.screen.view is View.DASHBOARD  # type: ignore[union-attr]

    @pytest.mark.anyio
    async def test_elevation_on_admin_login_moves_to_admin(
        self, router: Router, resolver: IdentityResolver
    ) -> None:
        shell = AppShell(router, resolver)
        shell.start()
        shell.navigate("/admin/login")
        assert shell.screen.view is View.ADMIN_LOGIN  # type: ignore[union-attr]

        await resolver.elevate_to_admin(AdminCredentials("admin", "admin"))

        assert router.current_location().pathname == "/admin"
        assert shell.screen.view is View.ADMIN  # type: ignore[union-attr]

    @pytest.mark.anyio
    async def test_sign_out_from_admin(self, router: Router, resolver: IdentityResolver) -> None:
        shell = AppShell(router, resolver)
        shell.start()
        await resolver.elevate_to_admin(AdminCredentials("admin", "admin"))
        shell.navigate("/admin")

        await resolver.sign_out()

        assert router.current_location().pathname == "/auth"

    @pytest.mark.parametrize("identity_first", [True, False])
    def test_same_tick_events_settle_on_final_state(self, router: Router, identity_first: bool) -> None:
        source = _Identities(User(id="u"))
        shell = AppShell(router, source)
        shell.start()

        def expire_and_navigate(screen: Screen) -> None:
            if screen.view is not View.PRICING or screen.identity == ANONYMOUS:
                return
            if identity_first:
                source.set(ANONYMOUS)
                router.navigate("/dashboard")
            else:
                router.navigate("/dashboard")
                source.set(ANONYMOUS)

        shell.subscribe(expire_and_navigate)
        shell.navigate("/pricing")

        assert router.current_location().pathname == "/auth"
        assert shell.screen.view is View.AUTH  # type: ignore[union-attr]
        assert shell.identity == ANONYMOUS

    def test_close_stops_reacting(self, router: Router) -> None:
        shell = _shell(router)
        shell.close()
        router.navigate("/pricing")
        assert shell.screen.view is View.LANDING  # type: ignore[union-attr]


class _Identities:
    """An identity source the test can change by hand."""

    def __init__(self, identity: Identity) -> None:
        self.identity = identity
        self._listeners: list = []

    def subscribe(self, listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def set(self, identity: Identity) -> None:
        if identity == self.identity:
            return
        self.identity = identity
        for listener in list(self._listeners):
            listener(identity)
