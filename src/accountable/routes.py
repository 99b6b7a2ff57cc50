"""The application's route table.

Declaration order is resolution order. ``/admin/login`` is the explicit
admin entry; it is a literal route, so it never collides with ``/admin``.
"""

from accountable.guard import View
from accountable.routing import RouteDefinition, RouteTable

ROUTES: tuple[RouteDefinition, ...] = (
    RouteDefinition("/", View.LANDING, name="home"),
    RouteDefinition("/pricing", View.PRICING, name="pricing"),
    RouteDefinition("/blog/:id", View.BLOG_POST, name="blog"),
    RouteDefinition("/setup", View.SETUP, name="setup"),
    RouteDefinition("/auth", View.AUTH, name="auth"),
    RouteDefinition("/dashboard", View.DASHBOARD, name="dashboard"),
    RouteDefinition("/admin/login", View.ADMIN_LOGIN, name="admin-login"),
    RouteDefinition("/admin", View.ADMIN, name="admin"),
)


def build_route_table() -> RouteTable:
    return RouteTable(ROUTES)
