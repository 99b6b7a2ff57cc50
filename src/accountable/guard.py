"""View guard — decides whether a view renders or redirects.

``evaluate`` is a pure function of ``(view, identity)``. The shell calls
it after every navigation and every identity change, since either can
invalidate a decision made earlier.

Policy, first matching row wins:

    ADMIN        admin session or admin user   render
    ADMIN        anyone else                   -> /dashboard
    DASHBOARD    user                          render
    DASHBOARD    anyone else                   -> /auth
    AUTH         user / admin session          -> /dashboard / /admin
    AUTH         anonymous                     render
    ADMIN_LOGIN  already admin                 -> /admin
    ADMIN_LOGIN  anyone else                   render
    public       anyone                        render
"""

from dataclasses import dataclass
from enum import StrEnum

from accountable.identity import AdminSession, Anonymous, Identity, User, has_admin_role


class View(StrEnum):
    LANDING = "landing"
    PRICING = "pricing"
    BLOG_POST = "blog_post"
    SETUP = "setup"
    AUTH = "auth"
    ADMIN_LOGIN = "admin_login"
    DASHBOARD = "dashboard"
    ADMIN = "admin"


PUBLIC_VIEWS: frozenset[View] = frozenset({View.LANDING, View.PRICING, View.BLOG_POST, View.SETUP})

LANDING_PATH = "/"
AUTH_PATH = "/auth"
DASHBOARD_PATH = "/dashboard"
ADMIN_PATH = "/admin"


@dataclass(frozen=True, slots=True)
class Render:
    view: View


@dataclass(frozen=True, slots=True)
class Redirect:
    to: str


type Outcome = Render | Redirect


def evaluate(view: View, identity: Identity) -> Outcome:
    """Return the render outcome for *view* given *identity*."""
    if view is View.ADMIN:
        if has_admin_role(identity):
            return Render(view)
        return Redirect(DASHBOARD_PATH)

    if view is View.DASHBOARD:
        if isinstance(identity, User):
            return Render(view)
        return Redirect(AUTH_PATH)

    if view is View.AUTH:
        match identity:
            case User():
                return Redirect(DASHBOARD_PATH)
            case AdminSession():
                return Redirect(ADMIN_PATH)
            case Anonymous():
                return Render(view)

    if view is View.ADMIN_LOGIN:
        if has_admin_role(identity):
            return Redirect(ADMIN_PATH)
        return Render(view)

    return Render(view)
