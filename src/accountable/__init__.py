"""Accountable — schedule a task, get a human verification call.

A hash-routed app shell over a hosted identity/storage service: public
marketing views, a customer dashboard for scheduling verification calls,
and an operator admin view backed by a privileged RPC.

Basic usage::

    from accountable import App, AppConfig

    app = App(AppConfig.from_env())
    screen = await app.start("/dashboard")
    screen.view  # View.AUTH until someone signs in

Without a configured or stored endpoint the app runs in offline demo mode
against an in-process backend.
"""

__version__ = "0.1.0"
__all__ = [
    "AccountableError",
    "AdminSession",
    "Anonymous",
    "App",
    "AppConfig",
    "ConfigurationError",
    "Identity",
    "NotFound",
    "Router",
    "ServiceUnavailable",
    "Unauthorized",
    "User",
    "ValidationError",
    "View",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import accountable`` fast while providing a clean top-level API.
    """
    if name == "App":
        from accountable.app import App

        return App

    if name == "AppConfig":
        from accountable.config import AppConfig

        return AppConfig

    if name == "Router":
        from accountable.routing import Router

        return Router

    if name == "View":
        from accountable.guard import View

        return View

    if name in ("AdminSession", "Anonymous", "Identity", "User"):
        from accountable import identity as _identity

        return getattr(_identity, name)

    if name in (
        "AccountableError",
        "ConfigurationError",
        "NotFound",
        "ServiceUnavailable",
        "Unauthorized",
        "ValidationError",
    ):
        from accountable import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
