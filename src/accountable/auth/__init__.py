"""Identity resolution — sessions, the remember-me artifact, admin elevation."""

from accountable.auth.local import LocalSessionStore
from accountable.auth.resolver import AdminSecrets, IdentityListener, IdentityResolver

__all__ = [
    "AdminSecrets",
    "IdentityListener",
    "IdentityResolver",
    "LocalSessionStore",
]
