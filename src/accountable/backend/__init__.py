"""Backend access — the hosted identity/storage service and its stand-ins.

``RestBackend`` talks to the real service; ``MemoryBackend`` serves the
offline demo and the test suite. Both satisfy the protocols in
``accountable.backend.protocol``.
"""

from accountable.backend.memory import MemoryBackend
from accountable.backend.models import AuthSession, Profile, SubscriptionTier, Task, TaskStatus
from accountable.backend.protocol import AdminStore, Backend, DataService, IdentityService
from accountable.backend.rest import RestBackend

__all__ = [
    "AdminStore",
    "AuthSession",
    "Backend",
    "DataService",
    "IdentityService",
    "MemoryBackend",
    "Profile",
    "RestBackend",
    "SubscriptionTier",
    "Task",
    "TaskStatus",
]
