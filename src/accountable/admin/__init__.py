"""Admin tooling — the privileged RPC and the client the admin view uses."""

from accountable.admin.client import AdminClient, AdminOverview, demo_stats
from accountable.admin.models import AdminStats, Signup, TaskOverview
from accountable.admin.rpc import AdminRPC, compute_stats

__all__ = [
    "AdminClient",
    "AdminOverview",
    "AdminRPC",
    "AdminStats",
    "Signup",
    "TaskOverview",
    "compute_stats",
    "demo_stats",
]
