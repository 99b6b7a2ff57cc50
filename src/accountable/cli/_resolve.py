"""``accountable resolve`` — what a location renders for a given identity.

Runs the real shell against a fixed identity and prints each hop of the
redirect chain, then the view that finally renders.
"""

import argparse
import sys

from accountable.errors import ConfigurationError
from accountable.identity import ANONYMOUS, AdminSession, Identity, User
from accountable.routes import build_route_table
from accountable.routing import Location, Router
from accountable.shell import AppShell, Screen, StaticIdentity

IDENTITIES: dict[str, Identity] = {
    "anonymous": ANONYMOUS,
    "user": User(id="cli-user", email="user@example.com"),
    "admin-user": User(id="cli-admin", email="admin@example.com", is_admin=True),
    "admin": AdminSession(username="admin"),
}


def trace(path: str, identity: Identity) -> tuple[list[str], Screen | None]:
    """Return the locations visited while resolving *path*, and the screen."""
    router = Router(build_route_table())
    visited: list[str] = []

    def record(location: Location) -> None:
        visited.append(location.pathname)

    # Ahead of the shell, so each hop is recorded before its redirect supersedes it
    with router.subscribe(record):
        shell = AppShell(router, StaticIdentity(identity))
        shell.start()
        shell.navigate(path)
        shell.close()
    return visited, shell.screen


def run_resolve(args: argparse.Namespace) -> None:
    identity = IDENTITIES[args.identity]
    try:
        visited, screen = trace(args.path, identity)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    print(" -> ".join(visited))
    if screen is None:
        print("Nothing rendered.", file=sys.stderr)
        raise SystemExit(1)
    line = f"renders {screen.view} at {screen.location.pathname}"
    if screen.post is not None:
        line += f" ({screen.post.title})"
    print(line)
