"""Accountable CLI — route inspection, setup, and operator tools.

Entry point registered as ``accountable`` in ``pyproject.toml``::

    [project.scripts]
    accountable = "accountable.cli:main"
"""

import argparse
import logging
import sys

from accountable.config import AppConfig


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``accountable`` command."""
    parser = argparse.ArgumentParser(
        prog="accountable",
        description="Accountable: scheduled tasks verified by a human call.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: from config)")
    parser.add_argument("--data-dir", default=None, help="Directory for local artifacts")
    subparsers = parser.add_subparsers(dest="command")

    # -- accountable routes -----------------------------------------------
    subparsers.add_parser("routes", help="List the route table in resolution order")

    # -- accountable resolve ----------------------------------------------
    resolve_parser = subparsers.add_parser("resolve", help="Show what a path renders for an identity")
    resolve_parser.add_argument("path", help="Location, e.g. /dashboard or #/blog/2")
    resolve_parser.add_argument(
        "--as",
        dest="identity",
        choices=["anonymous", "user", "admin-user", "admin"],
        default="anonymous",
        help="Identity to evaluate the guard with",
    )

    # -- accountable setup ------------------------------------------------
    setup_parser = subparsers.add_parser("setup", help="Store or clear the backend connection")
    setup_parser.add_argument("url", nargs="?", help="Backend base URL")
    setup_parser.add_argument("key", nargs="?", help="Publishable (anon) key")
    setup_parser.add_argument(
        "--discover",
        action="store_true",
        help="Fetch the key from the backend's public-config function",
    )
    setup_parser.add_argument("--disconnect", action="store_true", help="Forget the stored connection")

    # -- accountable stats / tasks / verify -------------------------------
    for name, help_text in (
        ("stats", "Show admin overview figures"),
        ("tasks", "List scheduled tasks awaiting verification"),
        ("verify", "Mark a task verified"),
    ):
        admin_parser = subparsers.add_parser(name, help=help_text)
        if name == "verify":
            admin_parser.add_argument("task_id", help="Task id")
        admin_parser.add_argument("--username", default=None, help="Operator username")
        admin_parser.add_argument("--password", default=None, help="Operator password")

    # -- accountable serve-admin ------------------------------------------
    serve_parser = subparsers.add_parser("serve-admin", help="Run the admin RPC server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind host address")
    serve_parser.add_argument("--port", type=int, default=8787, help="Bind port number")

    # -- accountable hash-secret ------------------------------------------
    hash_parser = subparsers.add_parser("hash-secret", help="Hash an operator secret with argon2")
    hash_parser.add_argument("secret", nargs="?", help="Secret to hash (prompted when omitted)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    overrides: dict[str, object] = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    config = AppConfig.from_env(**overrides)
    _configure_logging(args.log_level or config.log_level)

    if args.command == "routes":
        from accountable.cli._routes import run_routes

        run_routes(args)
    elif args.command == "resolve":
        from accountable.cli._resolve import run_resolve

        run_resolve(args)
    elif args.command == "setup":
        from accountable.cli._setup import run_setup

        run_setup(args, config)
    elif args.command in ("stats", "tasks", "verify"):
        from accountable.cli._admin import run_admin

        run_admin(args, config)
    elif args.command == "serve-admin":
        from accountable.cli._serve import run_serve

        run_serve(args, config)
    elif args.command == "hash-secret":
        from accountable.cli._admin import run_hash_secret

        run_hash_secret(args)
