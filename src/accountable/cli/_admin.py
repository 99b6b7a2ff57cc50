"""``accountable stats|tasks|verify`` and ``hash-secret`` — operator tools."""

import argparse
import getpass
import sys

import anyio

from accountable.admin.client import AdminClient
from accountable.admin.models import AdminStats, TaskOverview
from accountable.config import AppConfig
from accountable.connection import resolve_endpoint
from accountable.errors import ServiceUnavailable, Unauthorized
from accountable.identity import AdminCredentials
from accountable.security.passwords import hash_secret, is_hashed
from accountable.storage import FileStorage


def _print_stats(stats: AdminStats) -> None:
    print(f"Total subscribers: {stats.total_users:,}")
    print(f"MRR:               ${stats.mrr:,}")
    print(f"Conversion (PRO):  {stats.conversion_rate}%")
    if stats.recent_signups:
        print("Recent signups:")
        for signup in stats.recent_signups:
            print(f"  {signup.created_at:%Y-%m-%d}  {signup.tier:<5}  {signup.email}")


def _print_task(task: TaskOverview) -> None:
    contact = task.whatsapp or task.email or task.user_id
    print(
        f"{task.id}  {task.scheduled_at:%Y-%m-%d %H:%M}  {task.status:<8}  "
        f"{task.title}  [{contact}, {task.calls_remaining} calls]"
    )


async def _run(args: argparse.Namespace, client: AdminClient) -> None:
    async with client:
        if args.command == "stats":
            _print_stats(await client.stats())
        elif args.command == "tasks":
            tasks = await client.tasks()
            if not tasks:
                print("No tasks scheduled.")
            for task in tasks:
                _print_task(task)
        else:
            _print_task(await client.verify_task(args.task_id))


def run_admin(args: argparse.Namespace, config: AppConfig) -> None:
    endpoint = resolve_endpoint(config, FileStorage(config.data_dir))
    if endpoint is None:
        print("Error: no backend configured. Run 'accountable setup URL KEY' first.", file=sys.stderr)
        raise SystemExit(1)

    username = args.username or config.admin_user
    password = args.password or config.admin_password
    if password and is_hashed(password):
        # A stored hash is for the server side; ask for the plaintext
        password = None
    if username and not password:
        password = getpass.getpass("Admin password: ")
    credentials = AdminCredentials(username, password) if username and password else None

    client = AdminClient(
        endpoint.function_url(config.admin_function),
        endpoint.key,
        credentials=credentials,
        timeout=config.http_timeout,
    )
    try:
        anyio.run(_run, args, client)
    except Unauthorized as exc:
        suffix = f" (retry in {exc.retry_after}s)" if exc.retry_after else ""
        print(f"Error: {exc.detail}{suffix}", file=sys.stderr)
        raise SystemExit(1) from exc
    except ServiceUnavailable as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


def run_hash_secret(args: argparse.Namespace) -> None:
    secret = args.secret or getpass.getpass("Secret: ")
    if not secret:
        print("Error: empty secret", file=sys.stderr)
        raise SystemExit(1)
    print(hash_secret(secret))
