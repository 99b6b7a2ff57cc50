"""``accountable setup`` — store, discover or clear the backend connection."""

import argparse
import sys

import anyio

from accountable.config import AppConfig
from accountable.connection import discover_key, disconnect, resolve_endpoint, save_endpoint
from accountable.errors import ValidationError
from accountable.storage import FileStorage


def run_setup(args: argparse.Namespace, config: AppConfig) -> None:
    storage = FileStorage(config.data_dir)

    if args.disconnect:
        disconnect(storage)
        print("Disconnected. The app now runs in demo mode.")
        return

    if not args.url:
        endpoint = resolve_endpoint(config, storage)
        if endpoint is None:
            print("Not connected (demo mode).")
        else:
            print(f"Connected to {endpoint.url}")
        return

    key = args.key
    if args.discover:
        result = anyio.run(discover_key, args.url)
        print(result.message)
        if result.key is None:
            raise SystemExit(1)
        key = result.key

    try:
        endpoint = save_endpoint(storage, args.url, key or "")
    except ValidationError as exc:
        for field, messages in exc.errors.items():
            print(f"{field}: {', '.join(messages)}", file=sys.stderr)
        raise SystemExit(1) from exc
    print(f"Saved connection to {endpoint.url}")
