"""``accountable serve-admin`` — run the admin RPC under uvicorn.

Needs the backend URL and a service-role key (``ACCOUNTABLE_SERVICE_URL``,
``ACCOUNTABLE_SERVICE_KEY``), since the RPC reads and writes across users.
Operator secrets come from ``ACCOUNTABLE_ADMIN_USER`` and
``ACCOUNTABLE_ADMIN_PASSWORD``; without them only admin session tokens are
accepted.
"""

import argparse
import logging
import sys

import uvicorn

from accountable.admin.rpc import AdminRPC
from accountable.auth.resolver import AdminSecrets
from accountable.backend.rest import RestBackend
from accountable.config import AppConfig
from accountable.connection import resolve_endpoint
from accountable.security.lockout import LockoutConfig, LoginLockout
from accountable.storage import FileStorage

logger = logging.getLogger("accountable.admin")


def build_rpc(config: AppConfig) -> AdminRPC:
    endpoint = resolve_endpoint(config, FileStorage(config.data_dir))
    if endpoint is None:
        print("Error: set ACCOUNTABLE_SERVICE_URL and ACCOUNTABLE_SERVICE_KEY.", file=sys.stderr)
        raise SystemExit(1)

    secrets = None
    if config.admin_user and config.admin_password:
        secrets = AdminSecrets(config.admin_user, config.admin_password)
    else:
        logger.warning("No operator secrets configured; only admin session tokens are accepted")

    return AdminRPC(
        RestBackend(endpoint, timeout=config.http_timeout),
        secrets=secrets,
        lockout=LoginLockout(LockoutConfig.from_app_config(config)),
    )


def run_serve(args: argparse.Namespace, config: AppConfig) -> None:
    rpc = build_rpc(config)
    uvicorn.run(rpc, host=args.host, port=args.port, log_level=config.log_level.lower())
