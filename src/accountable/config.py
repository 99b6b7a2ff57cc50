"""Application configuration.

One frozen ``AppConfig`` per process, usually built from ``ACCOUNTABLE_*``
environment variables by ``AppConfig.from_env()``.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path

_ENV_PREFIX = "ACCOUNTABLE_"


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(service_url="https://xyz.supabase.co", service_key="...")
    """

    # Hosted backend. Left empty, the app runs in offline demo mode unless
    # an endpoint was stored through the setup view.
    service_url: str = ""
    service_key: str = ""

    # Signs the local "remember me" artifact
    secret_key: str = ""

    # Where the local storage artifacts live
    data_dir: str | Path = ".accountable"

    # Operator secrets for the admin bypass path (plaintext or argon2 hash)
    admin_user: str | None = None
    admin_password: str | None = None

    # Edge function backing the admin dashboard
    admin_function: str = "get-admin-stats"

    # Dashboard polling
    poll_interval: float = 30.0
    reminder_lead: float = 900.0  # Notify this many seconds before a task starts

    # Login lockout for admin elevation
    lockout_max_failures: int = 5
    lockout_seconds: int = 300

    # Simulated latency of the offline demo sign-in
    demo_delay: float = 0.8

    http_timeout: float = 10.0
    log_level: str = "info"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> "AppConfig":
        """Build a config from ``ACCOUNTABLE_*`` environment variables.

        ``ACCOUNTABLE_SERVICE_URL`` sets ``service_url`` and so on. Explicit
        keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type in (int, "int"):
                values[f.name] = int(raw)
            elif f.type in (float, "float"):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]
