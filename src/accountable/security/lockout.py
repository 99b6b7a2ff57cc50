"""Lockout for repeated admin credential failures.

Two callers share it. Admin elevation keys attempts by the operator
username, and the admin RPC keys them by client host. A key that reaches
``max_failures`` inside ``window_seconds`` is refused for
``base_lock_seconds``; each further failure after the lock expires
multiplies that by ``backoff_multiplier``, capped at ``max_lock_seconds``.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from time import time
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from accountable.config import AppConfig

LOCKED_MESSAGE = "Too many failed attempts. Try again later."


@dataclass(frozen=True, slots=True)
class LockoutConfig:
    """Lockout policy."""

    max_failures: int = 5
    window_seconds: int = 900
    base_lock_seconds: int = 300
    backoff_multiplier: float = 1.0
    max_lock_seconds: int = 3600
    # Stale keys are pruned once this many are tracked
    max_tracked_keys: int = 10_000

    @classmethod
    def from_app_config(cls, config: "AppConfig") -> "LockoutConfig":
        return cls(max_failures=config.lockout_max_failures, base_lock_seconds=config.lockout_seconds)


class LockoutStatus(NamedTuple):
    locked: bool
    retry_after: int


_OPEN = LockoutStatus(False, 0)


@dataclass(slots=True)
class _Attempts:
    failures: int
    first_failure_at: float
    locked_until: float = 0.0


def normalize_key(key: str) -> str:
    """Usernames differing only in case or padding share one counter."""
    return key.strip().lower()


class LoginLockout:
    """Count failed admin credential attempts per key.

    *now* returns epoch seconds; tests pass ``ManualClock.now``.
    """

    __slots__ = ("_config", "_lock", "_now", "_attempts")

    def __init__(
        self,
        config: LockoutConfig | None = None,
        *,
        now: Callable[[], float] = time,
    ) -> None:
        self._config = config or LockoutConfig()
        self._now = now
        self._lock = threading.Lock()
        self._attempts: dict[str, _Attempts] = {}

    @property
    def tracked_keys(self) -> int:
        return len(self._attempts)

    def is_locked(self, key: str) -> LockoutStatus:
        now = self._now()
        with self._lock:
            attempts = self._attempts.get(normalize_key(key))
            if attempts is None or attempts.locked_until <= now:
                return _OPEN
            return LockoutStatus(True, _retry_after(attempts, now))

    def record_success(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(normalize_key(key), None)

    def record_failure(self, key: str) -> LockoutStatus:
        """Count a failed attempt; the result says whether *key* is now locked."""
        cfg = self._config
        now = self._now()
        key = normalize_key(key)
        with self._lock:
            attempts = self._attempts.get(key)
            if attempts is None:
                self._prune(now)
                attempts = self._attempts[key] = _Attempts(failures=0, first_failure_at=now)
            elif attempts.locked_until > now:
                return LockoutStatus(True, _retry_after(attempts, now))
            elif now - attempts.first_failure_at > cfg.window_seconds:
                attempts.failures = 0
                attempts.first_failure_at = now

            attempts.failures += 1
            if attempts.failures < cfg.max_failures:
                return _OPEN

            steps = attempts.failures - cfg.max_failures
            lock_seconds = int(cfg.base_lock_seconds * cfg.backoff_multiplier**steps)
            lock_seconds = min(cfg.max_lock_seconds, max(1, lock_seconds))
            attempts.locked_until = now + lock_seconds
            return LockoutStatus(True, lock_seconds)

    def _prune(self, now: float) -> None:
        if len(self._attempts) < self._config.max_tracked_keys:
            return
        window = self._config.window_seconds
        stale = [
            key
            for key, attempts in self._attempts.items()
            if attempts.locked_until <= now and now - attempts.first_failure_at > window
        ]
        for key in stale:
            del self._attempts[key]


def _retry_after(attempts: _Attempts, now: float) -> int:
    return max(1, int(attempts.locked_until - now))
