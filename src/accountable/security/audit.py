"""Security audit events.

Small opt-in event channel for authentication and authorization telemetry.
Register a sink to forward events to logs or an alerting system.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from time import time
from typing import Any


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """A structured security event."""

    name: str
    timestamp: float = field(default_factory=time)
    subject: str | None = None
    client: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


type SecurityEventSink = Callable[[SecurityEvent], None]


_sink_lock = threading.Lock()
_sink: SecurityEventSink | None = None


def set_security_event_sink(sink: SecurityEventSink | None) -> None:
    """Set a process-wide sink for security events.

    Pass ``None`` to disable event delivery.
    """
    global _sink
    with _sink_lock:
        _sink = sink


def emit_security_event(
    name: str,
    *,
    subject: str | None = None,
    client: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a best-effort security event to the configured sink.

    *subject* is the account the event is about (user id or admin
    username); *client* identifies the caller (address or key).
    """
    with _sink_lock:
        sink = _sink
    if sink is None:
        return

    sink(SecurityEvent(name=name, subject=subject, client=client, details=details or {}))
