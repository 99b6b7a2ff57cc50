"""Security utilities — audit events, login lockout, operator secrets.

Audit events::

    from accountable.security import set_security_event_sink

    set_security_event_sink(lambda event: log.warning("%s", event.name))

Operator secrets (argon2 via ``argon2-cffi``)::

    from accountable.security import hash_secret, verify_secret

    hashed = hash_secret("my-password")
    ok = verify_secret("my-password", hashed)
"""

from accountable.security.audit import SecurityEvent, emit_security_event, set_security_event_sink
from accountable.security.lockout import LockoutConfig, LockoutStatus, LoginLockout
from accountable.security.passwords import hash_secret, is_hashed, verify_secret

__all__ = [
    "LockoutConfig",
    "LockoutStatus",
    "LoginLockout",
    "SecurityEvent",
    "emit_security_event",
    "hash_secret",
    "is_hashed",
    "set_security_event_sink",
    "verify_secret",
]
