"""Operator secret hashing and verification.

Admin secrets come from the environment. Operators may store them either
as plaintext or as an argon2id PHC string produced by
``accountable hash-secret``; ``verify_secret`` accepts both.

Usage::

    from accountable.security.passwords import hash_secret, verify_secret

    hashed = hash_secret("s3cret")
    verify_secret("s3cret", hashed)    # True
    verify_secret("s3cret", "s3cret")  # True, constant-time plaintext compare
"""

import hmac

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_ARGON2_PREFIX = "$argon2"

_hasher = PasswordHasher()


def is_hashed(secret: str) -> bool:
    """True if *secret* is an argon2 PHC string rather than plaintext."""
    return secret.startswith(_ARGON2_PREFIX)


def hash_secret(secret: str) -> str:
    """Hash *secret* with argon2id, returning a PHC-format string."""
    return _hasher.hash(secret)


def verify_secret(candidate: str, configured: str) -> bool:
    """Check *candidate* against a configured plaintext or argon2 secret.

    Never raises on malformed hashes; they simply fail verification.
    """
    if is_hashed(configured):
        try:
            return _hasher.verify(configured, candidate)
        except (VerificationError, InvalidHashError):
            return False
    return hmac.compare_digest(candidate.encode("utf-8"), configured.encode("utf-8"))
