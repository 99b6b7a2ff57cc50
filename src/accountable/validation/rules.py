"""Validation rules for the auth, setup and task forms.

Each validator is a callable with the signature::

    def rule(value: str) -> str | None:
        '''Return error message, or None if valid.'''

Parameterised validators are factories returning such a callable.
"""

import re
from collections.abc import Callable
from datetime import datetime

# Type alias for a validator function
type Validator = Callable[[str], str | None]


def required(value: str) -> str | None:
    """Field must be present and non-blank."""
    if not value or not value.strip():
        return "This field is required"
    return None


def max_length(n: int) -> Validator:
    """String must be at most *n* characters."""

    def check(value: str) -> str | None:
        if len(value) > n:
            return f"Must be at most {n} characters"
        return None

    return check


def min_length(n: int) -> Validator:
    """String must be at least *n* characters."""

    def check(value: str) -> str | None:
        if len(value) < n:
            return f"Must be at least {n} characters"
        return None

    return check


# Structure only, not deliverability
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

# Scheme plus a host; the setup form only accepts http(s) endpoints
_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


def email(value: str) -> str | None:
    """Value must look like an email address."""
    if not _EMAIL_RE.match(value):
        return "Must be a valid email address"
    return None


def url(value: str) -> str | None:
    """Value must be an http(s) URL."""
    if not _URL_RE.match(value):
        return "Must be a valid URL"
    return None


def iso_datetime(value: str) -> str | None:
    """Value must be an ISO-8601 date and time (``2024-05-01T14:00``)."""
    if "T" not in value and " " not in value.strip():
        return "Must include a date and a time"
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return "Must be a valid date and time"
    return None
