"""Accountable exception hierarchy.

Shared across the router, resolver, backends and the admin RPC so every
module raises and catches the same types.
"""


class AccountableError(Exception):
    """Base for all accountable-specific errors."""


class ConfigurationError(AccountableError):
    """Raised when application wiring or configuration is invalid.

    Typically raised at startup, or by the shell when the route/guard
    tables produce a redirect loop.
    """


class Unauthorized(AccountableError):  # noqa: N818
    """Bad credentials or insufficient role.

    ``retry_after`` is set when the failure comes from a login lockout.
    """

    def __init__(self, detail: str = "Unauthorized", *, retry_after: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.retry_after = retry_after


class ServiceUnavailable(AccountableError):  # noqa: N818
    """The identity/storage backend or an edge function could not be reached.

    Callers degrade to a safe default (anonymous identity, cached data,
    demo figures) instead of letting this propagate to the user.
    """


class NotFound(AccountableError):  # noqa: N818
    """No route matched, or a referenced record does not exist."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(AccountableError):
    """Malformed form input. Surfaced inline, field by field.

    ``errors`` maps field names to lists of messages, the same shape
    ``accountable.validation.validate`` produces.
    """

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        fields = ", ".join(sorted(errors))
        super().__init__(f"Invalid input: {fields}")
