"""Form validation — composable rules, clean results.

Usage::

    from accountable.validation import validate, required, max_length, iso_datetime

    result = validate(form, {
        "title": [required, max_length(200)],
        "scheduled_at": [required, iso_datetime],
    })
    if not result:
        raise ValidationError(result.errors)
"""

from collections.abc import Mapping
from dataclasses import dataclass

from accountable.errors import ValidationError
from accountable.validation.rules import (
    Validator,
    email,
    iso_datetime,
    max_length,
    min_length,
    required,
    url,
)

__all__ = [
    "ValidationResult",
    "Validator",
    "email",
    "ensure_valid",
    "iso_datetime",
    "max_length",
    "min_length",
    "required",
    "url",
    "validate",
]


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """The outcome of validating form data against a set of rules.

    Falsy when invalid, so ``if not result:`` reads naturally. ``data``
    holds the stripped values of the fields that passed.
    """

    data: dict[str, str]
    errors: dict[str, list[str]]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.is_valid


def validate(
    data: Mapping[str, str | None],
    rules: dict[str, list[Validator]],
) -> ValidationResult:
    """Validate *data* against *rules*.

    Optional fields simply omit ``required``; an empty optional field skips
    its remaining rules. A failing ``required`` stops further checks on that
    field.
    """
    errors: dict[str, list[str]] = {}
    cleaned: dict[str, str] = {}

    for field_name, validators in rules.items():
        value = (data.get(field_name) or "").strip()

        field_errors: list[str] = []
        for validator in validators:
            if not value and validator is not required:
                continue
            error = validator(value)
            if error is not None:
                field_errors.append(error)
                if validator is required:
                    break

        if field_errors:
            errors[field_name] = field_errors
        else:
            cleaned[field_name] = value

    return ValidationResult(data=cleaned, errors=errors)


def ensure_valid(
    data: Mapping[str, str | None],
    rules: dict[str, list[Validator]],
) -> dict[str, str]:
    """Validate and return the cleaned data, or raise ``ValidationError``."""
    result = validate(data, rules)
    if not result:
        raise ValidationError(result.errors)
    return result.data
