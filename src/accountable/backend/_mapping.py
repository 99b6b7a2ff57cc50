"""Row-to-dataclass mapping with type coercion.

Converts JSON rows returned by the storage service into typed frozen
dataclasses, and back. Driven by dataclass field introspection.

The REST API hands back timestamps as ISO strings, enums as plain strings
and, depending on the column, numbers as strings. Fields annotated as
``datetime``, ``int`` or a ``StrEnum`` are coerced accordingly.
"""

import dataclasses
import types
from datetime import UTC, datetime
from enum import Enum
from typing import Any, get_args, get_origin


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


_COERCIBLE: dict[type, Any] = {
    int: lambda v: int(v) if v != "" else 0,
    bool: lambda v: v.lower() in ("true", "t", "1") if isinstance(v, str) else bool(v),
    str: str,
    datetime: parse_timestamp,
}


def _target(annotation: Any) -> Any:
    """Resolve a field annotation to a coercion target, or ``None``."""
    origin = get_origin(annotation)
    if origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        annotation = args[0] if len(args) == 1 else None
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return annotation
    return annotation if annotation in _COERCIBLE else None


def _coerce(value: Any, target: Any) -> Any:
    if target is None or value is None:
        return value
    if isinstance(target, type) and issubclass(target, Enum):
        return value if isinstance(value, target) else target(value)
    if isinstance(value, target):
        return value
    return _COERCIBLE[target](value)


def map_row[T](cls: type[T], row: dict[str, Any]) -> T:
    """Map a JSON row to a frozen dataclass instance.

    Keys that are not dataclass fields are ignored, so ``select=*`` is fine
    even when the table has more columns than the model.

    Raises ``TypeError`` if required fields are missing from the row.
    """
    if not dataclasses.is_dataclass(cls):
        msg = f"{cls.__name__} is not a dataclass"
        raise TypeError(msg)

    targets = {f.name: _target(f.type) for f in dataclasses.fields(cls)}
    values = {k: _coerce(v, targets[k]) for k, v in row.items() if k in targets}
    return cls(**values)


def map_rows[T](cls: type[T], rows: list[dict[str, Any]]) -> list[T]:
    """Map a list of JSON rows to dataclass instances."""
    return [map_row(cls, row) for row in rows]


def to_row(obj: Any) -> dict[str, Any]:
    """Serialise a model dataclass into a JSON-ready row."""
    row: dict[str, Any] = {}
    for f in dataclasses.fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        row[f.name] = value
    return row
