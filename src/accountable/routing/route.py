"""Route, Location and RouteMatch frozen dataclasses."""

from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

# Prefix that marks a named parameter segment: ``/blog/:id``
PARAM_MARKER = ":"


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route pattern.

    Static:  ``/pricing``  (is_param=False)
    Param:   ``/:id``      (is_param=True, param_name="id")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None


@dataclass(frozen=True, slots=True)
class RouteDefinition:
    """A static pattern paired with the view it renders.

    Declared once at startup and never mutated. ``view`` is any hashable
    identifier; the application uses ``accountable.guard.View``.
    """

    pattern: str
    view: Hashable
    name: str | None = None

    @property
    def is_literal(self) -> bool:
        """True when the pattern has no parameter segments."""
        return PARAM_MARKER not in self.pattern


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: RouteDefinition
    params: dict[str, str]


@dataclass(frozen=True, slots=True)
class Location:
    """The parsed result of one navigation.

    ``view`` is ``None`` when no route matched the path. ``params`` is a
    read-only copy of the bound parameters.
    """

    pathname: str
    params: Mapping[str, str] = field(default_factory=dict)
    view: Hashable | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def matched(self) -> bool:
        return self.view is not None
