"""Hash-style router with declaration-order matching.

Routes are declared once into an immutable ``RouteTable``. The ``Router``
owns the current ``Location`` and notifies subscribers synchronously on
every navigation.

Resolution is order-dependent: the first declared route whose pattern
matches wins. No other priority is expressed, so route tables should
declare literal patterns before parameterised ones that could shadow them.
"""

import logging
from collections.abc import Callable, Hashable, Iterable, Iterator
from types import TracebackType

from accountable.errors import ConfigurationError
from accountable.routing.route import (
    PARAM_MARKER,
    Location,
    PathSegment,
    RouteDefinition,
    RouteMatch,
)

logger = logging.getLogger("accountable.routing")

type LocationListener = Callable[[Location], None]

# Fragment marker carried by links and raw location hashes
_FRAGMENT = "#"


def normalize_path(raw: str) -> str:
    """Return the canonical absolute form of a location string.

    Examples::

        ""              -> "/"
        "#/pricing"     -> "/pricing"
        "dashboard"     -> "/dashboard"
        "/blog/3/"      -> "/blog/3"
    """
    path = raw.strip()
    if path.startswith(_FRAGMENT):
        path = path[len(_FRAGMENT):]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def _split(path: str) -> list[str]:
    if path == "/":
        return []
    return path[1:].split("/")


def parse_pattern(pattern: str) -> tuple[PathSegment, ...]:
    """Parse a route pattern into positional segments.

    Examples::

        "/pricing"  -> (PathSegment("pricing"),)
        "/blog/:id" -> (PathSegment("blog"), PathSegment(":id", is_param=True, param_name="id"))
    """
    segments: list[PathSegment] = []
    for part in _split(normalize_path(pattern)):
        if part.startswith(PARAM_MARKER):
            name = part[len(PARAM_MARKER):]
            if not name:
                msg = f"Route pattern {pattern!r} has a parameter marker with no name."
                raise ConfigurationError(msg)
            segments.append(PathSegment(value=part, is_param=True, param_name=name))
        else:
            segments.append(PathSegment(value=part))
    return tuple(segments)


def _match_one(
    route: RouteDefinition,
    segments: tuple[PathSegment, ...],
    path: str,
    parts: list[str],
) -> dict[str, str] | None:
    """Match a single compiled route. ``None`` means no match."""
    if route.is_literal:
        return {} if normalize_path(route.pattern) == path else None

    if len(segments) != len(parts):
        return None

    params: dict[str, str] = {}
    for segment, part in zip(segments, parts, strict=True):
        if segment.is_param:
            params[segment.param_name or ""] = part
        elif segment.value != part:
            return None
    return params


def match(routes: Iterable[RouteDefinition], path: str) -> RouteMatch | None:
    """Return the first declared route matching *path*, or ``None``.

    A literal pattern matches iff it is string-equal to the normalised
    path. A parameterised pattern matches iff the segment counts are equal
    and every static segment is equal at the same position; parameters bind
    positionally. There is no prefix matching.
    """
    canonical = normalize_path(path)
    parts = _split(canonical)
    for route in routes:
        params = _match_one(route, parse_pattern(route.pattern), canonical, parts)
        if params is not None:
            return RouteMatch(route=route, params=params)
    return None


class RouteTable:
    """An immutable, compiled list of routes in declaration order.

    Usage::

        table = RouteTable([
            RouteDefinition("/", View.LANDING),
            RouteDefinition("/blog/:id", View.BLOG_POST),
        ])
        table.match("/blog/3")  # RouteMatch(params={"id": "3"})
    """

    __slots__ = ("_compiled",)

    def __init__(self, routes: Iterable[RouteDefinition]) -> None:
        self._compiled: tuple[tuple[RouteDefinition, tuple[PathSegment, ...]], ...] = tuple(
            (route, parse_pattern(route.pattern)) for route in routes
        )

    def __iter__(self) -> Iterator[RouteDefinition]:
        return (route for route, _ in self._compiled)

    def __len__(self) -> int:
        return len(self._compiled)

    def match(self, path: str) -> RouteMatch | None:
        """Match against the compiled routes. First declared wins."""
        canonical = normalize_path(path)
        parts = _split(canonical)
        for route, segments in self._compiled:
            params = _match_one(route, segments, canonical, parts)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def resolve(self, path: str) -> Location:
        """Build the ``Location`` for *path*, matched or not."""
        canonical = normalize_path(path)
        result = self.match(canonical)
        if result is None:
            return Location(pathname=canonical)
        return Location(pathname=canonical, params=result.params, view=result.route.view)

    def path_for(self, view: Hashable, **params: str) -> str:
        """Build the path of the first route rendering *view*.

        Raises ``LookupError`` if no route renders it, or ``KeyError`` if a
        parameter is missing.
        """
        for route, segments in self._compiled:
            if route.view != view:
                continue
            if not segments:
                return "/"
            parts = [params[s.param_name or ""] if s.is_param else s.value for s in segments]
            return "/" + "/".join(parts)
        msg = f"No route renders {view!r}"
        raise LookupError(msg)


class Subscription:
    """Handle returned by ``subscribe()``.

    Call it, or use it as a context manager, to deregister the listener.
    Removal is idempotent.
    """

    __slots__ = ("_listeners", "_listener")

    def __init__(self, listeners: list, listener: Callable) -> None:
        self._listeners = listeners
        self._listener = listener

    @property
    def active(self) -> bool:
        return any(entry is self._listener for entry in self._listeners)

    def __call__(self) -> None:
        for i, entry in enumerate(self._listeners):
            if entry is self._listener:
                del self._listeners[i]
                return

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self()


class Router:
    """Owns the current location and broadcasts navigations.

    Single-threaded and synchronous: ``navigate`` resolves the path and
    calls every listener before returning. A navigation issued from inside
    a listener supersedes the one being delivered: the remaining listeners
    skip it and every listener is then called with the newer location
    (last write wins). Listeners that ran before the re-entrant call have
    already seen the superseded location.

    Usage::

        router = Router(table)
        with router.subscribe(lambda loc: print(loc.pathname)):
            router.navigate("/pricing")
    """

    __slots__ = ("_dispatching", "_listeners", "_location", "_pending", "_table")

    def __init__(self, table: RouteTable, initial: str = "/") -> None:
        self._table = table
        self._location = table.resolve(initial)
        self._listeners: list[LocationListener] = []
        self._dispatching = False
        self._pending = False

    @property
    def table(self) -> RouteTable:
        return self._table

    def current_location(self) -> Location:
        """Return the latest parsed location. Never fails."""
        return self._location

    def subscribe(self, listener: LocationListener) -> Subscription:
        """Register *listener* for every navigation."""
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def navigate(self, path: str) -> None:
        """Set the location to *path* and notify listeners.

        Leading fragment markers are stripped; an empty path means ``/``.
        """
        self._location = self._table.resolve(path)
        logger.debug("navigate %s -> %r", self._location.pathname, self._location.view)

        if self._dispatching:
            self._pending = True
            return

        self._dispatching = True
        try:
            while True:
                self._pending = False
                location = self._location
                for listener in list(self._listeners):
                    listener(location)
                    if self._pending:
                        # Superseded: restart with the newer location
                        break
                if not self._pending:
                    break
        finally:
            self._dispatching = False
            self._pending = False

    def href(self, path: str) -> str:
        """Return the link target for *path* (``"#/pricing"``)."""
        return _FRAGMENT + normalize_path(path)
