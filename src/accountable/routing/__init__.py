"""Routing — declaration-ordered route table and a subscribable router.

Routes are declared at startup into an immutable table. The router maps
location strings to a view plus path parameters.
"""

from accountable.routing.route import (
    PARAM_MARKER,
    Location,
    PathSegment,
    RouteDefinition,
    RouteMatch,
)
from accountable.routing.router import (
    Router,
    RouteTable,
    Subscription,
    match,
    normalize_path,
    parse_pattern,
)

__all__ = [
    "PARAM_MARKER",
    "Location",
    "PathSegment",
    "RouteDefinition",
    "RouteMatch",
    "RouteTable",
    "Router",
    "Subscription",
    "match",
    "normalize_path",
    "parse_pattern",
]
