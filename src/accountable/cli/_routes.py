"""``accountable routes`` — list the route table.

Prints every route in declaration order, which is also resolution order.
"""

import argparse

from accountable.routes import build_route_table


def run_routes(args: argparse.Namespace) -> None:
    table = build_route_table()

    rows = [(route.pattern, str(route.view), route.name or "") for route in table]
    max_pattern = max(max(len(r[0]) for r in rows), 7)  # "PATTERN" header
    max_view = max(max(len(r[1]) for r in rows), 4)  # "VIEW" header

    fmt = f"{{:<{max_pattern}}}  {{:<{max_view}}}  {{}}"
    print(fmt.format("PATTERN", "VIEW", "NAME"))
    print("-" * (max_pattern + max_view + 4 + max(len(r[2]) for r in rows)))
    for pattern, view, name in rows:
        print(fmt.format(pattern, view, name))
