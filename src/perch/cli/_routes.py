"""``perch routes`` — list routes in precedence order.

Resolves an import string to a perch App and prints every route with
its declared methods, public path, and origin.
"""

import argparse
import sys

from perch.cli._resolve import resolve_app
from perch.errors import ConfigurationError


def run_routes(args: argparse.Namespace) -> None:
    """Print a METHODS / PATH / ORIGIN table for ``args.app``."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        table = app.table
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if not table.entries:
        print("No routes registered.")
        return

    rows: list[tuple[str, str, str]] = []
    for entry in table.entries:
        methods_str = ", ".join(sorted(entry.handler.declared)) or "-"
        rows.append((methods_str, table.url_for(entry), entry.handler.origin))

    max_methods = max(max(len(r[0]) for r in rows), 7)  # "METHODS" header
    max_path = max(max(len(r[1]) for r in rows), 4)  # "PATH" header

    fmt = f"{{:<{max_methods}}}  {{:<{max_path}}}  {{}}"
    print(fmt.format("METHODS", "PATH", "ORIGIN"))
    sep_len = max_methods + max_path + 4 + max(len(r[2]) for r in rows)
    print("-" * min(sep_len, 80))
    for methods_str, path, origin in rows:
        print(fmt.format(methods_str, path, origin))
