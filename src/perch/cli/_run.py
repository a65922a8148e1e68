"""``perch run`` — start the server for an app import string."""

import argparse
import sys

from perch.cli._resolve import resolve_app
from perch.errors import ConfigurationError


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app``, build its route table, and serve it.

    Route naming mistakes are reported before the server binds.
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        app._ensure_frozen()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    from perch.server.dev import run_server as serve

    serve(
        app,
        args.host or app.config.host,
        args.port or app.config.port,
        workers=args.workers,
        log_level=app.config.log_level,
    )
