"""Request-path matching against the published route table.

The matcher owns the reference to the current :class:`RouteTable`.
Requests read that reference once and work against that snapshot for
their whole lifetime; a rebuild publishes a new table without touching
the old one, so in-flight requests never see a half-built table.
"""

import threading

from perch.routing.route import NO_MATCH, MatchResult
from perch.routing.table import RouteTable


class Matcher:
    """Matches request paths inside the reserved namespace.

    Usage::

        matcher = Matcher(build_table(sources, prefix="/api"))
        match = matcher.match("/api/blog/42")

    Thread safety:
        ``match()`` is lock-free: it reads one attribute. ``publish()``
        serializes writers so two concurrent rebuilds cannot interleave.
    """

    __slots__ = ("_lock", "_table")

    def __init__(self, table: RouteTable) -> None:
        self._table = table
        self._lock = threading.Lock()

    @property
    def table(self) -> RouteTable:
        """The currently published table snapshot."""
        return self._table

    @property
    def prefix(self) -> str:
        return self._table.prefix

    def publish(self, table: RouteTable) -> RouteTable:
        """Swap in a new table. Returns the table it replaced."""
        with self._lock:
            previous = self._table
            self._table = table
        return previous

    def owns(self, path: str) -> bool:
        """True if *path* is inside the reserved namespace.

        Static-content collaborators must not serve paths this returns
        True for.
        """
        return _relative(path, self._table.prefix) is not None

    def match(self, path: str) -> MatchResult:
        """Match a request path (with namespace) against the table."""
        table = self._table
        relative = _relative(path, table.prefix)
        if relative is None:
            return NO_MATCH
        return table.resolve(relative)


def _relative(path: str, prefix: str) -> str | None:
    """Strip *prefix* from *path*, or return None if outside it.

    ``/api`` is the namespace root; ``/api/`` is not.
    """
    if not prefix:
        return "" if path == "/" else path
    if path == prefix:
        return ""
    if path.startswith(prefix + "/"):
        return path[len(prefix) :]
    return None
