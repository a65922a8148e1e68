"""Compiled route table with trie-based path matching.

The table is built once from the complete handler set and is immutable
afterwards. Rebuilding (development mode) produces a new table; the
:class:`~perch.routing.matcher.Matcher` publishes it atomically.

Precedence is encoded in the trie walk: at every position a literal
child is tried before the parameter edge, and the parameter edge before
the catch-all. The first full match of that depth-first walk is the
highest-precedence pattern.
"""

import logging
from collections.abc import Iterable

from perch.errors import AmbiguousRouteError, ReservedPathError
from perch.handlers import HandlerRef
from perch.routing.pattern import RoutePattern, SegmentKind, parse_pattern
from perch.routing.route import NO_MATCH, MatchResult, RouteEntry, RouteMatch

logger = logging.getLogger("perch.routing")


def split_path(path: str) -> list[str]:
    """Split a namespace-relative path into segments.

    Only the empty path is the namespace root. Empty segments are kept
    so that ``/a//b``, ``/a/`` and ``/`` never align with ``a/b``,
    ``a`` or the root.
    """
    if not path:
        return []
    if path.startswith("/"):
        path = path[1:]
    return path.split("/")


class _TrieNode:
    """A node in the route trie. Mutable during build only."""

    __slots__ = ("catch_all", "children", "entry", "param_child")

    def __init__(self) -> None:
        # Literal segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # One parameter edge per level; names live on the patterns
        self.param_child: _TrieNode | None = None
        # Catch-all entry, consumes one or more remaining segments
        self.catch_all: RouteEntry | None = None
        # Entry for a path ending exactly at this node
        self.entry: RouteEntry | None = None


class RouteTable:
    """An immutable, ordered set of route entries.

    Usage::

        table = build_table(sources, prefix="/api")
        match = table.resolve("/blog/42")
    """

    __slots__ = ("_entries", "_prefix", "_root")

    def __init__(self, prefix: str = "") -> None:
        self._root = _TrieNode()
        self._entries: tuple[RouteEntry, ...] = ()
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        """The reserved namespace every entry is mounted under."""
        return self._prefix

    @property
    def entries(self) -> tuple[RouteEntry, ...]:
        """All entries, highest precedence first."""
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def url_for(self, entry: RouteEntry) -> str:
        """Public URL template of *entry*, including the namespace."""
        path = entry.pattern.path
        if path == "/":
            return self._prefix or "/"
        return self._prefix + path

    def resolve(self, path: str) -> MatchResult:
        """Match a namespace-relative path.

        Returns a :class:`RouteMatch` with bound parameters, or
        ``NO_MATCH``.
        """
        found = self._match_node(self._root, split_path(path), 0, ())
        if found is None:
            return NO_MATCH
        entry, values = found
        return RouteMatch(entry=entry, params=entry.pattern.bind(values))

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        values: tuple[str | tuple[str, ...], ...],
    ) -> tuple[RouteEntry, tuple[str | tuple[str, ...], ...]] | None:
        """Recursively match path parts against the trie."""
        if index == len(parts):
            if node.entry is not None:
                return node.entry, values
            return None

        part = parts[index]

        # 1. Literal child (exact, case-sensitive)
        child = node.children.get(part)
        if child is not None:
            result = self._match_node(child, parts, index + 1, values)
            if result is not None:
                return result

        # 2. Parameter edge — any non-empty segment
        if node.param_child is not None and part:
            result = self._match_node(node.param_child, parts, index + 1, (*values, part))
            if result is not None:
                return result

        # 3. Catch-all — every remaining segment, all non-empty
        if node.catch_all is not None:
            rest = parts[index:]
            if all(rest):
                return node.catch_all, (*values, tuple(rest))

        return None

    # -- Build --

    def _insert(self, entry: RouteEntry) -> None:
        node = self._root
        for seg in entry.pattern.segments:
            if seg.kind is SegmentKind.CATCH_ALL:
                if node.catch_all is not None:
                    self._conflict(node.catch_all, entry)
                node.catch_all = entry
                return
            if seg.kind is SegmentKind.PARAM:
                if node.param_child is None:
                    node.param_child = _TrieNode()
                node = node.param_child
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        if node.entry is not None:
            self._conflict(node.entry, entry)
        node.entry = entry

    def _conflict(self, existing: RouteEntry, new: RouteEntry) -> None:
        raise AmbiguousRouteError(existing.identifier, new.identifier, self.url_for(new))


def _check_reserved(pattern: RoutePattern, prefix: str) -> None:
    """Reject patterns that start with the namespace's own segments."""
    reserved = split_path(prefix)
    if not reserved or len(pattern.segments) < len(reserved):
        return
    head = pattern.segments[: len(reserved)]
    if all(
        seg.kind is SegmentKind.LITERAL and seg.value == name
        for seg, name in zip(head, reserved, strict=True)
    ):
        raise ReservedPathError(pattern.identifier, prefix)


def build_table(sources: Iterable[HandlerRef], *, prefix: str = "") -> RouteTable:
    """Compile handler refs into a :class:`RouteTable`.

    Raises:
        MalformedPatternError: An identifier breaks the naming convention.
        AmbiguousRouteError: Two identifiers match the same paths with
            equal precedence.
        ReservedPathError: An identifier repeats the reserved namespace.
    """
    table = RouteTable(prefix)
    entries: list[RouteEntry] = []

    for ref in sources:
        pattern = parse_pattern(ref.identifier)
        _check_reserved(pattern, prefix)
        entry = RouteEntry(pattern=pattern, handler=ref)
        table._insert(entry)
        entries.append(entry)

    entries.sort(key=lambda e: (e.pattern.ranks, e.pattern.shape))
    table._entries = tuple(entries)

    logger.debug("Built route table: %d routes under %r", len(entries), prefix or "/")
    return table
