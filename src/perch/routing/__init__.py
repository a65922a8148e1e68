"""Routing — file-convention patterns compiled into an immutable route table.

Handler identifiers are parsed into patterns, compiled into a trie at
build time, and matched per request by the :class:`Matcher`.
"""

from perch.routing.matcher import Matcher
from perch.routing.pattern import RoutePattern, Segment, SegmentKind, parse_pattern
from perch.routing.route import NO_MATCH, MatchResult, NoMatch, ParameterBindings, RouteEntry, RouteMatch
from perch.routing.table import RouteTable, build_table, split_path

__all__ = [
    "NO_MATCH",
    "MatchResult",
    "Matcher",
    "NoMatch",
    "ParameterBindings",
    "RouteEntry",
    "RouteMatch",
    "RoutePattern",
    "RouteTable",
    "Segment",
    "SegmentKind",
    "build_table",
    "parse_pattern",
    "split_path",
]
