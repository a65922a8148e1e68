"""Route patterns parsed from handler identifiers.

A handler identifier is the handler's path relative to the routes
directory, without the ``+api.py`` suffix::

    "hello"              -> /hello
    "blog/[post]"        -> /blog/{post}
    "files/[...path]"    -> /files/{path...}
    "(admin)/users"      -> /users          (route group, no URL segment)
    "blog/index"         -> /blog           (index maps to its directory)
"""

import functools
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum

from perch.errors import MalformedPatternError

# [name] or [...name]
_CAPTURE_RE = re.compile(r"^\[(\.\.\.)?([^\[\]]*)\]$")

# (group)
_GROUP_RE = re.compile(r"^\(([^()]*)\)$")


class SegmentKind(IntEnum):
    """Segment kinds, ordered by precedence (lower wins)."""

    LITERAL = 0
    PARAM = 1
    CATCH_ALL = 2


@dataclass(frozen=True, slots=True)
class Segment:
    """One parsed segment of a route pattern.

    For literals ``value`` is the segment text; for captures it is the
    parameter name.
    """

    kind: SegmentKind
    value: str

    @property
    def is_dynamic(self) -> bool:
        return self.kind is not SegmentKind.LITERAL

    def __str__(self) -> str:
        if self.kind is SegmentKind.PARAM:
            return "{" + self.value + "}"
        if self.kind is SegmentKind.CATCH_ALL:
            return "{" + self.value + "...}"
        return self.value


@dataclass(frozen=True, slots=True)
class RoutePattern:
    """An immutable, matchable route template.

    Created once per handler identifier at build time.
    """

    identifier: str
    segments: tuple[Segment, ...]

    @property
    def path(self) -> str:
        """Display form of the pattern, e.g. ``/blog/{post}``."""
        return "/" + "/".join(str(seg) for seg in self.segments)

    @property
    def ranks(self) -> tuple[int, ...]:
        """Precedence key. Compared lexicographically; lower sorts first."""
        return tuple(seg.kind for seg in self.segments)

    @property
    def shape(self) -> tuple[tuple[int, str], ...]:
        """Pattern with capture names erased.

        Two patterns with the same shape match exactly the same paths.
        """
        return tuple(
            (seg.kind, "" if seg.is_dynamic else seg.value) for seg in self.segments
        )

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(seg.value for seg in self.segments if seg.is_dynamic)

    @property
    def is_static(self) -> bool:
        return not any(seg.is_dynamic for seg in self.segments)

    def bind(self, values: Sequence[str | tuple[str, ...]]) -> dict[str, str | tuple[str, ...]]:
        """Pair captured values with this pattern's parameter names.

        *values* are in segment order, one per dynamic segment.
        """
        names = self.param_names
        if len(names) != len(values):
            msg = f"{self.path} captures {len(names)} values, got {len(values)}"
            raise ValueError(msg)
        return dict(zip(names, values, strict=True))


@functools.lru_cache(maxsize=1024)
def parse_pattern(identifier: str) -> RoutePattern:
    """Parse a handler identifier into a :class:`RoutePattern`.

    Raises:
        MalformedPatternError: If a segment is empty or unbalanced, a
            capture name is empty, invalid, or repeated, or a catch-all
            is not the final segment.
    """
    stripped = identifier.strip("/")
    parts = stripped.split("/") if stripped else []

    segments: list[Segment] = []
    seen: set[str] = set()

    for part in parts:
        if not part:
            raise MalformedPatternError(identifier, "empty path segment")

        group = _GROUP_RE.match(part)
        if group is not None:
            if not group.group(1):
                raise MalformedPatternError(identifier, "empty route group '()'")
            continue

        capture = _CAPTURE_RE.match(part)
        if capture is not None:
            spread, name = capture.groups()
            if not name:
                raise MalformedPatternError(identifier, f"empty parameter name in {part!r}")
            if not name.isidentifier():
                raise MalformedPatternError(identifier, f"invalid parameter name {name!r}")
            if name in seen:
                raise MalformedPatternError(identifier, f"duplicate parameter name {name!r}")
            seen.add(name)
            kind = SegmentKind.CATCH_ALL if spread else SegmentKind.PARAM
            segments.append(Segment(kind, name))
            continue

        if any(ch in part for ch in "[]()"):
            raise MalformedPatternError(identifier, f"unbalanced brackets in {part!r}")
        segments.append(Segment(SegmentKind.LITERAL, part))

    # "index" names its directory
    if segments and segments[-1] == Segment(SegmentKind.LITERAL, "index"):
        segments.pop()

    for seg in segments[:-1]:
        if seg.kind is SegmentKind.CATCH_ALL:
            raise MalformedPatternError(
                identifier, f"catch-all [...{seg.value}] must be the last segment"
            )

    return RoutePattern(identifier=identifier, segments=tuple(segments))
