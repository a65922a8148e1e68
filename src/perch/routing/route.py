"""RouteEntry, RouteMatch, and NoMatch frozen dataclasses."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from perch.routing.pattern import RoutePattern

if TYPE_CHECKING:
    from perch.handlers import HandlerRef

# Per-request parameter bindings: one string per named capture,
# an ordered tuple of segments per catch-all.
ParameterBindings: TypeAlias = dict[str, str | tuple[str, ...]]


@dataclass(frozen=True, slots=True)
class RouteEntry:
    """A compiled pattern and the handler module that backs it.

    Owned by a single :class:`~perch.routing.table.RouteTable`.
    """

    pattern: RoutePattern
    handler: "HandlerRef"

    @property
    def identifier(self) -> str:
        return self.pattern.identifier


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful match."""

    entry: RouteEntry
    params: ParameterBindings


@dataclass(frozen=True, slots=True)
class NoMatch:
    """No route aligns with the request path. Produces a 404."""

    def __bool__(self) -> bool:
        return False


NO_MATCH = NoMatch()

MatchResult: TypeAlias = RouteMatch | NoMatch
