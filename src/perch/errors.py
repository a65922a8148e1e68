"""Perch exception hierarchy.

Shared across the route table, dispatcher, and app so every module
raises and catches the same types.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when the handler set or app configuration is invalid.

    Always raised at build time (``build_table()`` / ``App._freeze()``),
    never while serving a request.
    """


class MalformedPatternError(ConfigurationError):
    """A handler identifier does not follow the route naming convention."""

    def __init__(self, identifier: str, reason: str) -> None:
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Malformed route {identifier!r}: {reason}")


class AmbiguousRouteError(ConfigurationError):
    """Two handler identifiers compile to patterns of equal precedence
    that match the same paths (e.g. ``a/[x]`` and ``a/[y]``).
    """

    def __init__(self, first: str, second: str, path: str) -> None:
        self.first = first
        self.second = second
        self.path = path
        super().__init__(
            f"Routes {first!r} and {second!r} both resolve to {path!r}. "
            "Rename one of them so each path has a single handler."
        )


class ReservedPathError(ConfigurationError):
    """A handler identifier collides with the reserved route namespace."""

    def __init__(self, identifier: str, prefix: str) -> None:
        self.identifier = identifier
        self.prefix = prefix
        super().__init__(
            f"Route {identifier!r} repeats the reserved namespace {prefix!r}. "
            f"Identifiers are relative to {prefix!r}; drop the leading segment."
        )


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Handlers may raise these to end a request with a specific status.
    The dispatcher turns them into JSON error responses.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — route exists but does not export this HTTP method.

    Includes an ``Allow`` header listing the exported methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "Method Not Allowed") -> None:
        allow_value = ", ".join(sorted(allowed))
        super().__init__(
            status=405,
            detail=detail,
            headers=(("Allow", allow_value),),
        )


class HandlerExecutionError(PerchError):
    """A handler raised while serving a request.

    Only handed to the logging sink; the client sees a generic 500.
    """

    def __init__(self, identifier: str, method: str, original: BaseException) -> None:
        self.identifier = identifier
        self.method = method
        self.original = original
        super().__init__(f"{method} handler for {identifier!r} raised {type(original).__name__}")
