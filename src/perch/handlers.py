"""Handler modules — per-method function tables.

A handler module exports zero or more functions named after HTTP
methods::

    # routes/blog/[post]+api.py
    async def GET(request, post):
        return Response.json({"post": post})

The exports are read once, when the module is first loaded, into a
fixed mapping from :class:`HTTPMethod` to callable. Dispatch then looks
methods up in that mapping instead of probing module attributes.
"""

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType, ModuleType
from typing import Any


class HTTPMethod(StrEnum):
    """The methods a handler module may export."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, method: str) -> "HTTPMethod | None":
        """Return the member for *method* (case-sensitive), or ``None``."""
        try:
            return cls(method)
        except ValueError:
            return None


# A user-defined method function; signatures vary per route
Handler = Callable[..., Any]

# A loaded module, or any mapping of method name -> callable
HandlerNamespace = ModuleType | Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class HandlerModule:
    """The loaded functions of one route, keyed by method.

    Attributes:
        identifier: The route identifier this module backs.
        methods: Read-only mapping of exported methods to callables.
        timeout: Optional per-route timeout in seconds (module-level
            ``TIMEOUT``), overriding ``AppConfig.handler_timeout``.
    """

    identifier: str
    methods: Mapping[HTTPMethod, Callable[..., Any]]
    timeout: float | None = None

    @classmethod
    def from_namespace(cls, identifier: str, namespace: HandlerNamespace) -> "HandlerModule":
        if isinstance(namespace, ModuleType):
            lookup = vars(namespace)
        else:
            lookup = namespace

        found: dict[HTTPMethod, Callable[..., Any]] = {}
        for method in HTTPMethod:
            func = lookup.get(method.value)
            if func is not None and callable(func):
                found[method] = func

        timeout = lookup.get("TIMEOUT")
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, int | float):
                msg = f"TIMEOUT in {identifier!r} must be a number of seconds, got {timeout!r}"
                raise TypeError(msg)
            if not timeout > 0:
                msg = f"TIMEOUT in {identifier!r} must be positive, got {timeout!r}"
                raise ValueError(msg)

        return cls(
            identifier=identifier,
            methods=MappingProxyType(found),
            timeout=float(timeout) if timeout is not None else None,
        )

    @property
    def allowed(self) -> frozenset[str]:
        """Names of the methods this module actually exports."""
        return frozenset(method.value for method in self.methods)

    def lookup(self, method: str) -> Callable[..., Any] | None:
        """Return the function exported for *method*, or ``None``."""
        member = HTTPMethod.parse(method)
        if member is None:
            return None
        return self.methods.get(member)


@dataclass(slots=True, eq=False)
class HandlerRef:
    """A lazily loaded handler module.

    Route tables hold refs, not modules, so building a table never
    imports user code. The first request to a route loads it; later
    requests reuse the cached :class:`HandlerModule`.

    Attributes:
        identifier: Route identifier (e.g. ``"blog/[post]"``).
        declared: Methods the build step saw (from source or
            registration). Used for listings only; dispatch trusts the
            loaded module.
        loader: Zero-argument callable returning the module namespace.
        origin: Where the handler came from (file path or ``"<app>"``).
    """

    identifier: str
    declared: frozenset[str]
    loader: Callable[[], HandlerNamespace]
    origin: str = "<app>"
    _module: HandlerModule | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def loaded(self) -> bool:
        return self._module is not None

    def load(self) -> HandlerModule:
        """Load (once) and return the handler module."""
        module = self._module
        if module is not None:
            return module
        with self._lock:
            if self._module is None:
                self._module = HandlerModule.from_namespace(self.identifier, self.loader())
            return self._module


def handler_ref(identifier: str, namespace: HandlerNamespace, *, origin: str = "<app>") -> HandlerRef:
    """Wrap an already-loaded namespace (module or mapping) in a ref."""
    if isinstance(namespace, ModuleType):
        lookup: Mapping[str, Any] = vars(namespace)
    else:
        lookup = namespace
    declared = frozenset(
        method.value for method in HTTPMethod if callable(lookup.get(method.value))
    )
    return HandlerRef(
        identifier=identifier,
        declared=declared,
        loader=lambda: namespace,
        origin=origin,
    )
