"""Perch application class.

Mutable during setup (handler registration, routes directory).
Frozen on first request, at ASGI lifespan startup, or by ``app.run()``.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from types import ModuleType
from typing import Any

from perch._internal.asgi import ASGIApp, Receive, Scope, Send
from perch.config import AppConfig
from perch.errors import ConfigurationError
from perch.handlers import Handler, HandlerRef, HTTPMethod, handler_ref
from perch.routing.matcher import Matcher
from perch.routing.table import RouteTable, build_table
from perch.server.dispatcher import Dispatcher
from perch.server.handler import handle_request

logger = logging.getLogger("perch.server")


class App:
    """The perch application.

    Handlers come from a routes directory (``AppConfig.routes_dir`` or
    ``app.mount()``) and from explicit registration::

        app = App(AppConfig(routes_dir="routes"))

        @app.route("health")
        def health():
            return {"ok": True}

    Thread safety:
        Setup is single-threaded. The freeze transition uses a Lock +
        double-check so exactly one thread builds the route table, even
        when several workers receive their first request at once.
        Rebuilds publish through the :class:`Matcher`, never in place.
    """

    __slots__ = (
        "_dispatcher",
        "_fallback",
        "_freeze_lock",
        "_frozen",
        # Compiled state (populated by _freeze)
        "_decorated",
        "_matcher",
        "_modules",
        "_routes_dir",
        "_watcher",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        fallback: ASGIApp | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._fallback = fallback
        self._routes_dir: Path | None = (
            Path(self.config.routes_dir) if self.config.routes_dir is not None else None
        )
        # @app.route functions, owned by the app
        self._decorated: dict[str, dict[str, Handler]] = {}
        # app.register namespaces, owned by the caller
        self._modules: dict[str, ModuleType | Mapping[str, Any]] = {}
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        self._matcher: Matcher | None = None
        self._dispatcher: Dispatcher | None = None
        self._watcher: Any = None  # RouteWatcher, only in reload mode

    # -- Handler registration --

    def mount(self, routes_dir: str | Path) -> None:
        """Use *routes_dir* as the directory scanned for ``*+api.py`` files."""
        self._check_not_frozen()
        self._routes_dir = Path(routes_dir)

    def route(
        self,
        identifier: str,
        *,
        methods: list[str] | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a handler function via decorator.

        Args:
            identifier: Route identifier, same syntax as a handler file
                path (e.g. ``"blog/[post]"``).
            methods: HTTP methods. Defaults to ``["GET"]``.
        """

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            if identifier in self._modules:
                msg = f"Route {identifier!r} is already registered as a module."
                raise ConfigurationError(msg)

            # Validate every method before registering any of them
            existing = self._decorated.get(identifier, {})
            names: list[str] = []
            for method in methods or ["GET"]:
                name = method.upper()
                if HTTPMethod.parse(name) is None:
                    msg = f"Unsupported HTTP method {method!r} for route {identifier!r}."
                    raise ConfigurationError(msg)
                if name in existing or name in names:
                    msg = f"Route {identifier!r} already has a {name} handler."
                    raise ConfigurationError(msg)
                names.append(name)

            table = self._decorated.setdefault(identifier, {})
            for name in names:
                table[name] = func
            return func

        return decorator

    def register(self, identifier: str, handlers: ModuleType | Mapping[str, Any]) -> None:
        """Register an already-imported module (or mapping) for *identifier*.

        The namespace is used as given and never modified.
        """
        self._check_not_frozen()
        if identifier in self._modules or identifier in self._decorated:
            msg = f"Route {identifier!r} is already registered."
            raise ConfigurationError(msg)
        self._modules[identifier] = handlers

    # -- Introspection --

    @property
    def table(self) -> RouteTable:
        """The currently published route table (freezes the app)."""
        self._ensure_frozen()
        assert self._matcher is not None
        return self._matcher.table

    @property
    def matcher(self) -> Matcher:
        self._ensure_frozen()
        assert self._matcher is not None
        return self._matcher

    def sources(self) -> list[HandlerRef]:
        """Every handler ref: discovered files first, then registrations."""
        refs: list[HandlerRef] = []
        if self._routes_dir is not None:
            from perch.discovery import discover_handlers

            refs.extend(discover_handlers(self._routes_dir))
        for identifier, namespace in self._modules.items():
            refs.append(handler_ref(identifier, namespace))
        for identifier, functions in self._decorated.items():
            refs.append(handler_ref(identifier, dict(functions)))
        return refs

    # -- Rebuild --

    def rebuild(self) -> RouteTable:
        """Rediscover handlers and publish a fresh table.

        The new table replaces the old one atomically. If the build
        fails, the error propagates and the old table stays published.
        """
        self._ensure_frozen()
        assert self._matcher is not None
        table = build_table(self.sources(), prefix=self.config.prefix)
        self._matcher.publish(table)
        logger.info("Rebuilt route table: %d routes under %s", len(table), self.config.prefix or "/")
        return table

    # -- Serving --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Build the route table and start serving with pounce."""
        self._ensure_frozen()

        from perch.server.dev import run_server

        run_server(
            self,
            host or self.config.host,
            port or self.config.port,
            log_level=self.config.log_level,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()

        assert self._matcher is not None
        assert self._dispatcher is not None

        await handle_request(
            scope,
            receive,
            send,
            matcher=self._matcher,
            dispatcher=self._dispatcher,
            fallback=self._fallback,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Builds the route table at startup, so naming mistakes fail the
        server before the first request, and starts the route watcher
        in reload mode.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    self.start_watching()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                self.stop_watching()
                await send({"type": "lifespan.shutdown.complete"})
                return

    def start_watching(self) -> None:
        """Start the route watcher when ``reload`` is on and a directory is set."""
        if not self.config.reload or self._routes_dir is None or self._watcher is not None:
            return
        from perch.reload import RouteWatcher

        self._watcher = RouteWatcher(
            self._routes_dir,
            on_change=self.rebuild,
            debounce=self.config.reload_debounce,
        )
        self._watcher.start()

    def stop_watching(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        table = build_table(self.sources(), prefix=self.config.prefix)
        self._matcher = Matcher(table)
        self._dispatcher = Dispatcher(
            debug=self.config.debug,
            timeout=self.config.handler_timeout,
            timeout_status=self.config.timeout_status,
        )
        self._frozen = True
        logger.info("Built route table: %d routes under %s", len(table), self.config.prefix or "/")

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register handlers before calling app.run()."
            )
            raise RuntimeError(msg)
