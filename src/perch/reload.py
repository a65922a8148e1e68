"""Development-mode route table rebuilds.

Watches the routes directory with watchdog and, after a quiet period,
calls back so the app can rediscover handlers and publish a fresh
table. Requests already running keep the table they started with.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger("perch.reload")

# Directory events that can add or remove handler files
_DIRECTORY_EVENTS = frozenset({"created", "deleted", "moved"})


class RouteWatcher:
    """Watches a routes directory and triggers rebuilds.

    Uses trailing-edge debouncing: each change restarts the timer, so an
    editor's save-all produces one rebuild of the final state.

    Example::

        watcher = RouteWatcher("routes", on_change=app.rebuild)
        watcher.start()
        ...
        watcher.stop()

    Note:
        Requires watchdog. Install with: pip install perch[reload]
    """

    def __init__(
        self,
        routes_dir: str | Path,
        on_change: Callable[[], Any],
        *,
        debounce: float = 0.3,
    ) -> None:
        self._routes_dir = Path(routes_dir).resolve()
        self._on_change = on_change
        self._debounce = debounce
        self._observer: Any = None  # watchdog Observer
        self._timer: threading.Timer | None = None
        self._lock = threading.RLock()
        self._running = False

    @property
    def routes_dir(self) -> Path:
        return self._routes_dir

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def start(self) -> None:
        """Start watching for file changes."""
        try:
            from watchdog.observers import Observer
        except ImportError:
            raise ImportError(
                "watchdog is required for route reloading. "
                "Install with: pip install perch[reload]"
            ) from None

        with self._lock:
            if self._running:
                return
            self._observer = Observer()
            self._observer.schedule(self._create_handler(), str(self._routes_dir), recursive=True)
            self._observer.start()
            self._running = True
        logger.info("Watching %s for route changes", self._routes_dir)

    def stop(self) -> None:
        """Stop watching and cancel any pending rebuild."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._observer is not None:
                self._observer.stop()
                self._observer.join(timeout=2.0)
                self._observer = None
            self._running = False

    def _create_handler(self) -> Any:
        from watchdog.events import FileSystemEventHandler

        watcher = self

        class RouteFileHandler(FileSystemEventHandler):  # type: ignore[misc]
            def on_any_event(self, event: Any) -> None:
                if event.event_type in ("opened", "closed", "closed_no_write"):
                    return
                if event.is_directory:
                    # A file written inside a directory also modifies it
                    if event.event_type in _DIRECTORY_EVENTS:
                        watcher.notify()
                    return
                paths = [event.src_path, getattr(event, "dest_path", "")]
                if any(str(p).endswith(".py") for p in paths):
                    watcher.notify()

        return RouteFileHandler()

    def notify(self) -> None:
        """Record a change; the rebuild runs after the debounce period."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            # A newer notify() may already have replaced this timer
            if self._timer is threading.current_thread():
                self._timer = None
        try:
            self._on_change()
        except Exception:
            # Keep watching: the previous table stays published until a
            # later change builds cleanly.
            logger.exception("Route rebuild failed; keeping the previous table")
