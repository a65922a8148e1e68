"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, prefix="/_api", handler_timeout=10.0)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # Routing
    prefix: str = "/api"  # Reserved namespace every handler is mounted under
    routes_dir: str | Path | None = None  # Directory scanned for ``*+api.py`` files

    # Handler invocation
    handler_timeout: float | None = None  # Seconds; None disables the timeout
    timeout_status: int = 504

    # Development rebuild (watchdog)
    reload: bool = False
    reload_debounce: float = 0.3

    # Logging
    log_level: str = "info"

    def __post_init__(self) -> None:
        if self.prefix and (not self.prefix.startswith("/") or self.prefix.endswith("/")):
            msg = f"prefix must start with '/' and not end with '/', got {self.prefix!r}"
            raise ValueError(msg)
        if self.handler_timeout is not None and self.handler_timeout <= 0:
            msg = f"handler_timeout must be positive, got {self.handler_timeout!r}"
            raise ValueError(msg)
