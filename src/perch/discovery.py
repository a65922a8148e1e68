"""Filesystem handler discovery for the routes directory.

Walks the routes directory tree and finds every ``*+api.py`` file::

    routes/
      hello+api.py              # /api/hello
      index+api.py              # /api
      blog/
        [post]+api.py           # /api/blog/{post}
      files/
        [...path]+api.py        # /api/files/{path...}
      (admin)/
        users+api.py            # /api/users  (route group)
      _drafts/                  # skipped (leading underscore)

Discovery never imports user code. Exported methods are read from the
module's syntax tree for listings; the module itself is imported on the
first request that needs it.
"""

import ast
import importlib.util
import itertools
import logging
import sys
import threading
from pathlib import Path
from types import ModuleType

from perch.handlers import HandlerRef, HTTPMethod

logger = logging.getLogger("perch.routing")

HANDLER_SUFFIX = "+api.py"

_METHOD_NAMES = frozenset(method.value for method in HTTPMethod)

# Module names must stay unique across rebuilds so reloaded files get
# fresh module objects.
_module_ids = itertools.count()

# Handler file -> name of its most recently loaded module
_loaded_names: dict[Path, str] = {}
_loaded_lock = threading.Lock()


def discover_handlers(routes_dir: str | Path) -> list[HandlerRef]:
    """Walk a routes directory and return a ref for every handler file.

    Args:
        routes_dir: Path to the routes directory.

    Returns:
        Refs in a stable (sorted) order, ready for ``build_table()``.
    """
    root = Path(routes_dir).resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Routes directory not found: {root}")

    refs: list[HandlerRef] = []
    _walk_directory(root, root, refs)
    logger.debug("Discovered %d handler files in %s", len(refs), root)
    return refs


def _walk_directory(directory: Path, root: Path, refs: list[HandlerRef]) -> None:
    for item in sorted(directory.iterdir()):
        if item.name.startswith(("_", ".")):
            continue
        if item.is_dir():
            _walk_directory(item, root, refs)
        elif item.is_file() and item.name.endswith(HANDLER_SUFFIX):
            refs.append(_file_ref(item, root))


def identifier_for(file: Path, root: Path) -> str:
    """Route identifier for a handler file, e.g. ``blog/[post]``."""
    relative = file.relative_to(root).as_posix()
    return relative[: -len(HANDLER_SUFFIX)]


def _file_ref(file: Path, root: Path) -> HandlerRef:
    identifier = identifier_for(file, root)
    return HandlerRef(
        identifier=identifier,
        declared=exported_methods(file),
        loader=lambda: load_module(file),
        origin=str(file),
    )


def exported_methods(file: Path) -> frozenset[str]:
    """Names of HTTP-method functions defined at a module's top level.

    Covers ``def``/``async def``, plain assignment (``GET = handler``),
    and import aliases (``from .shared import list_items as GET``).
    A file that does not parse declares nothing; the syntax error
    surfaces when the module is loaded.
    """
    try:
        tree = ast.parse(file.read_text(encoding="utf-8"), filename=str(file))
    except SyntaxError:
        return frozenset()

    names: set[str] = set()
    for node in tree.body:
        if isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef):
            names.add(node.name)
        elif isinstance(node, ast.Assign):
            names.update(t.id for t in node.targets if isinstance(t, ast.Name))
        elif isinstance(node, ast.ImportFrom):
            names.update(alias.asname or alias.name for alias in node.names)
    return frozenset(names & _METHOD_NAMES)


def load_module(file: Path) -> ModuleType:
    """Import a handler file as a fresh, anonymous module.

    The module is registered in ``sys.modules`` while it executes, so
    decorators that look up their defining module (``dataclasses``,
    ``typing.get_type_hints``) work. Loading the same file again
    replaces the previous registration.
    """
    module_name = f"_perch_route_{next(_module_ids)}"
    spec = importlib.util.spec_from_file_location(module_name, file)
    if spec is None or spec.loader is None:
        msg = f"Cannot load handler module from {file}"
        raise ImportError(msg)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise

    with _loaded_lock:
        previous = _loaded_names.get(file)
        _loaded_names[file] = module_name
    if previous is not None:
        sys.modules.pop(previous, None)
    return module
