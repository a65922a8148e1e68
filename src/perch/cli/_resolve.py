"""App import resolution for ``perch run`` and ``perch routes``.

Accepts ``module:attribute`` (``myapp:app``, ``myapp`` for ``myapp:app``)
or a file path (``services/api.py:app``).
"""

import importlib
import importlib.util
import os
import sys
from pathlib import Path
from types import ModuleType

from perch.app import App


def resolve_app(import_string: str) -> App:
    """Resolve an import string to a perch App instance.

    A callable that is not an App is treated as a factory and called
    with no arguments.

    Raises:
        ModuleNotFoundError: If the module or file cannot be found.
        AttributeError: If the attribute does not exist on the module.
        TypeError: If the target is neither an App nor a factory for one.
    """
    target, _, attr_name = import_string.partition(":")
    module = _import_target(target)
    obj = getattr(module, attr_name or "app")

    if callable(obj) and not isinstance(obj, App):
        try:
            obj = obj()
        except Exception as exc:
            msg = f"Factory function {import_string!r} raised an error: {exc}"
            raise TypeError(msg) from exc

    if not isinstance(obj, App):
        msg = f"{import_string!r} resolved to {type(obj).__name__}, not a perch.App instance"
        raise TypeError(msg)

    return obj


def _import_target(target: str) -> ModuleType:
    if target.endswith(".py"):
        return _import_file(Path(target))

    # Console scripts don't put the working directory on sys.path
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    return importlib.import_module(target)


def _import_file(path: Path) -> ModuleType:
    if not path.is_file():
        msg = f"No such app file: {path}"
        raise ModuleNotFoundError(msg)
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        msg = f"Cannot import app file: {path}"
        raise ModuleNotFoundError(msg)
    module = importlib.util.module_from_spec(spec)
    sys.modules[path.stem] = module
    spec.loader.exec_module(module)
    return module
