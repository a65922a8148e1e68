"""Perch — file-convention API routes for ASGI.

Drop handler files into a routes directory; each file's path becomes a
URL under a reserved namespace, and its ``GET``/``POST``/... functions
handle the matching methods.

Basic usage::

    # routes/blog/[post]+api.py
    from perch import Response

    async def GET(request, post):
        return Response.json({"post": post})

    # app.py
    from perch import App, AppConfig

    app = App(AppConfig(routes_dir="routes"))
    app.run()   # GET /api/blog/42 -> {"post": "42"}
"""

__version__ = "0.1.0"
__all__ = [
    "AmbiguousRouteError",
    "App",
    "AppConfig",
    "ConfigurationError",
    "HTTPError",
    "MalformedPatternError",
    "MethodNotAllowed",
    "NotFound",
    "PerchError",
    "Redirect",
    "Request",
    "ReservedPathError",
    "Response",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name in (
        "AmbiguousRouteError",
        "ConfigurationError",
        "HTTPError",
        "MalformedPatternError",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
        "ReservedPathError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
