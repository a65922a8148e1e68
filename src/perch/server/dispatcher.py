"""Dispatcher — turns a match result into exactly one Response.

Per request::

    Received -> Unmatched                          -> 404
             -> Matched -> MethodMissing           -> 405
                        -> MethodFound -> Invoking -> Succeeded -> 2xx
                                                   -> Failed    -> 500
                                                   -> TimedOut  -> 504

Handler failures are logged and downgraded to a generic 500. They never
escape ``handle()``, so one request's failure cannot affect another.
Cancellation is the exception: it propagates and no response is built.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

import anyio

from perch._internal.invoke import invoke
from perch.errors import HandlerExecutionError, HTTPError, MethodNotAllowed, NotFound
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.route import MatchResult, NoMatch, ParameterBindings
from perch.server.negotiation import negotiate

logger = logging.getLogger("perch.server")


def error_response(exc: HTTPError) -> Response:
    """JSON error body for an HTTPError, carrying its headers."""
    payload: dict[str, Any] = {"error": exc.detail or str(exc.status)}
    if isinstance(exc, MethodNotAllowed):
        allow = dict(exc.headers).get("Allow", "")
        payload["allowed"] = [m for m in allow.split(", ") if m]
    return Response.json(payload, status=exc.status, headers=dict(exc.headers))


def build_handler_kwargs(
    handler: Callable[..., Any],
    request: Request,
    params: ParameterBindings,
) -> dict[str, Any]:
    """Inspect handler signature and build kwargs from request + bindings.

    Resolution order:
    1. ``request`` parameter (by name or ``Request`` annotation)
    2. ``params`` parameter -> the full bindings mapping
    3. A parameter named after a binding -> that captured value
    """
    sig = inspect.signature(handler, eval_str=True)
    kwargs: dict[str, Any] = {}

    for name, param in sig.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if name == "request" or param.annotation is Request:
            kwargs[name] = request
        elif name == "params":
            kwargs[name] = params
        elif name in params:
            kwargs[name] = params[name]

    return kwargs


class Dispatcher:
    """Invokes matched handlers and applies the fallback rules.

    Args:
        debug: Include the exception text in 500 bodies.
        timeout: Default handler timeout in seconds (``None`` = no limit).
            A handler module's ``TIMEOUT`` overrides it.
        timeout_status: Status returned when a handler times out.
    """

    __slots__ = ("debug", "timeout", "timeout_status")

    def __init__(
        self,
        *,
        debug: bool = False,
        timeout: float | None = None,
        timeout_status: int = 504,
    ) -> None:
        self.debug = debug
        self.timeout = timeout
        self.timeout_status = timeout_status

    async def handle(self, method: str, match: MatchResult, request: Request) -> Response:
        """Produce the response for one request."""
        if isinstance(match, NoMatch):
            logger.debug("404 %s %s", method, request.path)
            return error_response(NotFound())

        identifier = match.entry.identifier
        try:
            module = match.entry.handler.load()
        except Exception as exc:
            return self._internal_error(HandlerExecutionError(identifier, method, exc), request)

        func = module.lookup(method)
        if func is None:
            logger.debug("405 %s %s (allowed: %s)", method, request.path, sorted(module.allowed))
            return error_response(MethodNotAllowed(module.allowed))

        request = request.with_params(match.params)
        timeout = module.timeout if module.timeout is not None else self.timeout

        try:
            kwargs = build_handler_kwargs(func, request, match.params)
            with anyio.move_on_after(timeout) as scope:
                result = await invoke(func, **kwargs)
            if scope.cancelled_caught:
                logger.warning(
                    "%d %s %s: handler exceeded %.3gs",
                    self.timeout_status,
                    method,
                    request.path,
                    timeout,
                )
                return Response.json({"error": "Gateway Timeout"}, status=self.timeout_status)
            return negotiate(result)
        except HTTPError as exc:
            logger.debug("%d %s %s — %s", exc.status, method, request.path, exc.detail)
            return error_response(exc)
        except Exception as exc:
            return self._internal_error(HandlerExecutionError(identifier, method, exc), request)

    def _internal_error(self, error: HandlerExecutionError, request: Request) -> Response:
        logger.error(
            "500 %s %s: %s",
            error.method,
            request.path,
            error,
            exc_info=error.original,
        )
        payload: dict[str, Any] = {"error": "Internal Server Error"}
        if self.debug:
            payload["detail"] = f"{type(error.original).__name__}: {error.original}"
        return Response.json(payload, status=500)
