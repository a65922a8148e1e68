"""ASGI handler — translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Converts the scope
to a Request, matches it against the published table snapshot, hands
it to the Dispatcher, and sends the Response back through ASGI send().
"""

from perch._internal.asgi import ASGIApp, Receive, Scope, Send
from perch.errors import NotFound
from perch.http.request import Request
from perch.routing.matcher import Matcher
from perch.server.dispatcher import Dispatcher, error_response
from perch.server.sender import send_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    matcher: Matcher,
    dispatcher: Dispatcher,
    fallback: ASGIApp | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline.

    Paths outside the reserved namespace go to *fallback* (e.g. a static
    or UI app) when one is configured, otherwise they are a 404.

    If the server cancels the task (client went away), the cancellation
    propagates out of the dispatcher and nothing is sent.
    """
    if scope["type"] != "http":
        return

    path = scope["path"]
    if not matcher.owns(path):
        if fallback is not None:
            await fallback(scope, receive, send)
        else:
            await send_response(error_response(NotFound()), send, head=scope["method"] == "HEAD")
        return

    request = Request.from_asgi(scope, receive)
    match = matcher.match(request.path)
    response = await dispatcher.handle(request.method, match, request)
    await send_response(response, send, head=request.method == "HEAD")
