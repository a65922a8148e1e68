"""ASGI response sending — translates a perch Response into ASGI messages."""

from perch._internal.asgi import Send
from perch.http.response import Response


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(response: Response, send: Send, *, head: bool = False) -> None:
    """Translate a perch Response into ASGI send() calls.

    A ``Content-Type`` in ``response.headers`` replaces the default one.
    ``Content-Length`` always comes from the body. For ``HEAD`` requests
    the headers describe the body, but no body bytes are sent.
    """
    content_type = response.content_type
    raw_headers: list[tuple[bytes, bytes]] = []
    for name, value in response.headers:
        lowered = name.lower()
        if lowered == "content-type":
            content_type = value
        elif lowered != "content-length":
            raw_headers.append((lowered.encode("latin-1"), value.encode("latin-1")))
    raw_headers.insert(0, (b"content-type", content_type.encode("latin-1")))

    body = response.body_bytes if _body_allowed(response.status) else b""

    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": b"" if head else body,
        }
    )
