"""Tests for perch.server.handler — the ASGI request pipeline."""

from typing import Any

from perch.handlers import handler_ref
from perch.routing.matcher import Matcher
from perch.routing.table import build_table
from perch.server.dispatcher import Dispatcher
from perch.server.handler import handle_request


def _matcher(**handlers: Any) -> Matcher:
    refs = [handler_ref(identifier, {"GET": func}) for identifier, func in handlers.items()]
    return Matcher(build_table(refs, prefix="/api"))


async def _call(
    matcher: Matcher, path: str, method: str = "GET", fallback: Any = None
) -> list[dict[str, Any]]:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
    }
    messages: list[dict[str, Any]] = []

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message: dict[str, Any]) -> None:
        messages.append(message)

    await handle_request(
        scope, receive, send, matcher=matcher, dispatcher=Dispatcher(), fallback=fallback
    )
    return messages


class TestHandleRequest:
    async def test_matched_route(self) -> None:
        messages = await _call(_matcher(hello=lambda: "hi"), "/api/hello")
        assert messages[0]["status"] == 200
        assert messages[1]["body"] == b"hi"

    async def test_exactly_one_response(self) -> None:
        messages = await _call(_matcher(hello=lambda: "hi"), "/api/nope")
        assert [m["type"] for m in messages] == ["http.response.start", "http.response.body"]
        assert messages[0]["status"] == 404

    async def test_outside_namespace_is_404(self) -> None:
        messages = await _call(_matcher(hello=lambda: "hi"), "/hello")
        assert messages[0]["status"] == 404

    async def test_head_outside_namespace_has_no_body(self) -> None:
        messages = await _call(_matcher(), "/index.html", method="HEAD")
        assert messages[0]["status"] == 404
        assert messages[1]["body"] == b""

    async def test_fallback_receives_scope(self) -> None:
        seen: list[str] = []

        async def fallback(scope: Any, receive: Any, send: Any) -> None:
            seen.append(scope["path"])

        messages = await _call(_matcher(), "/assets/app.js", fallback=fallback)
        assert seen == ["/assets/app.js"]
        assert messages == []

    async def test_non_http_scope_ignored(self) -> None:
        sent: list[Any] = []

        async def send(message: Any) -> None:
            sent.append(message)

        async def receive() -> dict[str, Any]:
            return {}

        await handle_request(
            {"type": "websocket", "path": "/api/hello"},
            receive,
            send,
            matcher=_matcher(),
            dispatcher=Dispatcher(),
        )
        assert sent == []
