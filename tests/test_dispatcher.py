"""Tests for perch.server.dispatcher — fallback rules and handler invocation."""

import asyncio
import logging
import time
from typing import Any

import pytest

from perch.errors import HTTPError, NotFound
from perch.handlers import HandlerRef, handler_ref
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.route import NO_MATCH, MatchResult
from perch.routing.table import build_table
from perch.server.dispatcher import Dispatcher, build_handler_kwargs


def _make_request(method: str = "GET", path: str = "/", body: bytes = b"") -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [(b"host", b"example.com")],
        "server": ("example.com", 80),
    }
    sent = False

    async def receive() -> dict[str, Any]:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request.from_asgi(scope, receive)


def _match(identifier: str, handlers: dict[str, Any], path: str) -> MatchResult:
    table = build_table([handler_ref(identifier, handlers)])
    return table.resolve(path)


async def _dispatch(
    identifier: str,
    handlers: dict[str, Any],
    path: str,
    method: str = "GET",
    dispatcher: Dispatcher | None = None,
) -> Response:
    match = _match(identifier, handlers, path)
    return await (dispatcher or Dispatcher()).handle(method, match, _make_request(method, path))


class TestFallbackRules:
    async def test_no_match_is_404(self) -> None:
        response = await Dispatcher().handle("GET", NO_MATCH, _make_request(path="/missing"))
        assert response.status == 404
        assert response.read_json() == {"error": "Not Found"}

    async def test_missing_method_is_405(self) -> None:
        response = await _dispatch("hello", {"GET": lambda: "hi"}, "/hello", method="POST")
        assert response.status == 405
        assert response.read_json()["allowed"] == ["GET"]
        assert response.header("Allow") == "GET"

    async def test_405_lists_actual_exports(self) -> None:
        handlers = {"GET": lambda: "", "DELETE": lambda: "", "PATCH": lambda: ""}
        response = await _dispatch("item", handlers, "/item", method="PUT")
        assert response.read_json()["allowed"] == ["DELETE", "GET", "PATCH"]

    async def test_unsupported_method_is_405(self) -> None:
        response = await _dispatch("hello", {"GET": lambda: "hi"}, "/hello", method="TRACE")
        assert response.status == 405

    async def test_lowercase_method_is_405(self) -> None:
        response = await _dispatch("hello", {"GET": lambda: "hi"}, "/hello", method="get")
        assert response.status == 405

    async def test_exception_is_500_without_leaking(self) -> None:
        def boom() -> None:
            raise RuntimeError("database password is hunter2")

        response = await _dispatch("boom", {"GET": boom}, "/boom")
        assert response.status == 500
        assert response.read_json() == {"error": "Internal Server Error"}
        assert "hunter2" not in response.text

    async def test_async_exception_is_500(self) -> None:
        async def boom() -> None:
            raise ValueError("nope")

        response = await _dispatch("boom", {"GET": boom}, "/boom")
        assert response.status == 500

    async def test_exception_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        def boom() -> None:
            raise RuntimeError("kaboom")

        with caplog.at_level(logging.ERROR, logger="perch.server"):
            await _dispatch("boom", {"GET": boom}, "/boom")

        records = [r for r in caplog.records if r.name == "perch.server"]
        assert records
        assert records[0].exc_info is not None
        assert "kaboom" in str(records[0].exc_info[1])

    async def test_debug_includes_detail(self) -> None:
        def boom() -> None:
            raise RuntimeError("kaboom")

        response = await _dispatch("boom", {"GET": boom}, "/boom", dispatcher=Dispatcher(debug=True))
        assert response.status == 500
        assert response.read_json()["detail"] == "RuntimeError: kaboom"

    async def test_load_failure_is_500(self) -> None:
        def loader() -> dict[str, Any]:
            raise SyntaxError("bad handler file")

        ref = HandlerRef(identifier="broken", declared=frozenset({"GET"}), loader=loader)
        match = build_table([ref]).resolve("/broken")
        response = await Dispatcher().handle("GET", match, _make_request(path="/broken"))
        assert response.status == 500

    async def test_http_error_keeps_status(self) -> None:
        def teapot() -> None:
            raise HTTPError(status=418, detail="I'm a teapot")

        response = await _dispatch("tea", {"GET": teapot}, "/tea")
        assert response.status == 418
        assert response.read_json() == {"error": "I'm a teapot"}

    async def test_handler_not_found(self) -> None:
        def missing() -> None:
            raise NotFound("No such post")

        response = await _dispatch("post", {"GET": missing}, "/post")
        assert response.status == 404

    async def test_unconvertible_result_is_500(self) -> None:
        response = await _dispatch("odd", {"GET": lambda: object()}, "/odd")
        assert response.status == 500


class TestResults:
    async def test_none_is_empty_200(self) -> None:
        response = await _dispatch("noop", {"POST": lambda: None}, "/noop", method="POST")
        assert response.status == 200
        assert response.body_bytes == b""

    async def test_response_passes_through(self) -> None:
        def created() -> Response:
            return Response.json({"id": 1}, status=201)

        response = await _dispatch("items", {"POST": created}, "/items", method="POST")
        assert response.status == 201
        assert response.content_type == "application/json"

    async def test_dict_is_json(self) -> None:
        response = await _dispatch("hello", {"GET": lambda: {"hello": "world"}}, "/hello")
        assert response.read_json() == {"hello": "world"}


class TestInvocation:
    async def test_params_injected_by_name(self) -> None:
        async def get(request: Request, post: str) -> Response:
            return Response.json({"post": post, "params": dict(request.params)})

        response = await _dispatch("blog/[post]", {"GET": get}, "/blog/42")
        assert response.read_json() == {"post": "42", "params": {"post": "42"}}

    async def test_params_mapping_injected(self) -> None:
        def get(params: dict[str, Any]) -> Response:
            return Response.json({"path": list(params["path"])})

        response = await _dispatch("files/[...path]", {"GET": get}, "/files/a/b")
        assert response.read_json() == {"path": ["a", "b"]}

    async def test_request_by_annotation(self) -> None:
        def get(req: Request) -> str:
            return req.url

        response = await _dispatch("hello", {"GET": get}, "/hello")
        assert response.text == "http://example.com/hello"

    async def test_request_body(self) -> None:
        async def post(request: Request) -> dict[str, Any]:
            data = await request.json()
            return {"echo": data}

        match = _match("echo", {"POST": post}, "/echo")
        request = _make_request("POST", "/echo", body=b'{"a": 1}')
        response = await Dispatcher().handle("POST", match, request)
        assert response.read_json() == {"echo": {"a": 1}}

    async def test_sync_handler_does_not_block_loop(self) -> None:
        def slow() -> str:
            time.sleep(0.2)
            return "slow"

        async def fast() -> str:
            return "fast"

        table = build_table(
            [handler_ref("slow", {"GET": slow}), handler_ref("fast", {"GET": fast})]
        )
        dispatcher = Dispatcher()
        finished: list[str] = []

        async def run(path: str) -> None:
            response = await dispatcher.handle("GET", table.resolve(path), _make_request(path=path))
            finished.append(response.text)

        await asyncio.gather(run("/slow"), run("/fast"))
        assert finished == ["fast", "slow"]

    async def test_concurrent_async_handlers(self) -> None:
        async def get(n: str) -> str:
            await asyncio.sleep(0.05 if n == "1" else 0)
            return n

        table = build_table([handler_ref("[n]", {"GET": get})])
        dispatcher = Dispatcher()
        responses = await asyncio.gather(
            *(dispatcher.handle("GET", table.resolve(f"/{n}"), _make_request(path=f"/{n}")) for n in "123")
        )
        assert [r.text for r in responses] == ["1", "2", "3"]


class TestTimeout:
    async def test_timeout_is_504(self) -> None:
        async def slow() -> str:
            await asyncio.sleep(5)
            return "late"

        dispatcher = Dispatcher(timeout=0.05)
        response = await _dispatch("slow", {"GET": slow}, "/slow", dispatcher=dispatcher)
        assert response.status == 504
        assert response.read_json() == {"error": "Gateway Timeout"}

    async def test_module_timeout_overrides_default(self) -> None:
        async def slow() -> str:
            await asyncio.sleep(5)
            return "late"

        response = await _dispatch("slow", {"GET": slow, "TIMEOUT": 0.05}, "/slow")
        assert response.status == 504

    async def test_configurable_timeout_status(self) -> None:
        async def slow() -> str:
            await asyncio.sleep(5)
            return "late"

        dispatcher = Dispatcher(timeout=0.05, timeout_status=500)
        response = await _dispatch("slow", {"GET": slow}, "/slow", dispatcher=dispatcher)
        assert response.status == 500

    async def test_fast_handler_within_timeout(self) -> None:
        dispatcher = Dispatcher(timeout=1.0)
        response = await _dispatch("ok", {"GET": lambda: "ok"}, "/ok", dispatcher=dispatcher)
        assert response.status == 200


class TestCancellation:
    async def test_cancellation_propagates(self) -> None:
        started = asyncio.Event()

        async def slow() -> str:
            started.set()
            await asyncio.sleep(5)
            return "late"

        match = _match("slow", {"GET": slow}, "/slow")
        task = asyncio.create_task(Dispatcher().handle("GET", match, _make_request(path="/slow")))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestBuildHandlerKwargs:
    def test_unknown_parameters_left_alone(self) -> None:
        def handler(request, post, extra="default"):  # noqa: ANN001, ANN202
            return None

        request = _make_request()
        kwargs = build_handler_kwargs(handler, request, {"post": "1"})
        assert kwargs == {"request": request, "post": "1"}

    def test_no_parameters(self) -> None:
        assert build_handler_kwargs(lambda: None, _make_request(), {"x": "1"}) == {}
