"""Tests for perch.server.negotiation — return value to Response mapping."""

import pytest

from perch.http.response import Redirect, Response
from perch.server.negotiation import negotiate


class TestNegotiate:
    def test_none_is_empty_200(self) -> None:
        response = negotiate(None)
        assert response.status == 200
        assert response.body_bytes == b""

    def test_response_passthrough(self) -> None:
        original = Response("x").with_status(202)
        assert negotiate(original) is original

    def test_str(self) -> None:
        response = negotiate("hello")
        assert response.text == "hello"
        assert response.content_type.startswith("text/plain")

    def test_bytes(self) -> None:
        response = negotiate(b"\x00\x01")
        assert response.body_bytes == b"\x00\x01"
        assert response.content_type == "application/octet-stream"

    def test_dict(self) -> None:
        response = negotiate({"a": 1})
        assert response.content_type == "application/json"
        assert response.read_json() == {"a": 1}

    def test_list(self) -> None:
        assert negotiate([1, 2]).read_json() == [1, 2]

    def test_redirect(self) -> None:
        response = negotiate(Redirect("/api/login"))
        assert response.status == 307
        assert response.header("Location") == "/api/login"

    def test_value_with_status(self) -> None:
        response = negotiate(({"id": 1}, 201))
        assert response.status == 201
        assert response.read_json() == {"id": 1}

    def test_value_with_status_and_headers(self) -> None:
        response = negotiate(("created", 201, {"Location": "/api/items/1"}))
        assert response.status == 201
        assert response.header("location") == "/api/items/1"

    def test_unsupported_type(self) -> None:
        with pytest.raises(TypeError, match="Cannot convert int"):
            negotiate(42)
