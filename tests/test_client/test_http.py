"""Tests for the JSON HTTP helper."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from pkceflow.client import JsonHttpClient
from pkceflow.exceptions import ParseError, ServerError


URL = "https://idp.example.com/thing"


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        headers={"content-type": "application/json"},
        content=json.dumps(data).encode("utf-8"),
    )


def _client(handler) -> JsonHttpClient:
    return JsonHttpClient(timeout=5, transport=httpx.MockTransport(handler))


class TestRequestJson:
    def test_returns_decoded_body(self) -> None:
        client = _client(lambda request: _json_response({"ok": True}))
        assert asyncio.run(client.request_json("GET", URL)) == {"ok": True}

    def test_sends_accept_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response({})

        asyncio.run(_client(handler).request_json("GET", URL, headers={"X-Test": "1"}))
        assert seen[0].headers["accept"] == "application/json"
        assert seen[0].headers["x-test"] == "1"

    def test_posts_form_data(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response({})

        asyncio.run(_client(handler).request_json("POST", URL, data={"a": "1 2"}))
        assert seen[0].method == "POST"
        assert seen[0].content == b"a=1+2"

    def test_context_manager_reuses_client(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return _json_response({"n": calls})

        async def _run() -> list[Any]:
            async with _client(handler) as http:
                return [await http.request_json("GET", URL), await http.request_json("GET", URL)]

        assert asyncio.run(_run()) == [{"n": 1}, {"n": 2}]


class TestErrors:
    def test_non_2xx_raises_server_error(self) -> None:
        client = _client(lambda request: httpx.Response(404, text="missing"))
        with pytest.raises(ServerError) as exc_info:
            asyncio.run(client.request_json("GET", URL, description="openid discovery"))
        assert exc_info.value.status_code == 404
        assert "openid discovery failed with HTTP 404" in str(exc_info.value)

    def test_error_field_becomes_error_code(self) -> None:
        body = {"error": "invalid_grant", "error_description": "code expired"}
        client = _client(lambda request: _json_response(body, status_code=400))
        with pytest.raises(ServerError) as exc_info:
            asyncio.run(client.request_json("POST", URL))
        assert exc_info.value.error_code == "invalid_grant"
        assert "code expired" in str(exc_info.value)

    def test_invalid_json_raises_parse_error(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ParseError):
            asyncio.run(client.request_json("GET", URL))

    def test_timeout_raises_server_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ServerError, match="timed out after 5s"):
            asyncio.run(_client(handler).request_json("GET", URL))

    def test_connect_error_raises_server_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ServerError, match="refused"):
            asyncio.run(_client(handler).request_json("GET", URL))

    def test_exit_codes(self) -> None:
        assert ServerError("x").exit_code == 5
        assert ParseError("x").exit_code == 7
