"""Tests for the shared JSON-over-HTTP client."""

from __future__ import annotations

import httpx
import pytest

from task_bridge.http import ApiError, JsonApiClient
from task_bridge.memory import MemoryApiClient


def _client(handler, **kwargs) -> JsonApiClient:
    return JsonApiClient("http://api.test/base", transport=httpx.MockTransport(handler), **kwargs)


class TestJsonApiClient:
    def test_joins_base_url_and_decodes_json(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        with _client(handler, headers={"X-Extra": "1"}) as client:
            assert client.request_json("POST", "/items", json={"a": 1}) == {"ok": True}

        assert str(seen[0].url) == "http://api.test/base/items"
        assert seen[0].headers["X-Extra"] == "1"
        assert seen[0].headers["User-Agent"].startswith("task-bridge/")

    def test_absolute_url_overrides_base(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(204)

        client = _client(handler)
        assert client.request_json("POST", "http://elsewhere.test/hook") is None
        assert seen == ["http://elsewhere.test/hook"]

    def test_not_found_can_be_allowed(self):
        client = _client(lambda request: httpx.Response(404, json={"detail": "missing"}))

        assert client.request("GET", "/x", allow_not_found=True) is None
        with pytest.raises(ApiError) as excinfo:
            client.request("GET", "/x")
        assert excinfo.value.status_code == 404

    def test_server_error_keeps_body(self):
        client = _client(lambda request: httpx.Response(503, text="maintenance"))

        with pytest.raises(ApiError) as excinfo:
            client.request("GET", "/x")

        assert excinfo.value.status_code == 503
        assert excinfo.value.body == "maintenance"

    def test_transport_error_is_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ApiError) as excinfo:
            _client(handler).request("GET", "/x")

        assert excinfo.value.status_code is None

    def test_non_json_body_is_an_error(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(ApiError, match="non-JSON"):
            client.request_json("GET", "/x")


class TestMemoryApiClient:
    def test_sends_auth_headers(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        client = MemoryApiClient(
            "http://memory.test",
            auth_token="secret-token",
            bare_password="pw",
            transport=httpx.MockTransport(handler),
        )

        assert client.list_agent_blocks("agent-1") == []
        assert seen[0].headers["Authorization"] == "Bearer secret-token"
        assert seen[0].headers["X-BARE-PASSWORD"] == "pw"
        assert seen[0].url.path == "/v1/agents/agent-1/core-memory/blocks"
