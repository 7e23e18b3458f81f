"""ApiClient tests: bearer auth, retries, 401 replay, response decoding."""

import json

import httpx
import pytest

from openapi_connector.errors import (
    TransientNetworkError,
    UnauthorizedError,
    UpstreamError,
)
from openapi_connector.models import FORM_CONTENT_TYPE, MULTIPART_CONTENT_TYPE

from .conftest import API_BASE_URL, TOKEN_URL


def _token(value):
    return httpx.Response(200, json={"access_token": value, "expires_in": 3600})


class TestRequests:
    @pytest.mark.asyncio
    async def test_get_attaches_bearer_token_and_query(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        route = respx_mock.get(f"{API_BASE_URL}/items").mock(
            return_value=httpx.Response(200, json={"items": []})
        )

        result = await api_client.get("/items", {"tags": ["a", "b"], "limit": 5, "skip": None})

        request = route.calls.last.request
        assert request.headers["authorization"] == "Bearer tok-1"
        assert request.url.query.decode() == "tags=a&tags=b&limit=5"
        assert result == {"items": []}

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        route = respx_mock.post(f"{API_BASE_URL}/items").mock(
            return_value=httpx.Response(201, json={"id": 1})
        )

        result = await api_client.post("/items", {"name": "widget"})

        request = route.calls.last.request
        assert json.loads(request.content) == {"name": "widget"}
        assert request.headers["content-type"] == "application/json"
        assert result == {"id": 1}

    @pytest.mark.asyncio
    async def test_form_body_is_urlencoded(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        route = respx_mock.post(f"{API_BASE_URL}/login").mock(
            return_value=httpx.Response(200, text="ok")
        )

        await api_client.call(
            "/login", "POST", body={"user": "ada", "remember": "yes"}, content_type=FORM_CONTENT_TYPE
        )

        request = route.calls.last.request
        assert request.headers["content-type"] == FORM_CONTENT_TYPE
        assert request.content == b"user=ada&remember=yes"

    @pytest.mark.asyncio
    async def test_multipart_body_is_sent_as_form_data(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        route = respx_mock.post(f"{API_BASE_URL}/uploads").mock(
            return_value=httpx.Response(200, json={"uploaded": True})
        )

        await api_client.call(
            "/uploads",
            "POST",
            body={"title": "report", "meta": {"pages": 3}},
            content_type=MULTIPART_CONTENT_TYPE,
        )

        request = route.calls.last.request
        assert request.headers["content-type"].startswith("multipart/form-data; boundary=")
        assert b'name="title"' in request.content
        assert b'{"pages": 3}' in request.content

    @pytest.mark.asyncio
    async def test_non_json_response_is_returned_as_text(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        respx_mock.get(f"{API_BASE_URL}/report").mock(
            return_value=httpx.Response(200, text="a,b\n1,2", headers={"content-type": "text/csv"})
        )

        assert await api_client.get("/report") == "a,b\n1,2"

    @pytest.mark.asyncio
    async def test_empty_json_response_is_returned_as_empty_text(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        respx_mock.delete(f"{API_BASE_URL}/items/1").mock(
            return_value=httpx.Response(204, headers={"content-type": "application/json"})
        )

        assert await api_client.delete("/items/1") == ""


class TestFailureHandling:
    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        route = respx_mock.get(f"{API_BASE_URL}/items").mock(
            side_effect=[
                httpx.ConnectError("refused"),
                httpx.ReadTimeout("slow"),
                httpx.Response(200, json={"ok": True}),
            ]
        )

        result = await api_client.get("/items")

        assert result == {"ok": True}
        assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_retries_are_exhausted_after_three_attempts(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        route = respx_mock.get(f"{API_BASE_URL}/items").mock(
            side_effect=httpx.ConnectError("refused")
        )

        with pytest.raises(TransientNetworkError, match="refused") as excinfo:
            await api_client.get("/items")

        assert route.call_count == 3
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_backoff_doubles_and_is_capped(self, respx_mock, token_cache, monkeypatch):
        from openapi_connector import api_client as api_client_module
        from openapi_connector.api_client import ApiClient

        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr(api_client_module.asyncio, "sleep", fake_sleep)
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        respx_mock.get(f"{API_BASE_URL}/items").mock(side_effect=httpx.ConnectError("refused"))
        client = ApiClient(API_BASE_URL, token_cache, max_attempts=5)

        with pytest.raises(TransientNetworkError):
            await client.get("/items")

        assert delays == [1.0, 2.0, 4.0, 5.0]

    @pytest.mark.asyncio
    async def test_unauthorized_triggers_single_refresh_and_replay(self, respx_mock, api_client):
        token_route = respx_mock.post(TOKEN_URL).mock(
            side_effect=[_token("stale"), _token("fresh")]
        )
        route = respx_mock.get(f"{API_BASE_URL}/items").mock(
            side_effect=[httpx.Response(401), httpx.Response(200, json={"ok": True})]
        )

        result = await api_client.get("/items")

        assert result == {"ok": True}
        assert token_route.call_count == 2
        assert route.call_count == 2
        assert route.calls[0].request.headers["authorization"] == "Bearer stale"
        assert route.calls[1].request.headers["authorization"] == "Bearer fresh"

    @pytest.mark.asyncio
    async def test_second_unauthorized_is_final(self, respx_mock, api_client):
        token_route = respx_mock.post(TOKEN_URL).mock(
            side_effect=[_token("stale"), _token("fresh")]
        )
        route = respx_mock.get(f"{API_BASE_URL}/items").mock(
            return_value=httpx.Response(401, text="nope")
        )

        with pytest.raises(UnauthorizedError) as excinfo:
            await api_client.get("/items")

        assert route.call_count == 2
        assert token_route.call_count == 2
        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_error_status_is_surfaced_without_retry(self, respx_mock, api_client):
        respx_mock.post(TOKEN_URL).mock(return_value=_token("tok-1"))
        route = respx_mock.get(f"{API_BASE_URL}/items/9").mock(
            return_value=httpx.Response(404, text="no such item")
        )

        with pytest.raises(UpstreamError) as excinfo:
            await api_client.get("/items/9")

        assert route.call_count == 1
        assert excinfo.value.status_code == 404
        assert excinfo.value.reason == "Not Found"
        assert str(excinfo.value) == "API request failed: 404 Not Found - no such item"
