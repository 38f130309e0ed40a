"""Tests for the agent's HTTP client.

Tests cover:
- Wire shapes of every protocol call
- Mapping of failures onto the agent error taxonomy:
  401/403 -> AgentAuthError, 429/5xx/timeouts -> TransientIOError,
  other 4xx -> AgentRequestError carrying the service's code and details
"""

import json

import httpx
import pytest
import respx

from tests.support.agent import API_KEY, BASE_URL, api_url
from ytmonitor.agent.client import MonitorApiClient
from ytmonitor.agent.errors import AgentAuthError, AgentRequestError, TransientIOError


class TestProtocolCalls:
    @pytest.mark.asyncio
    @respx.mock
    async def test_register(self):
        route = respx.post(api_url("/register")).respond(
            201,
            json={"device_id": "dev-1", "api_key": API_KEY, "message": "Device registered"},
        )

        async with MonitorApiClient(BASE_URL) as client:
            registration = await client.register("dev-1", "Test")

        assert registration.api_key == API_KEY
        assert route.calls.last.request.headers.get("X-API-Key") is None
        assert json.loads(route.calls.last.request.content) == {
            "device_id": "dev-1",
            "device_name": "Test",
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_heartbeat_sends_key(self):
        route = respx.get(api_url("/heartbeat/dev-1")).respond(
            200, json={"status": "ok", "device_id": "dev-1", "timestamp": "2026-01-01T00:00:00Z"}
        )

        async with MonitorApiClient(BASE_URL) as client:
            await client.heartbeat("dev-1", API_KEY)

        assert route.calls.last.request.headers["X-API-Key"] == API_KEY

    @pytest.mark.asyncio
    @respx.mock
    async def test_submit_history_returns_count(self):
        respx.post(api_url("/watch-history")).respond(200, json={"success": True, "count": 2})

        async with MonitorApiClient(BASE_URL) as client:
            count = await client.submit_history(API_KEY, [{"video_id": "a"}, {"video_id": "b"}])

        assert count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_blocks(self):
        respx.get(api_url("/blocks/dev-1")).respond(
            200,
            json={
                "device_id": "dev-1",
                "blocks": [{"id": "b1", "type": "video", "youtube_id": "abc"}],
                "count": 1,
            },
        )

        async with MonitorApiClient(BASE_URL) as client:
            blocks = await client.fetch_blocks("dev-1", API_KEY)

        assert blocks == [{"id": "b1", "type": "video", "youtube_id": "abc"}]

    @pytest.mark.asyncio
    @respx.mock
    async def test_trailing_slash_in_base_url(self):
        route = respx.get(api_url("/heartbeat/dev-1")).respond(200, json={"status": "ok"})

        async with MonitorApiClient(BASE_URL + "/") as client:
            await client.heartbeat("dev-1", API_KEY)

        assert route.called


class TestErrorMapping:
    @pytest.mark.parametrize("status", [401, 403])
    @pytest.mark.asyncio
    @respx.mock
    async def test_auth_failures(self, status):
        respx.get(api_url("/heartbeat/dev-1")).respond(
            status, json={"error": {"code": "E_UNAUTHENTICATED", "message": "Invalid API key"}}
        )

        async with MonitorApiClient(BASE_URL) as client:
            with pytest.raises(AgentAuthError) as exc_info:
                await client.heartbeat("dev-1", API_KEY)

        assert exc_info.value.status_code == status
        assert exc_info.value.message == "Invalid API key"

    @pytest.mark.parametrize("status", [429, 500, 503])
    @pytest.mark.asyncio
    @respx.mock
    async def test_transient_statuses(self, status):
        respx.get(api_url("/heartbeat/dev-1")).respond(status)

        async with MonitorApiClient(BASE_URL) as client:
            with pytest.raises(TransientIOError) as exc_info:
                await client.heartbeat("dev-1", API_KEY)

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_transient(self):
        respx.get(api_url("/heartbeat/dev-1")).mock(side_effect=httpx.ReadTimeout("slow"))

        async with MonitorApiClient(BASE_URL, timeout_s=0.5) as client:
            with pytest.raises(TransientIOError, match="timed out"):
                await client.heartbeat("dev-1", API_KEY)

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_transient(self):
        respx.get(api_url("/heartbeat/dev-1")).mock(side_effect=httpx.ConnectError("refused"))

        async with MonitorApiClient(BASE_URL) as client:
            with pytest.raises(TransientIOError):
                await client.heartbeat("dev-1", API_KEY)

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_success_is_transient(self):
        respx.get(api_url("/heartbeat/dev-1")).respond(200, content=b"<html>proxy</html>")

        async with MonitorApiClient(BASE_URL) as client:
            with pytest.raises(TransientIOError):
                await client.heartbeat("dev-1", API_KEY)

    @pytest.mark.asyncio
    @respx.mock
    async def test_request_error_carries_code_and_details(self):
        details = {"failed": [{"index": 0, "errors": []}], "accepted": 0}
        respx.post(api_url("/watch-history")).respond(
            400,
            json={
                "error": {
                    "code": "E_HISTORY_BATCH_INVALID",
                    "message": "1 of 1 videos failed validation",
                    "details": details,
                }
            },
        )

        async with MonitorApiClient(BASE_URL) as client:
            with pytest.raises(AgentRequestError) as exc_info:
                await client.submit_history(API_KEY, [{"title": "no id"}])

        assert exc_info.value.code == "E_HISTORY_BATCH_INVALID"
        assert exc_info.value.details == details
