"""HTTP client for the desktop service.

Thin wrapper over a shared httpx.AsyncClient:
- Every call carries a bounded timeout; a timeout is a failure, never a hang
- Responses are mapped onto the agent error taxonomy (ytmonitor.agent.errors)
- The API key travels in X-API-Key and is never logged

Pass transport= to run against an in-process app (httpx.ASGITransport).
"""

from dataclasses import dataclass
from typing import Any

import httpx

from ytmonitor.agent.errors import AgentAuthError, AgentRequestError, TransientIOError
from ytmonitor.logging import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/v1"
API_KEY_HEADER = "X-API-Key"


@dataclass(frozen=True)
class Registration:
    device_id: str
    api_key: str
    message: str | None = None


class MonitorApiClient:
    """Async client for the /api/v1 surface used by devices."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout_s, connect=min(timeout_s, 5.0))
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "MonitorApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Protocol calls
    # =========================================================================

    async def register(self, device_id: str, device_name: str) -> Registration:
        data = await self._request(
            "POST",
            "/register",
            json={"device_id": device_id, "device_name": device_name},
        )
        return Registration(
            device_id=data["device_id"], api_key=data["api_key"], message=data.get("message")
        )

    async def heartbeat(self, device_id: str, api_key: str) -> dict[str, Any]:
        return await self._request("GET", f"/heartbeat/{device_id}", api_key=api_key)

    async def submit_history(self, api_key: str, videos: list[dict[str, Any]]) -> int:
        data = await self._request(
            "POST", "/watch-history", api_key=api_key, json={"videos": videos}
        )
        return int(data.get("count", 0))

    async def fetch_blocks(self, device_id: str, api_key: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/blocks/{device_id}", api_key=api_key)
        return list(data.get("blocks", []))

    async def log_attempt(self, api_key: str, attempt: dict[str, Any]) -> None:
        await self._request("POST", "/blocks/attempts", api_key=api_key, json=attempt)

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        api_key: str | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        headers = {API_KEY_HEADER: api_key} if api_key else {}
        url = f"{API_PREFIX}{path}"

        try:
            response = await self._client.request(method, url, headers=headers, json=json)
        except httpx.TimeoutException as e:
            raise TransientIOError(f"{method} {url} timed out") from e
        except httpx.TransportError as e:
            raise TransientIOError(f"{method} {url} failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise self._classify(method, url, response)

        try:
            return response.json()
        except ValueError as e:
            raise TransientIOError(
                f"{method} {url} returned a non-JSON body", response.status_code
            ) from e

    @staticmethod
    def _classify(method: str, url: str, response: httpx.Response) -> Exception:
        """Map an error response onto the agent error taxonomy."""
        status = response.status_code
        code, message, details = None, f"{method} {url} failed with {status}", None
        try:
            error = response.json().get("error") or {}
            code = error.get("code")
            message = error.get("message") or message
            details = error.get("details")
        except (ValueError, AttributeError):
            pass

        logger.debug("service_request_failed", url=url, status_code=status, code=code)

        if status in (401, 403):
            return AgentAuthError(message, status)
        if status == 429 or status >= 500:
            return TransientIOError(message, status)
        return AgentRequestError(message, status, code=code, details=details)
