"""Test helpers for authentication and common API operations.

Provides:
- Device registration through the public API
- Header builders for device keys and the management secret
"""

from fastapi.testclient import TestClient

MANAGEMENT_SECRET = "test-management-secret"


def key_headers(api_key: str) -> dict[str, str]:
    """Headers carrying a device API key."""
    return {"X-API-Key": api_key}


def bearer_headers(api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


def management_headers(secret: str = MANAGEMENT_SECRET) -> dict[str, str]:
    return {"X-YTM-Management": secret}


def register(client: TestClient, device_id: str = "dev-1", device_name: str = "Test") -> str:
    """Register a device and return its API key."""
    response = client.post(
        "/api/v1/register", json={"device_id": device_id, "device_name": device_name}
    )
    assert response.status_code in (200, 201), response.text
    return response.json()["api_key"]


def create_block(client: TestClient, headers: dict[str, str] | None = None, **body) -> dict:
    """Create a block through the management API and return it."""
    response = client.post("/api/v1/blocks", json=body, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()["block"]
