"""Health endpoint smoke test."""

import pytest

pytestmark = pytest.mark.asyncio


async def test_healthcheck_returns_ok(app_context) -> None:
    client = app_context["client"]
    response = await client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["database"] == "ok"
    assert payload["service"] == "Camp Registration API"
    assert "X-Request-ID" in response.headers
