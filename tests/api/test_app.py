"""Tests for app-wide behavior: health, headers, error shape."""
import logging
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine


async def test__health__reports_components(client: AsyncClient) -> None:
    """Both the database and the session table answer."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok", "sessionStore": "ok"}
    assert "set-cookie" not in response.headers


async def test__health__missing_session_store_is_503(
    client: AsyncClient,
    async_engine: AsyncEngine,
) -> None:
    """A reachable database without a usable session table is degraded."""
    async with async_engine.begin() as conn:
        await conn.execute(text("DROP TABLE web_sessions"))

    response = await client.get("/health")

    assert response.status_code == 503
    assert response.json() == {
        "status": "degraded", "database": "ok", "sessionStore": "unavailable",
    }


async def test__security_headers__present(client: AsyncClient) -> None:
    """Every response carries the hardening headers."""
    response = await client.get("/csrf-token")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "max-age=" in response.headers["Strict-Transport-Security"]


async def test__unknown_route__error_shape(client: AsyncClient) -> None:
    """Framework errors use the same {"error": ...} body."""
    response = await client.get("/does-not-exist")

    assert response.status_code == 404
    assert set(response.json()) == {"error"}


async def test__malformed_json__is_400(alice_client: AsyncClient) -> None:
    """A body that is not JSON is a validation error."""
    response = await alice_client.post(
        "/collections",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert "error" in response.json()


async def test__unexpected_error__generic_500(
    app,  # noqa: ANN001
    alice_client: AsyncClient,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Unexpected failures are logged and answered with a generic message."""
    caplog.set_level(logging.INFO, logger="api.requests")
    cookies = alice_client.cookies
    headers = {"X-CSRF-Token": alice_client.headers["X-CSRF-Token"]}

    with patch(
        "services.collection_service.list_collections",
        side_effect=RuntimeError("connection string with secrets"),
    ):
        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="https://test",
            cookies=cookies,
            headers=headers,
        ) as raw_client:
            response = await raw_client.get("/collections")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert "secrets" not in response.text
    request_lines = [r.getMessage() for r in caplog.records if r.name == "api.requests"]
    assert any(
        line.startswith("GET /collections 500 in ") and "RuntimeError" in line
        for line in request_lines
    )


async def test__request_log__one_line_with_error_message(
    alice_client: AsyncClient,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Handled errors are logged with their status and message."""
    caplog.set_level(logging.INFO, logger="api.requests")

    await alice_client.patch("/collections/00000000-0000-0000-0000-000000000000", json={})

    lines = [r.getMessage() for r in caplog.records if r.name == "api.requests"]
    assert any(
        line.startswith("PATCH /collections/") and " 404 in " in line
        and line.endswith(":: error: Collection not found")
        for line in lines
    )


async def test__cors__allows_csrf_header(client: AsyncClient) -> None:
    """Preflight from the configured frontend origin may send X-CSRF-Token."""
    response = await client.options(
        "/collections",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "X-CSRF-Token, Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "x-csrf-token" in response.headers["access-control-allow-headers"].lower()
