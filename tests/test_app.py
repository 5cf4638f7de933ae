# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""Application-level behaviour: CORS, request ids and the error envelope."""

import json
import logging

import pytest
import structlog
from httpx import ASGITransport, AsyncClient

from app import create_app
from utils.database import get_db
from utils.log_config import build_formatter


@pytest.mark.asyncio
async def test_preflight_returns_empty_200(client: AsyncClient) -> None:
    response = await client.options("/club")
    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert "DELETE" in response.headers["access-control-allow-methods"]


@pytest.mark.asyncio
async def test_cors_headers_on_errors(client: AsyncClient) -> None:
    response = await client.get("/session")
    assert response.status_code == 400
    assert response.headers["access-control-allow-origin"] == "*"
    assert "apikey" in response.headers["access-control-allow-headers"]


@pytest.mark.asyncio
async def test_method_not_allowed(client: AsyncClient) -> None:
    response = await client.patch("/member", json={})
    assert response.status_code == 405
    assert response.json() == {"success": False, "error": "Method not allowed"}


@pytest.mark.asyncio
async def test_invalid_json_body(client: AsyncClient) -> None:
    response = await client.post("/club", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid JSON body"


@pytest.mark.asyncio
async def test_wrong_field_type_names_field(client: AsyncClient) -> None:
    response = await client.post("/member", json={"name": "Ann", "points": "many"})
    assert response.status_code == 400
    assert response.json()["error"].startswith("points:")


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/server")
    assert len(response.headers["x-request-id"]) == 36


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/server", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_request_id_bound_to_log_context(db) -> None:
    """Handlers run with the request id in structlog's context."""
    seen = {}

    async def capture_context():
        seen.update(structlog.contextvars.get_contextvars())
        return db

    app = create_app()
    app.dependency_overrides[get_db] = capture_context
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.get("/server", headers={"X-Request-Id": "req-42"})
        assert seen["request_id"] == "req-42"
        await ac.get("/server")
        assert seen["request_id"] != "req-42"


def test_stdlib_records_rendered_with_request_id() -> None:
    formatter = build_formatter("json")
    record = logging.LogRecord("routers.club", logging.WARNING, __file__, 1, "Club %s created", ("c1",), None)
    structlog.contextvars.bind_contextvars(request_id="req-7")
    try:
        rendered = json.loads(formatter.format(record))
    finally:
        structlog.contextvars.clear_contextvars()

    assert rendered["event"] == "Club c1 created"
    assert rendered["request_id"] == "req-7"
    assert rendered["level"] == "warning"
    assert rendered["logger"] == "routers.club"
    assert "timestamp" in rendered
