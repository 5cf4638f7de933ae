# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""Concurrent read fan-out used by the response builders."""

import asyncio

import pytest
from httpx import AsyncClient

from schemas.models import Book, Club, Discussion, Session
from utils.errors import StoreError
from utils.shaper import gather_reads


@pytest.mark.asyncio
async def test_gather_reads_keeps_order() -> None:
    async def read(value, delay):
        await asyncio.sleep(delay)
        return value

    assert await gather_reads(read("a", 0.02), read("b", 0), read("c", 0.01)) == ["a", "b", "c"]
    assert await gather_reads() == []


@pytest.mark.asyncio
async def test_failed_read_cancels_siblings() -> None:
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def slow_read():
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return "late"

    async def failing_read():
        await started.wait()
        raise StoreError("connection reset")

    with pytest.raises(StoreError, match="connection reset"):
        await gather_reads(slow_read(), failing_read())
    # The sibling was cancelled and awaited before the error surfaced
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_session_read_failure_is_500(client: AsyncClient, db) -> None:
    db.seed(Club, {"id": "c1", "name": "Readers"})
    db.seed(Book, {"id": 1, "title": "Dune", "author": "Herbert"})
    db.seed(Session, {"id": "s1", "club_id": "c1", "book_id": 1})
    db.fail("select", Discussion, "connection reset")

    response = await client.get("/session", params={"id": "s1"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "connection reset"}
