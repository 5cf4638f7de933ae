# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""/server endpoint tests."""

import pytest
from httpx import AsyncClient

from schemas.models import Book, Club, MemberClub, Member, Server, Session


@pytest.mark.asyncio
async def test_create_server_with_generated_id(client: AsyncClient, db) -> None:
    response = await client.post("/server", json={"name": "Guild"})
    assert response.status_code == 200
    server = response.json()["server"]
    assert server["name"] == "Guild"
    assert len(server["id"]) == 18 and server["id"].isdigit()


@pytest.mark.asyncio
async def test_create_server_keeps_numeric_id(client: AsyncClient, db) -> None:
    response = await client.post("/server", json={"id": 123456789012345678, "name": "Guild"})
    assert response.status_code == 200
    assert db.rows(Server) == [{"id": "123456789012345678", "name": "Guild"}]


@pytest.mark.asyncio
async def test_create_server_requires_name(client: AsyncClient) -> None:
    response = await client.post("/server", json={})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Server name is required"}


@pytest.mark.asyncio
async def test_list_servers_sorted_by_name(client: AsyncClient, db) -> None:
    db.seed(Server, {"id": "2", "name": "Beta"}, {"id": "1", "name": "Alpha"})
    db.seed(Club, {"id": "c1", "name": "Readers", "server_id": "2", "discord_channel": "99"})

    response = await client.get("/server")
    assert response.status_code == 200
    servers = response.json()["servers"]
    assert [s["name"] for s in servers] == ["Alpha", "Beta"]
    assert servers[1]["clubs"] == [{"id": "c1", "name": "Readers", "discord_channel": "99"}]


@pytest.mark.asyncio
async def test_server_detail(client: AsyncClient, db) -> None:
    db.seed(Server, {"id": "s1", "name": "Guild"})
    db.seed(Club, {"id": "c1", "name": "Readers", "server_id": "s1"})
    db.seed(Member, {"id": 1, "name": "Ann"}, {"id": 2, "name": "Bo"})
    db.seed(MemberClub, {"member_id": 1, "club_id": "c1"}, {"member_id": 2, "club_id": "c1"})
    db.seed(Book, {"id": 1, "title": "Old", "author": "A"}, {"id": 2, "title": "New", "author": "B"})
    db.seed(Session, {"id": "s-old", "club_id": "c1", "book_id": 1, "due_date": "2025-01-01"},
            {"id": "s-new", "club_id": "c1", "book_id": 2, "due_date": "2025-06-01"})

    response = await client.get("/server", params={"id": "s1"})
    assert response.status_code == 200
    club = response.json()["clubs"][0]
    assert club["member_count"] == 2
    assert club["latest_session"] == {
        "id": "s-new",
        "due_date": "2025-06-01",
        "book": {"title": "New", "author": "B"},
    }


@pytest.mark.asyncio
async def test_server_not_found(client: AsyncClient) -> None:
    response = await client.get("/server", params={"id": "missing"})
    assert response.status_code == 404
    assert response.json()["error"] == "Server not found"


@pytest.mark.asyncio
async def test_update_server(client: AsyncClient, db) -> None:
    db.seed(Server, {"id": "s1", "name": "Guild"})
    response = await client.put("/server", json={"id": "s1", "name": "Renamed"})
    assert response.status_code == 200
    assert response.json()["server"] == {"id": "s1", "name": "Renamed"}


@pytest.mark.asyncio
async def test_update_server_without_changes(client: AsyncClient, db) -> None:
    response = await client.put("/server", json={"id": "s1"})
    assert response.status_code == 400
    assert response.json()["error"] == "No fields to update"
    assert db.calls == []


@pytest.mark.asyncio
async def test_update_missing_server(client: AsyncClient) -> None:
    response = await client.put("/server", json={"id": "nope", "name": "x"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_server_with_clubs_refused(client: AsyncClient, db) -> None:
    db.seed(Server, {"id": "S", "name": "Guild"})
    db.seed(Club, {"id": "c1", "name": "Readers", "server_id": "S"})

    response = await client.delete("/server", params={"id": "S"})
    assert response.status_code == 400
    assert response.json()["clubs_count"] == 1
    assert len(db.rows(Server)) == 1


@pytest.mark.asyncio
async def test_delete_server(client: AsyncClient, db) -> None:
    db.seed(Server, {"id": "S", "name": "Guild"})
    response = await client.delete("/server", params={"id": "S"})
    assert response.status_code == 200
    assert db.rows(Server) == []


@pytest.mark.asyncio
async def test_store_failure_is_500(client: AsyncClient, db) -> None:
    db.fail("select", Server, "connection reset")
    response = await client.get("/server")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "connection reset"}
