# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
/server endpoint: Discord servers that own clubs.
"""
import logging
import random
from typing import Optional

from fastapi import APIRouter, Depends, Query

from schemas.models import Club, Server
from schemas.requests import ServerCreate, ServerUpdate
from utils.database import DatabaseHandler, eq, get_db
from utils.errors import NotFoundError, ValidationError
from utils.responses import success_response
from utils.shaper import server_detail, server_list
from utils.validation import ensure_changes, require

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/server", tags=["Server"])


@router.get("")
async def get_server(
    server_id: Optional[str] = Query(None, alias="id"),
    db: DatabaseHandler = Depends(get_db),
):
    """All servers with their clubs, or one server with club details when id is given."""
    if not server_id:
        return success_response(await server_list(db))
    server = await db.fetch_one(Server, eq("id", server_id), columns="id, name")
    if server is None:
        raise NotFoundError("Server not found")
    return success_response(await server_detail(db, server))


@router.post("")
async def create_server(body: ServerCreate, db: DatabaseHandler = Depends(get_db)):
    require(body.name, "Server name is required")
    # Discord snowflakes are 18-digit numbers
    server_id = body.id or str(random.randint(10**17, 10**18 - 1))
    rows = await db.insert(Server, {"id": server_id, "name": body.name})
    logger.info(f"Server {server_id} created")
    return success_response({
        "success": True,
        "message": "Server created successfully",
        "server": rows[0] if rows else {"id": server_id, "name": body.name},
    })


@router.put("")
async def update_server(body: ServerUpdate, db: DatabaseHandler = Depends(get_db)):
    require(body.id, "Server ID is required")
    updates = body.sent("name")
    ensure_changes(updates)
    require(updates["name"], "Server name cannot be empty")
    if not await db.exists(Server, eq("id", body.id)):
        raise NotFoundError("Server not found")
    rows = await db.update(Server, updates, eq("id", body.id))
    return success_response({
        "success": True,
        "message": "Server updated successfully",
        "server": rows[0] if rows else None,
    })


@router.delete("")
async def delete_server(
    server_id: Optional[str] = Query(None, alias="id"),
    db: DatabaseHandler = Depends(get_db),
):
    """Delete a server; refused while it still owns clubs."""
    require(server_id, "Server ID is required")
    if not await db.exists(Server, eq("id", server_id)):
        raise NotFoundError("Server not found")
    clubs = await db.select(Club, eq("server_id", server_id), columns="id")
    if clubs:
        raise ValidationError(
            "Cannot delete server with existing clubs. Please delete all clubs first.",
            clubs_count=len(clubs),
        )
    await db.delete(Server, eq("id", server_id))
    logger.info(f"Server {server_id} deleted")
    return success_response({"success": True, "message": "Server deleted successfully"})
