# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
/club endpoint: clubs with their members, sessions and shame list.
A club may belong to a Discord server or exist on its own (mobile app);
when server_id is given, lookups and writes are scoped to that server.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from schemas.models import Book, Club, Discussion, Member, MemberClub, Session
from schemas.requests import ClubCreate, ClubUpdate, NestedSession
from utils.cascade import delete_club as cascade_delete_club, raise_partial, sync_shame_list
from utils.database import DatabaseHandler, eq, get_db
from utils.errors import ApiError, NotFoundError, StoreError, ValidationError
from utils.responses import success_response
from utils.shaper import club_detail
from utils.validation import ensure_changes, ensure_server_exists, find_club, require, validate_club_create

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/club", tags=["Club"])

CLUB_COLUMNS = "id, name, discord_channel, server_id, founded_date"
CLUB_UPDATE_FIELDS = ("name", "discord_channel", "founded_date")


@router.get("")
async def get_club(
    club_id: Optional[str] = Query(None, alias="id"),
    server_id: Optional[str] = None,
    discord_channel: Optional[str] = None,
    db: DatabaseHandler = Depends(get_db),
):
    """Full club details, looked up by id or by Discord channel within a server."""
    if discord_channel:
        if not server_id:
            raise ValidationError("Server ID is required when searching by discord_channel")
        await ensure_server_exists(db, server_id)
        club = await db.fetch_one(
            Club, eq("discord_channel", discord_channel), eq("server_id", server_id), columns=CLUB_COLUMNS)
        if club is None:
            raise NotFoundError("Club not found with this discord channel in the specified server")
    else:
        require(club_id, "Club ID is required")
        if server_id:
            await ensure_server_exists(db, server_id)
        club = await find_club(db, club_id, server_id, columns=CLUB_COLUMNS)
    return success_response(await club_detail(db, club))


async def _add_members(db: DatabaseHandler, club_id: str, body: ClubCreate) -> None:
    for member in body.members or []:
        if member.id is None or not member.name:
            logger.warning(f"Skipping invalid member for club {club_id}: {member.model_dump()}")
            continue
        try:
            await db.upsert(Member, {
                "id": member.id,
                "name": member.name,
                "points": member.points or 0,
                "books_read": member.books_read or 0,
            })
            await db.insert(MemberClub, {"member_id": member.id, "club_id": club_id})
        except StoreError as e:
            logger.error(f"Error adding member {member.id} to club {club_id}: {e.message}")


async def _add_active_session(db: DatabaseHandler, club_id: str, session: NestedSession) -> Optional[str]:
    """Create the nested session; returns a message describing what was skipped, or None."""
    book = session.book
    if book is None or not book.title or not book.author:
        return "Club created successfully but session data was incomplete"
    try:
        rows = await db.insert(Book, {
            "title": book.title,
            "author": book.author,
            "edition": book.edition,
            "year": book.year,
            "isbn": book.isbn,
            "page_count": book.page_count,
        })
    except StoreError as e:
        return f"Club created but failed to add book: {e.message}"

    session_id = session.id or str(uuid.uuid4())
    try:
        await db.insert(Session, {
            "id": session_id,
            "club_id": club_id,
            "book_id": rows[0]["id"],
            "due_date": session.due_date,
        })
    except StoreError as e:
        return f"Club created but failed to add session: {e.message}"

    for discussion in session.discussions or []:
        try:
            await db.insert(Discussion, {
                "id": discussion.id or str(uuid.uuid4()),
                "session_id": session_id,
                "title": discussion.title,
                "date": discussion.date,
                "location": discussion.location,
            })
        except StoreError as e:
            logger.error(f"Error adding discussion to session {session_id}: {e.message}")
    return None


@router.post("")
async def create_club(body: ClubCreate, db: DatabaseHandler = Depends(get_db)):
    """
    Create a club, optionally with members, an active session (book and discussions)
    and a shame list. Nested parts are best effort once the club row exists.
    """
    validate_club_create(body)
    if body.server_id:
        await ensure_server_exists(db, body.server_id)

    club_id = body.id or str(uuid.uuid4())
    rows = await db.insert(Club, {
        "id": club_id,
        "name": body.name,
        "discord_channel": body.discord_channel,
        "server_id": body.server_id,
        "founded_date": body.founded_date,
    })
    club = rows[0] if rows else {"id": club_id, "name": body.name}
    logger.info(f"Club {club_id} created")

    await _add_members(db, club_id, body)

    message = "Club created successfully"
    if body.active_session is not None:
        message = await _add_active_session(db, club_id, body.active_session) or message

    if body.shame_list:
        try:
            await sync_shame_list(db, club_id, body.shame_list)
        except ApiError as e:
            raise_partial(e, True, "Club was created but shame list was not applied", club=club)

    return success_response({"success": True, "message": message, "club": club})


@router.put("")
async def update_club(body: ClubUpdate, db: DatabaseHandler = Depends(get_db)):
    require(body.id, "Club ID is required")
    if body.server_id:
        await ensure_server_exists(db, body.server_id)

    updates = body.sent(*CLUB_UPDATE_FIELDS)
    shame_requested = "shame_list" in body.model_fields_set
    ensure_changes(updates, shame_requested)
    if "name" in updates:
        require(updates["name"], "Club name cannot be empty")
    if shame_requested and body.shame_list is None:
        raise ValidationError("Shame list must be an array")

    club = await find_club(db, body.id, body.server_id, columns=CLUB_COLUMNS)
    if updates:
        filters = [eq("id", body.id)]
        if body.server_id:
            filters.append(eq("server_id", body.server_id))
        rows = await db.update(Club, updates, *filters)
        club = rows[0] if rows else {**club, **updates}

    shame_list_updated = False
    if shame_requested:
        try:
            shame_list_updated = await sync_shame_list(db, body.id, body.shame_list)
        except ApiError as e:
            raise_partial(e, bool(updates), "Club was updated but shame list was not modified", club=club)

    return success_response({
        "success": True,
        "message": "Club updated successfully",
        "club": club,
        "club_updated": bool(updates),
        "shame_list_updated": shame_list_updated,
    })


@router.delete("")
async def delete_club(
    club_id: Optional[str] = Query(None, alias="id"),
    server_id: Optional[str] = None,
    db: DatabaseHandler = Depends(get_db),
):
    """Delete a club after its discussions, sessions, shame list entries and memberships."""
    require(club_id, "Club ID is required")
    if server_id:
        await ensure_server_exists(db, server_id)
    await find_club(db, club_id, server_id, columns="id")
    await cascade_delete_club(db, club_id, server_id)
    logger.info(f"Club {club_id} deleted")
    return success_response({"success": True, "message": "Club deleted successfully"})
