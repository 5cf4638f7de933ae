# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
/session endpoint: reading sessions with their book and discussions.
Each session owns exactly one book; it is created and deleted with the session.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from schemas.models import Book, Club, Discussion, Session
from schemas.requests import SessionCreate, SessionUpdate
from utils.cascade import (
    BOOK_FIELDS, delete_session as cascade_delete_session, raise_partial, sync_discussions, update_book,
)
from utils.database import DatabaseHandler, eq, get_db
from utils.errors import ApiError, NotFoundError, StoreError
from utils.responses import success_response
from utils.shaper import session_detail
from utils.validation import ensure_changes, require, validate_discussions, validate_session_create

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["Session"])


@router.get("")
async def get_session(
    session_id: Optional[str] = Query(None, alias="id"),
    db: DatabaseHandler = Depends(get_db),
):
    require(session_id, "Session ID is required")
    session = await db.fetch_one(Session, eq("id", session_id))
    if session is None:
        raise NotFoundError("Session not found")
    return success_response(await session_detail(db, session))


@router.post("")
async def create_session(body: SessionCreate, db: DatabaseHandler = Depends(get_db)):
    """
    Create a book, then the session that owns it, then its discussions.
    A failed session insert leaves the book behind and is reported as a partial success.
    """
    validate_session_create(body)
    club = await db.fetch_one(Club, eq("id", body.club_id), columns="id, name, discord_channel")
    if club is None:
        raise NotFoundError("Club not found")

    rows = await db.insert(Book, {name: getattr(body.book, name) for name in BOOK_FIELDS})
    book = rows[0]
    logger.info(f"Book {book['id']} created for club {body.club_id}")

    session_id = body.id or str(uuid.uuid4())
    try:
        await db.insert(Session, {
            "id": session_id,
            "club_id": body.club_id,
            "book_id": book["id"],
            "due_date": body.due_date,
        })
    except ApiError as e:
        raise_partial(e, True, "Book was created but the session could not be added", book=book)

    discussions = []
    for discussion in body.discussions or []:
        row = {
            "id": discussion.id or str(uuid.uuid4()),
            "session_id": session_id,
            "title": discussion.title,
            "date": discussion.date,
            "location": discussion.location,
        }
        try:
            await db.insert(Discussion, row)
        except StoreError as e:
            logger.warning(f"Skipping discussion {row['id']} for session {session_id}: {e.message}")
            continue
        discussions.append(row)

    logger.info(f"Session {session_id} created with {len(discussions)} discussions")
    return success_response({
        "success": True,
        "message": "Session created successfully",
        "session": {
            "id": session_id,
            "club": club,
            "book": book,
            "due_date": body.due_date,
            "discussions": discussions,
        },
    })


@router.put("")
async def update_session(body: SessionUpdate, db: DatabaseHandler = Depends(get_db)):
    """
    Steps run in order: book fields, session fields, discussions.
    Writes from earlier steps are kept when a later one fails.
    """
    require(body.id, "Session ID is required")
    sent = body.model_fields_set
    book_changes = body.book.model_dump(exclude_unset=True) if body.book is not None else {}
    session_updates = body.sent("club_id", "due_date")
    discussions = [d.model_dump(exclude_unset=True) for d in body.discussions or []]
    ids_to_delete = body.discussion_ids_to_delete or []

    ensure_changes({**book_changes, **session_updates}, bool(discussions), bool(ids_to_delete))
    if "club_id" in session_updates:
        require(session_updates["club_id"], "Club ID cannot be empty")
    if "discussions" in sent and body.discussions:
        validate_discussions(body.discussions, for_update=True)

    session = await db.fetch_one(Session, eq("id", body.id), columns="id, book_id")
    if session is None:
        raise NotFoundError("Session not found")

    book_updated = False
    if book_changes:
        await update_book(db, session["book_id"], book_changes)
        book_updated = True

    session_updated = False
    if session_updates:
        try:
            if "club_id" in session_updates and not await db.exists(Club, eq("id", session_updates["club_id"])):
                raise NotFoundError("Club not found")
            await db.update(Session, session_updates, eq("id", body.id))
        except ApiError as e:
            raise_partial(e, book_updated, "Book was updated but session was not modified")
        session_updated = True

    discussions_updated = False
    if discussions or ids_to_delete:
        try:
            discussions_updated = await sync_discussions(db, body.id, discussions, ids_to_delete)
        except ApiError as e:
            raise_partial(e, book_updated or session_updated,
                          "Session was updated but discussions were not modified")

    if not (book_updated or session_updated or discussions_updated):
        return success_response({"success": True, "message": "No changes to apply"})

    logger.info(f"Session {body.id} updated")
    return success_response({
        "success": True,
        "message": "Session updated successfully",
        "updates": {
            "book": book_updated,
            "session": session_updated,
            "discussions": discussions_updated,
        },
    })


@router.delete("")
async def delete_session(
    session_id: Optional[str] = Query(None, alias="id"),
    db: DatabaseHandler = Depends(get_db),
):
    """Delete discussions, the session, then its book; a failed book cleanup is only a warning."""
    require(session_id, "Session ID is required")
    session = await db.fetch_one(Session, eq("id", session_id), columns="id, book_id")
    if session is None:
        raise NotFoundError("Session not found")

    result = await cascade_delete_session(db, session_id, session.get("book_id"))
    if result.warnings:
        return success_response({
            "success": True,
            "message": "Session deleted but could not delete associated book",
            "warning": result.warnings[0],
        })
    logger.info(f"Session {session_id} deleted")
    return success_response({"success": True, "message": "Session deleted successfully"})
