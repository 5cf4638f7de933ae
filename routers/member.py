# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
/member endpoint: members and their club associations.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from schemas.models import Club, Member, MemberClub
from schemas.requests import MemberCreate, MemberUpdate
from utils.cascade import delete_member as cascade_delete_member, raise_partial, sync_member_clubs
from utils.database import DatabaseHandler, desc, eq, get_db
from utils.errors import ApiError, NotFoundError, PartialSuccessError, ValidationError
from utils.responses import success_response
from utils.shaper import member_detail
from utils.validation import ensure_changes, missing_ids, require, validate_member_create

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/member", tags=["Member"])

MEMBER_UPDATE_FIELDS = ("name", "points", "books_read", "handle")


async def next_member_id(db: DatabaseHandler) -> int:
    """Highest existing member id plus one (1 for an empty table)."""
    rows = await db.select(Member, columns="id", order=(desc("id"),), limit=1)
    return int(rows[0]["id"]) + 1 if rows else 1


@router.get("")
async def get_member(
    member_id: Optional[int] = Query(None, alias="id"),
    user_id: Optional[str] = None,
    db: DatabaseHandler = Depends(get_db),
):
    if member_id is None and not user_id:
        raise ValidationError("Either Member ID or User ID is required")
    if user_id:
        member = await db.fetch_one(Member, eq("user_id", user_id))
    else:
        member = await db.fetch_one(Member, eq("id", member_id))
    if member is None:
        raise NotFoundError("Member not found")
    return success_response(await member_detail(db, member))


@router.post("")
async def create_member(body: MemberCreate, db: DatabaseHandler = Depends(get_db)):
    """
    Create a member and link it to the requested clubs.
    Club ids are checked after the member row is written; a missing club leaves the
    member in place and is reported as a partial success.
    """
    validate_member_create(body)
    member_id = body.id if body.id is not None else await next_member_id(db)

    rows = await db.insert(Member, {
        "id": member_id,
        "name": body.name,
        "points": body.points or 0,
        "books_read": body.books_read or 0,
        "user_id": body.user_id,
        "role": body.role,
        "handle": body.handle,
    })
    member = rows[0] if rows else {"id": member_id, "name": body.name}
    logger.info(f"Member {member_id} created")

    clubs = list(dict.fromkeys(body.clubs or []))
    if clubs:
        try:
            missing = await missing_ids(db, Club, clubs)
        except ApiError as e:
            raise_partial(e, True, "Member created but failed to verify clubs", member=member)
        if missing:
            raise PartialSuccessError(
                f"The following clubs do not exist: {', '.join(missing)}",
                "Member created but not associated with all clubs",
                status_code=400,
                member=member,
                missing_clubs=missing,
            )
        try:
            await db.insert(MemberClub, [{"member_id": member_id, "club_id": c} for c in clubs])
        except ApiError as e:
            raise_partial(e, True, "Member created but failed to associate with clubs", member=member)

    return success_response({
        "success": True,
        "message": "Member created successfully",
        "member": {**member, "clubs": clubs},
    })


@router.put("")
async def update_member(body: MemberUpdate, db: DatabaseHandler = Depends(get_db)):
    """Partial field update plus a diff-based update of the member's clubs."""
    if body.id is None:
        raise ValidationError("Member ID is required")
    updates = body.sent(*MEMBER_UPDATE_FIELDS)
    clubs_requested = "clubs" in body.model_fields_set
    ensure_changes(updates, clubs_requested)
    if "name" in updates:
        require(updates["name"], "Member name cannot be empty")
    if clubs_requested and body.clubs is None:
        raise ValidationError("Clubs must be an array")

    member = await db.fetch_one(Member, eq("id", body.id))
    if member is None:
        raise NotFoundError("Member not found")

    if updates:
        rows = await db.update(Member, updates, eq("id", body.id))
        member = rows[0] if rows else {**member, **updates}

    clubs_updated = False
    if clubs_requested:
        try:
            clubs_updated = await sync_member_clubs(db, body.id, body.clubs)
        except ApiError as e:
            raise_partial(e, bool(updates), "Member updated but clubs not completely modified", member=member)

    if not updates and not clubs_updated:
        return success_response({"success": True, "message": "No changes to apply", "clubs_updated": False})

    return success_response({
        "success": True,
        "message": "Member updated successfully",
        "member": member,
        "clubs_updated": clubs_updated,
    })


@router.delete("")
async def delete_member(
    member_id: Optional[int] = Query(None, alias="id"),
    db: DatabaseHandler = Depends(get_db),
):
    """Remove the member from every shame list and club, then delete it."""
    if member_id is None:
        raise ValidationError("Member ID is required")
    if not await db.exists(Member, eq("id", member_id)):
        raise NotFoundError("Member not found")
    await cascade_delete_member(db, member_id)
    logger.info(f"Member {member_id} deleted")
    return success_response({"success": True, "message": "Member deleted successfully"})
