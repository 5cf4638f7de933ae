# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
Cascading deletes and relational updates.

Deletes are planned as an ordered list of steps and executed one at a time. There is
no transaction around a plan: a failing step stops the plan, earlier steps stay
committed, and the error reports which step failed and which ones completed.
Relational updates (shame list, club memberships, discussions) are diff-based.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, NoReturn, Optional, Sequence, Tuple

from schemas.models import Book, Club, Discussion, Member, MemberClub, Session, ShameList
from utils.database import DatabaseHandler, eq, in_
from utils.errors import ApiError, PartialSuccessError, StoreError, ValidationError
from utils.validation import missing_ids

logger = logging.getLogger(__name__)

BOOK_FIELDS = ("title", "author", "edition", "year", "isbn", "page_count")
DISCUSSION_FIELDS = ("title", "date", "location")


@dataclass
class CascadeStep:
    label: str
    run: Callable[[], Awaitable[Any]]
    # A failing best-effort step is reported as a warning instead of stopping the plan
    best_effort: bool = False


@dataclass
class CascadeResult:
    completed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


async def execute_plan(steps: Sequence[CascadeStep]) -> CascadeResult:
    result = CascadeResult()
    for step in steps:
        try:
            await step.run()
        except StoreError as e:
            if step.best_effort:
                logger.warning(f"Could not delete {step.label}: {e.message}")
                result.warnings.append(f"Could not delete {step.label}: {e.message}")
                continue
            error = f"Failed to delete {step.label}: {e.message}"
            if result.completed:
                raise PartialSuccessError(
                    error,
                    f"Deleted {', '.join(result.completed)} before the failure; nothing was rolled back",
                    completed_steps=result.completed,
                ) from e
            raise StoreError(error, completed_steps=[]) from e
        result.completed.append(step.label)
    return result


def plan_club_delete(db: DatabaseHandler, club_id: str, session_ids: Sequence[str],
                     server_id: Optional[str] = None) -> List[CascadeStep]:
    steps = []
    if session_ids:
        steps.append(CascadeStep("discussions", lambda: db.delete(Discussion, in_("session_id", session_ids))))
        steps.append(CascadeStep("sessions", lambda: db.delete(Session, eq("club_id", club_id))))
    steps.append(CascadeStep("shame list entries", lambda: db.delete(ShameList, eq("club_id", club_id))))
    steps.append(CascadeStep("member associations", lambda: db.delete(MemberClub, eq("club_id", club_id))))
    club_filters = [eq("id", club_id)]
    if server_id:
        club_filters.append(eq("server_id", server_id))
    steps.append(CascadeStep("club", lambda: db.delete(Club, *club_filters)))
    return steps


def plan_member_delete(db: DatabaseHandler, member_id: Any) -> List[CascadeStep]:
    return [
        CascadeStep("shame list entries", lambda: db.delete(ShameList, eq("member_id", member_id))),
        CascadeStep("club associations", lambda: db.delete(MemberClub, eq("member_id", member_id))),
        CascadeStep("member", lambda: db.delete(Member, eq("id", member_id))),
    ]


def plan_session_delete(db: DatabaseHandler, session_id: str, book_id: Any) -> List[CascadeStep]:
    steps = [
        CascadeStep("discussions", lambda: db.delete(Discussion, eq("session_id", session_id))),
        CascadeStep("session", lambda: db.delete(Session, eq("id", session_id))),
    ]
    if book_id is not None:
        steps.append(CascadeStep("book", lambda: db.delete(Book, eq("id", book_id)), best_effort=True))
    return steps


async def delete_club(db: DatabaseHandler, club_id: str, server_id: Optional[str] = None) -> CascadeResult:
    sessions = await db.select(Session, eq("club_id", club_id), columns="id")
    session_ids = [s["id"] for s in sessions]
    logger.info(f"Deleting club {club_id} with {len(session_ids)} sessions")
    return await execute_plan(plan_club_delete(db, club_id, session_ids, server_id))


async def delete_member(db: DatabaseHandler, member_id: Any) -> CascadeResult:
    return await execute_plan(plan_member_delete(db, member_id))


async def delete_session(db: DatabaseHandler, session_id: str, book_id: Any) -> CascadeResult:
    return await execute_plan(plan_session_delete(db, session_id, book_id))


def diff_ids(current: Iterable[Any], target: Iterable[Any]) -> Tuple[List[Any], List[Any]]:
    """
    Compare the stored collection with the requested one.
    Returns (to_add, to_remove), each in first-seen order without duplicates.
    """
    current = list(dict.fromkeys(current))
    target = list(dict.fromkeys(target))
    current_set, target_set = set(current), set(target)
    to_add = [i for i in target if i not in current_set]
    to_remove = [i for i in current if i not in target_set]
    return to_add, to_remove


async def sync_shame_list(db: DatabaseHandler, club_id: str, member_ids: Sequence[Any]) -> bool:
    """
    Make the club's shame list equal to member_ids.
    Unknown members are skipped one by one; returns True if any add or remove succeeded.
    """
    rows = await db.select(ShameList, eq("club_id", club_id), columns="member_id")
    to_add, to_remove = diff_ids((r["member_id"] for r in rows), member_ids)
    updated = False

    for member_id in to_add:
        if not await db.exists(Member, eq("id", member_id)):
            logger.warning(f"Member ID {member_id} not found for shame list of club {club_id}")
            continue
        try:
            await db.insert(ShameList, {"club_id": club_id, "member_id": member_id})
        except StoreError as e:
            logger.error(f"Error adding member {member_id} to shame list: {e.message}")
        else:
            updated = True

    if to_remove:
        try:
            await db.delete(ShameList, eq("club_id", club_id), in_("member_id", to_remove))
        except StoreError as e:
            logger.error(f"Error removing members from shame list: {e.message}")
        else:
            updated = True
    return updated


async def sync_member_clubs(db: DatabaseHandler, member_id: Any, club_ids: Sequence[str]) -> bool:
    """
    Make the member's club associations equal to club_ids.
    If any club to add does not exist nothing is written and a 400 lists the missing ids.
    """
    rows = await db.select(MemberClub, eq("member_id", member_id), columns="club_id")
    to_add, to_remove = diff_ids((r["club_id"] for r in rows), club_ids)

    if to_add:
        missing = await missing_ids(db, Club, to_add)
        if missing:
            raise ValidationError(
                f"The following clubs do not exist: {', '.join(map(str, missing))}",
                missing_clubs=missing,
            )
        await db.insert(MemberClub, [{"member_id": member_id, "club_id": c} for c in to_add])
    if to_remove:
        await db.delete(MemberClub, eq("member_id", member_id), in_("club_id", to_remove))
    return bool(to_add or to_remove)


def merge_book_fields(current: dict, changes: dict) -> dict:
    """Fields sent in changes override the stored book; the rest keep their current values."""
    return {name: changes[name] if name in changes else current.get(name) for name in BOOK_FIELDS}


async def update_book(db: DatabaseHandler, book_id: Any, changes: dict) -> dict:
    current = await db.fetch_one(Book, eq("id", book_id))
    if current is None:
        raise StoreError(f"Book {book_id} not found for session")
    rows = await db.update(Book, merge_book_fields(current, changes), eq("id", book_id))
    return rows[0] if rows else current


async def sync_discussions(db: DatabaseHandler, session_id: str, discussions: Sequence[dict],
                           ids_to_delete: Optional[Sequence[str]] = None) -> bool:
    """
    Upsert the given discussions of a session and optionally delete some by id.
    Individual failures are logged and skipped; returns True if anything changed.
    """
    updated = False
    if discussions:
        rows = await db.select(Discussion, eq("session_id", session_id), columns="id")
        existing = {r["id"] for r in rows}

        for item in discussions:
            discussion_id = item.get("id")
            if discussion_id and discussion_id in existing:
                changes = {k: item[k] for k in DISCUSSION_FIELDS if k in item}
                if not changes:
                    continue
                try:
                    await db.update(Discussion, changes, eq("id", discussion_id), eq("session_id", session_id))
                except StoreError as e:
                    logger.warning(f"Discussion update failed for {discussion_id}: {e.message}")
                    continue
                updated = True
                continue

            if not item.get("title") or not item.get("date"):
                logger.warning(f"Skipping new discussion {discussion_id!r} without title or date")
                continue
            row = {
                "id": discussion_id or str(uuid.uuid4()),
                "session_id": session_id,
                "title": item["title"],
                "date": item["date"],
                "location": item.get("location"),
            }
            try:
                await db.insert(Discussion, row)
            except StoreError as e:
                logger.warning(f"Discussion insert failed: {e.message}")
                continue
            updated = True

    if ids_to_delete:
        try:
            await db.delete(Discussion, in_("id", ids_to_delete), eq("session_id", session_id))
        except StoreError as e:
            logger.error(f"Error deleting discussions: {e.message}")
        else:
            updated = True
    return updated


def raise_partial(exc: ApiError, committed: bool, message: str, **payload: Any) -> NoReturn:
    """Re-raise an error from a later step, as a partial-success error when earlier writes were committed."""
    if committed:
        raise PartialSuccessError.wrap(exc, message, **payload) from exc
    raise exc
