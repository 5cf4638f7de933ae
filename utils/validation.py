# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
Validation rules for incoming requests.
Shape checks raise ValidationError (400); references to rows that must already exist
raise NotFoundError (404).
"""
from typing import Any, Iterable, List, Optional, Sequence

from schemas.models import Club, Server
from schemas.requests import ClubCreate, DiscussionIn, MemberCreate, SessionCreate
from utils.database import DatabaseHandler, eq, in_
from utils.errors import NotFoundError, ValidationError


def require(value: Any, message: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message)


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def validate_discussion(discussion: DiscussionIn, require_all: bool = True) -> Optional[str]:
    """
    Return an error message for an invalid discussion, or None.
    With require_all=False only the fields that were sent are checked.
    """
    sent = discussion.model_fields_set
    if (require_all or "title" in sent) and not _non_empty_string(discussion.title):
        return "Discussion title is required and must be a non-empty string"
    if (require_all or "date" in sent) and not _non_empty_string(discussion.date):
        return "Discussion date is required and must be a non-empty string"
    return None


def validate_discussions(discussions: Sequence[DiscussionIn], for_update: bool = False) -> None:
    """
    Validate a whole batch; the first invalid element rejects it and its index is reported.
    In updates, elements with an id may carry only the fields being changed.
    """
    for index, discussion in enumerate(discussions):
        require_all = not (for_update and discussion.id)
        error = validate_discussion(discussion, require_all=require_all)
        if error:
            raise ValidationError(f"Discussion at index {index}: {error}", invalid_index=index)


def validate_club_create(body: ClubCreate) -> None:
    require(body.name, "Club name is required")
    session = body.active_session
    if session is not None and session.discussions:
        validate_discussions(session.discussions)


def validate_member_create(body: MemberCreate) -> None:
    require(body.name, "Member name is required")
    if "clubs" in body.model_fields_set and not body.clubs:
        raise ValidationError("The clubs field must be an array with at least one club ID")


def validate_session_create(body: SessionCreate) -> None:
    require(body.club_id, "Club ID is required")
    if body.book is None:
        raise ValidationError("Book information is required")
    if not _non_empty_string(body.book.title) or not _non_empty_string(body.book.author):
        raise ValidationError("Book title and author are required")
    if body.discussions:
        validate_discussions(body.discussions)


def ensure_changes(updates: dict, *relational: bool) -> None:
    """Reject an update that carries neither field changes nor relational changes."""
    if not updates and not any(relational):
        raise ValidationError("No fields to update")


async def ensure_server_exists(db: DatabaseHandler, server_id: str) -> None:
    if not await db.exists(Server, eq("id", server_id)):
        raise NotFoundError("Server not found")


async def find_club(db: DatabaseHandler, club_id: str, server_id: Optional[str] = None,
                    columns: str = "id, name, discord_channel, server_id, founded_date") -> dict:
    """Fetch a club, optionally scoped to a server, or raise NotFoundError."""
    filters = [eq("id", club_id)]
    if server_id:
        filters.append(eq("server_id", server_id))
    club = await db.fetch_one(Club, *filters, columns=columns)
    if club is None:
        raise NotFoundError("Club not found in this server" if server_id else "Club not found")
    return club


async def missing_ids(db: DatabaseHandler, table: Any, ids: Iterable[Any]) -> List[Any]:
    """Ids from the given list that have no row in the table, in request order."""
    ids = list(ids)
    if not ids:
        return []
    rows = await db.select(table, in_("id", ids), columns="id")
    found = {str(row["id"]) for row in rows}
    return [i for i in ids if str(i) not in found]
