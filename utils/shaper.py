# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
Builders for the nested read responses (club, member, server and session detail).
Independent reads for a list of rows are issued concurrently and joined before the
response is built.
"""
import asyncio
from typing import Any, List, Optional

from schemas.models import Book, Club, Discussion, Member, MemberClub, Server, Session, ShameList
from utils.database import DatabaseHandler, asc, desc, eq, in_

# Latest due date first, undated sessions last, session id breaks ties
SESSION_ORDER = (desc("due_date"), asc("id"))
DISCUSSION_ORDER = (asc("date"), asc("id"))
PAST_SESSIONS_PAGE = 10

CLUB_SUMMARY_COLUMNS = "id, name, discord_channel, server_id"


async def gather_reads(*aws) -> List[Any]:
    """
    Run reads concurrently and return their results in order.
    When one read fails, the reads still running are cancelled and awaited before the error propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        raise


def _book(row: Optional[dict], fields=("title", "author", "edition", "year", "isbn", "page_count")) -> Optional[dict]:
    if row is None:
        return None
    return {name: row.get(name) for name in fields}


def _discussion(row: dict) -> dict:
    return {
        "id": row["id"],
        "session_id": row.get("session_id"),
        "title": row.get("title"),
        "date": row.get("date"),
        "location": row.get("location"),
    }


async def _column(db: DatabaseHandler, table: Any, column: str, *filters) -> List[Any]:
    rows = await db.select(table, *filters, columns=column)
    return [row[column] for row in rows]


async def discussions_for(db: DatabaseHandler, session_id: str) -> List[dict]:
    rows = await db.select(Discussion, eq("session_id", session_id), order=DISCUSSION_ORDER)
    return [_discussion(r) for r in rows]


async def club_members(db: DatabaseHandler, club_id: str) -> List[dict]:
    member_ids = await _column(db, MemberClub, "member_id", eq("club_id", club_id))
    if not member_ids:
        return []
    members = await db.select(Member, in_("id", member_ids), order=(asc("id"),))

    async def with_clubs(member: dict) -> dict:
        clubs = await _column(db, MemberClub, "club_id", eq("member_id", member["id"]))
        return {
            "id": member["id"],
            "name": member.get("name"),
            "points": member.get("points"),
            "books_read": member.get("books_read"),
            "handle": member.get("handle"),
            "created_at": member.get("created_at"),
            "clubs": clubs,
        }

    return await gather_reads(*(with_clubs(m) for m in members))


async def active_session(db: DatabaseHandler, club_id: str) -> Optional[dict]:
    """The club's session with the latest due date, with its book and discussions."""
    sessions = await db.select(Session, eq("club_id", club_id), order=SESSION_ORDER, limit=1)
    if not sessions:
        return None
    session = sessions[0]
    book, discussions = await gather_reads(
        db.fetch_one(Book, eq("id", session["book_id"])),
        discussions_for(db, session["id"]),
    )
    return {
        "id": session["id"],
        "club_id": session["club_id"],
        "book": _book(book),
        "due_date": session.get("due_date"),
        "discussions": discussions,
    }


async def past_sessions(db: DatabaseHandler, club_id: str, skip_active: bool) -> List[dict]:
    return await db.select(
        Session, eq("club_id", club_id),
        columns="id, due_date",
        order=SESSION_ORDER,
        offset=1 if skip_active else 0,
        limit=PAST_SESSIONS_PAGE,
    )


async def club_detail(db: DatabaseHandler, club: dict) -> dict:
    club_id = club["id"]
    members = await club_members(db, club_id)
    active = await active_session(db, club_id)
    past = await past_sessions(db, club_id, skip_active=active is not None)
    shame_list = await _column(db, ShameList, "member_id", eq("club_id", club_id))
    return {
        "id": club_id,
        "name": club.get("name"),
        "discord_channel": club.get("discord_channel"),
        "server_id": club.get("server_id"),
        "founded_date": club.get("founded_date"),
        "members": members,
        "active_session": active,
        "past_sessions": past,
        "shame_list": shame_list,
    }


async def _club_summaries(db: DatabaseHandler, club_ids: List[Any]) -> List[dict]:
    if not club_ids:
        return []
    return await db.select(Club, in_("id", club_ids), columns=CLUB_SUMMARY_COLUMNS, order=(asc("id"),))


async def member_detail(db: DatabaseHandler, member: dict) -> dict:
    club_ids = await _column(db, MemberClub, "club_id", eq("member_id", member["id"]))
    clubs = await _club_summaries(db, club_ids)
    shame_club_ids = await _column(db, ShameList, "club_id", eq("member_id", member["id"]))
    shame_clubs = await _club_summaries(db, shame_club_ids)
    return {
        "id": member["id"],
        "name": member.get("name"),
        "points": member.get("points"),
        "books_read": member.get("books_read"),
        "user_id": member.get("user_id"),
        "role": member.get("role"),
        "handle": member.get("handle"),
        "created_at": member.get("created_at"),
        "clubs": clubs,
        "shame_clubs": shame_clubs,
    }


async def _latest_session(db: DatabaseHandler, club_id: str) -> Optional[dict]:
    sessions = await db.select(Session, eq("club_id", club_id), columns="id, due_date, book_id",
                               order=SESSION_ORDER, limit=1)
    if not sessions:
        return None
    session = sessions[0]
    book = await db.fetch_one(Book, eq("id", session["book_id"]), columns="title, author")
    return {"id": session["id"], "due_date": session.get("due_date"), "book": _book(book, ("title", "author"))}


async def server_detail(db: DatabaseHandler, server: dict) -> dict:
    clubs = await db.select(Club, eq("server_id", server["id"]), columns="id, name, discord_channel",
                            order=(asc("id"),))

    async def with_details(club: dict) -> dict:
        member_ids, latest = await gather_reads(
            _column(db, MemberClub, "member_id", eq("club_id", club["id"])),
            _latest_session(db, club["id"]),
        )
        return {
            "id": club["id"],
            "name": club.get("name"),
            "discord_channel": club.get("discord_channel"),
            "member_count": len(member_ids),
            "latest_session": latest,
        }

    details = await gather_reads(*(with_details(c) for c in clubs))
    return {"id": server["id"], "name": server.get("name"), "clubs": details}


async def server_list(db: DatabaseHandler) -> dict:
    servers = await db.select(Server, columns="id, name", order=(asc("name"),))

    async def with_clubs(server: dict) -> dict:
        clubs = await db.select(Club, eq("server_id", server["id"]), columns="id, name, discord_channel",
                                order=(asc("id"),))
        return {"id": server["id"], "name": server.get("name"), "clubs": clubs}

    return {"servers": await gather_reads(*(with_clubs(s) for s in servers))}


async def session_detail(db: DatabaseHandler, session: dict) -> dict:
    """Session with its club, book, discussions and the club's shame list (member summaries)."""
    club, book, discussions = await gather_reads(
        db.fetch_one(Club, eq("id", session["club_id"]), columns="id, name, discord_channel"),
        db.fetch_one(Book, eq("id", session["book_id"])),
        discussions_for(db, session["id"]),
    )
    shame_members: List[dict] = []
    if club is not None:
        member_ids = await _column(db, ShameList, "member_id", eq("club_id", club["id"]))
        if member_ids:
            shame_members = await db.select(Member, in_("id", member_ids), columns="id, name", order=(asc("id"),))
    return {
        "id": session["id"],
        "club": club,
        "book": {"id": book["id"], **_book(book)} if book else None,
        "due_date": session.get("due_date"),
        "discussions": discussions,
        "shame_list": shame_members,
    }
