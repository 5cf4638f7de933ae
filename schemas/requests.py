# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
Pydantic request bodies for the server, club, member and session endpoints.
Every field is optional at this level so that required-field checks can answer with
the endpoint's own message; which fields were actually sent is read from
model_fields_set (partial updates only touch those).
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RequestModel(BaseModel):
    # Discord ids arrive as JSON numbers or strings
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    def sent(self, *fields: str) -> dict:
        """Values of the given fields that were present in the request."""
        return {name: getattr(self, name) for name in fields if name in self.model_fields_set}


class BookIn(RequestModel):
    title: Optional[str] = None
    author: Optional[str] = None
    edition: Optional[str] = None
    year: Optional[int] = None
    isbn: Optional[str] = None
    page_count: Optional[int] = None


class DiscussionIn(RequestModel):
    id: Optional[str] = None
    title: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None


class ServerCreate(RequestModel):
    id: Optional[str] = None
    name: Optional[str] = None


class ServerUpdate(RequestModel):
    id: Optional[str] = None
    name: Optional[str] = None


class NestedMember(RequestModel):
    id: Optional[int] = None
    name: Optional[str] = None
    points: Optional[int] = Field(None, ge=0)
    books_read: Optional[int] = Field(None, ge=0)


class NestedSession(RequestModel):
    id: Optional[str] = None
    book: Optional[BookIn] = None
    due_date: Optional[str] = None
    discussions: Optional[List[DiscussionIn]] = None


class ClubCreate(RequestModel):
    id: Optional[str] = None
    name: Optional[str] = None
    discord_channel: Optional[str] = None
    server_id: Optional[str] = None
    founded_date: Optional[str] = None
    members: Optional[List[NestedMember]] = None
    active_session: Optional[NestedSession] = None
    shame_list: Optional[List[int]] = None


class ClubUpdate(RequestModel):
    id: Optional[str] = None
    server_id: Optional[str] = None
    name: Optional[str] = None
    discord_channel: Optional[str] = None
    founded_date: Optional[str] = None
    shame_list: Optional[List[int]] = None


class MemberCreate(RequestModel):
    id: Optional[int] = None
    name: Optional[str] = None
    points: Optional[int] = Field(None, ge=0)
    books_read: Optional[int] = Field(None, ge=0)
    user_id: Optional[str] = None
    role: Optional[str] = None
    handle: Optional[str] = None
    clubs: Optional[List[str]] = None


class MemberUpdate(RequestModel):
    id: Optional[int] = None
    name: Optional[str] = None
    points: Optional[int] = Field(None, ge=0)
    books_read: Optional[int] = Field(None, ge=0)
    handle: Optional[str] = None
    clubs: Optional[List[str]] = None


class SessionCreate(RequestModel):
    id: Optional[str] = None
    club_id: Optional[str] = None
    book: Optional[BookIn] = None
    due_date: Optional[str] = None
    discussions: Optional[List[DiscussionIn]] = None


class SessionUpdate(RequestModel):
    id: Optional[str] = None
    club_id: Optional[str] = None
    due_date: Optional[str] = None
    book: Optional[BookIn] = None
    discussions: Optional[List[DiscussionIn]] = None
    discussion_ids_to_delete: Optional[List[str]] = None
