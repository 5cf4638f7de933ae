# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
SQLAlchemy ORM models for the book club database schema.
Defines tables for Discord servers, clubs, members, reading sessions, books, discussions,
and the two member/club join tables (memberships and the shame list).
"""
from sqlalchemy import Column, BigInteger, Text, DateTime, ForeignKey, PrimaryKeyConstraint, Integer, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class Server(Base):
    """
    SQLAlchemy model for a Discord server (guild).
    The id is the Discord snowflake kept as text to avoid precision loss.
    """
    __tablename__ = 'servers'

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)

class Club(Base):
    """
    SQLAlchemy model for a book club.
    server_id is nullable: clubs created from the mobile app have no Discord server.
    """
    __tablename__ = 'clubs'

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    discord_channel = Column(Text, nullable=True)
    server_id = Column(Text, ForeignKey('servers.id'), nullable=True)
    founded_date = Column(Text, nullable=True)

class Member(Base):
    """
    SQLAlchemy model for a club member.
    Ids are assigned by the member endpoint (max + 1) rather than by a sequence.
    """
    __tablename__ = 'members'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=False)
    name = Column(Text, nullable=False)
    points = Column(Integer, nullable=False, default=0)
    books_read = Column(Integer, nullable=False, default=0)
    user_id = Column(Text, nullable=True)
    role = Column(Text, nullable=True)
    handle = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True, server_default=func.now())

class Book(Base):
    """
    SQLAlchemy model for a book. Each book is owned by exactly one session.
    """
    __tablename__ = 'books'

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    author = Column(Text, nullable=False)
    edition = Column(Text, nullable=True)
    year = Column(Integer, nullable=True)
    isbn = Column(Text, nullable=True)
    page_count = Column(Integer, nullable=True)

class Session(Base):
    """
    SQLAlchemy model for a reading session of a club.
    The session with the latest due_date is the club's active session.
    """
    __tablename__ = 'sessions'

    id = Column(Text, primary_key=True)
    club_id = Column(Text, ForeignKey('clubs.id'), nullable=False)
    book_id = Column(Integer, ForeignKey('books.id'), nullable=False)
    due_date = Column(Text, nullable=True)

class Discussion(Base):
    """
    SQLAlchemy model for a scheduled discussion within a session.
    """
    __tablename__ = 'discussions'

    id = Column(Text, primary_key=True)
    session_id = Column(Text, ForeignKey('sessions.id'), nullable=False)
    title = Column(Text, nullable=False)
    date = Column(Text, nullable=False)
    location = Column(Text, nullable=True)

class MemberClub(Base):
    """
    Join table linking members to the clubs they belong to.
    Composite primary key: (member_id, club_id).
    """
    __tablename__ = 'memberclubs'
    __table_args__ = (
        PrimaryKeyConstraint('member_id', 'club_id', name='pk_memberclubs'),
    )

    member_id = Column(BigInteger().with_variant(Integer, 'sqlite'), ForeignKey('members.id'), nullable=False)
    club_id = Column(Text, ForeignKey('clubs.id'), nullable=False)

class ShameList(Base):
    """
    Join table flagging a member on a club's shame list.
    Scoped to the club, not to a session.
    Composite primary key: (member_id, club_id).
    """
    __tablename__ = 'shamelist'
    __table_args__ = (
        PrimaryKeyConstraint('member_id', 'club_id', name='pk_shamelist'),
    )

    member_id = Column(BigInteger().with_variant(Integer, 'sqlite'), ForeignKey('members.id'), nullable=False)
    club_id = Column(Text, ForeignKey('clubs.id'), nullable=False)
