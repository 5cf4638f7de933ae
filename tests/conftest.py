# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""Shared test fixtures: an in-memory store standing in for Supabase, and an HTTP client."""

from collections.abc import AsyncGenerator
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, delete, insert, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from app import create_app
from schemas.models import Base
from utils.database import Filter, get_db, table_name
from utils.errors import StoreError


class MemoryDatabase:
    """
    Same call surface as utils.database.DatabaseHandler, backed by SQLite.
    Failures can be injected per (operation, table) and every call is recorded.
    """

    def __init__(self) -> None:
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.calls: List[Tuple[str, str]] = []
        self._failures: Dict[Tuple[str, str], str] = {}

    # Test helpers
    def fail(self, op: str, table: Any, message: str = "backend unavailable") -> None:
        self._failures[(op, table_name(table))] = message

    def seed(self, table: Any, *rows: dict) -> None:
        with self.engine.begin() as conn:
            for row in rows:
                conn.execute(insert(self._table(table)).values(**row))

    def rows(self, table: Any) -> List[dict]:
        t = self._table(table)
        with self.engine.connect() as conn:
            return [dict(r) for r in conn.execute(select(t)).mappings()]

    def called(self, op: str, table: Any) -> bool:
        return (op, table_name(table)) in self.calls

    # Internals
    def _table(self, table: Any):
        return Base.metadata.tables[table_name(table)]

    def _enter(self, op: str, table: Any):
        name = table_name(table)
        self.calls.append((op, name))
        message = self._failures.get((op, name))
        if message is not None:
            raise StoreError(message)
        return self._table(table)

    @staticmethod
    def _where(t, filters) -> list:
        clauses = []
        for f in filters:
            column = t.c[f.column]
            clauses.append(column.in_(list(f.value)) if f.op == "in" else column == f.value)
        return clauses

    def _run(self, statement) -> List[dict]:
        try:
            with self.engine.begin() as conn:
                return [dict(r) for r in conn.execute(statement).mappings()]
        except SQLAlchemyError as e:
            raise StoreError(str(getattr(e, "orig", e))) from e

    # Reads
    async def select(self, table: Any, *filters: Filter, columns: str = "*", order=(),
                     limit: Optional[int] = None, offset: Optional[int] = None) -> List[dict]:
        t = self._enter("select", table)
        if columns.strip() == "*":
            stmt = select(t)
        else:
            stmt = select(*(t.c[c.strip()] for c in columns.split(",")))
        stmt = stmt.where(*self._where(t, filters))
        for o in order:
            column = t.c[o.column]
            clause = column.desc() if o.descending else column.asc()
            stmt = stmt.order_by(clause.nulls_last() if o.nulls_last else clause.nulls_first())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        return self._run(stmt)

    async def fetch_one(self, table: Any, *filters: Filter, columns: str = "*") -> Optional[dict]:
        rows = await self.select(table, *filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def exists(self, table: Any, *filters: Filter) -> bool:
        return await self.fetch_one(table, *filters) is not None

    # Writes
    async def insert(self, table: Any, rows) -> List[dict]:
        t = self._enter("insert", table)
        result = []
        for row in [rows] if isinstance(rows, dict) else rows:
            result.extend(self._run(insert(t).values(**row).returning(*t.c)))
        return result

    async def upsert(self, table: Any, rows, on_conflict: Optional[str] = None) -> List[dict]:
        t = self._enter("upsert", table)
        keys = on_conflict.split(",") if on_conflict else [c.name for c in t.primary_key]
        result = []
        for row in [rows] if isinstance(rows, dict) else rows:
            stmt = sqlite_insert(t).values(**row)
            changes = {k: stmt.excluded[k] for k in row if k not in keys}
            if changes:
                stmt = stmt.on_conflict_do_update(index_elements=keys, set_=changes)
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=keys)
            result.extend(self._run(stmt.returning(*t.c)))
        return result

    async def update(self, table: Any, values: dict, *filters: Filter) -> List[dict]:
        t = self._enter("update", table)
        return self._run(update(t).where(*self._where(t, filters)).values(**values).returning(*t.c))

    async def delete(self, table: Any, *filters: Filter) -> List[dict]:
        t = self._enter("delete", table)
        return self._run(delete(t).where(*self._where(t, filters)).returning(*t.c))


@pytest.fixture
def db() -> MemoryDatabase:
    return MemoryDatabase()


@pytest_asyncio.fixture
async def client(db: MemoryDatabase) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the real app with the store dependency replaced."""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
