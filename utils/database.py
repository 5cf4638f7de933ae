# Copyright (c) 2025 WilsonnnTan. All Rights Reserved.
"""
Database handler for the book club functions.
Provides a small capability set over the Supabase REST (PostgREST) backend:
filtered select, insert, upsert, update and delete, with equality/membership filters,
ordering and offset/limit pagination.
A handler is created per request so the caller's bearer token is forwarded to Supabase;
the underlying HTTP connection pool is shared at class level.
"""
import os
import logging
from dotenv import load_dotenv
import httpx
from typing import Any, Iterable, List, NamedTuple, Optional, Sequence, Union
import asyncio

from fastapi import Request

from utils.errors import StoreError

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class Filter(NamedTuple):
    column: str
    op: str
    value: Any

    def to_param(self) -> tuple:
        if self.op == "in":
            return self.column, "in.(" + ",".join(_quote(v) for v in self.value) + ")"
        return self.column, f"{self.op}.{self.value}"


class Order(NamedTuple):
    column: str
    descending: bool = False
    nulls_last: bool = True

    def to_param(self) -> str:
        direction = "desc" if self.descending else "asc"
        nulls = "nullslast" if self.nulls_last else "nullsfirst"
        return f"{self.column}.{direction}.{nulls}"


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def asc(column: str) -> Order:
    return Order(column, descending=False)


def desc(column: str) -> Order:
    return Order(column, descending=True)


def _quote(value: Any) -> str:
    # PostgREST list syntax: strings are double-quoted so commas and parentheses survive
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return str(value)


def table_name(table: Union[str, type]) -> str:
    """Accept a table name or an ORM model class from schemas.models."""
    return getattr(table, "__tablename__", table)


def _columns(columns: str) -> str:
    return ",".join(part.strip() for part in columns.split(","))


class DatabaseHandler:
    """
    Async client for Supabase table operations.
    Every failed call raises StoreError carrying the backend's message.
    """
    _client: Optional[httpx.AsyncClient] = None
    _supabase_url: Optional[str] = None
    _supabase_key: Optional[str] = None
    _max_concurrency: int = 10

    def __init__(
        self,
        authorization: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
    ) -> None:
        if client is None and DatabaseHandler._client is None:
            DatabaseHandler._initialize()
        self._http = client or DatabaseHandler._client
        self._url = supabase_url or DatabaseHandler._supabase_url or os.getenv("SUPABASE_URL")
        self._key = supabase_key or DatabaseHandler._supabase_key or _env_key()
        self._authorization = authorization
        self._semaphore = asyncio.Semaphore(DatabaseHandler._max_concurrency)

    @classmethod
    def _initialize(cls):
        cls._supabase_url = os.getenv("SUPABASE_URL")
        cls._supabase_key = _env_key()
        cls._max_concurrency = int(os.getenv("SUPABASE_MAX_CONCURRENCY", 10))
        cls._client = httpx.AsyncClient(timeout=float(os.getenv("SUPABASE_TIMEOUT", 10)))

    @classmethod
    async def aclose(cls) -> None:
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None

    async def _request(self, method: str, table: Union[str, type], **kwargs) -> Any:
        if not self._url or not self._key:
            logger.error("Supabase credentials not set.")
            raise StoreError("Supabase credentials not set.")
        url = f"{self._url.rstrip('/')}/rest/v1/{table_name(table)}"
        headers = kwargs.pop("headers", {})
        headers.update({
            "apikey": self._key,
            "Authorization": self._authorization or f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        async with self._semaphore:
            try:
                resp = await self._http.request(method, url, headers=headers, **kwargs)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                message = _error_message(e.response)
                logger.error(f"Supabase {method} {table_name(table)} failed ({e.response.status_code}): {message}")
                raise StoreError(message) from e
            except httpx.RequestError as e:
                logger.error(f"Supabase {method} {table_name(table)} request error: {e}")
                raise StoreError(str(e) or type(e).__name__) from e
        # Empty body (e.g. return=minimal) is reported as no rows
        try:
            return resp.json()
        except ValueError:
            return []

    # Reads
    async def select(
        self,
        table: Union[str, type],
        *filters: Filter,
        columns: str = "*",
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[dict]:
        params = [("select", _columns(columns))]
        params.extend(f.to_param() for f in filters)
        if order:
            params.append(("order", ",".join(o.to_param() for o in order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset:
            params.append(("offset", str(offset)))
        return await self._request("GET", table, params=params)

    async def fetch_one(self, table: Union[str, type], *filters: Filter, columns: str = "*") -> Optional[dict]:
        rows = await self.select(table, *filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def exists(self, table: Union[str, type], *filters: Filter) -> bool:
        return await self.fetch_one(table, *filters, columns="*") is not None

    # Writes
    async def insert(self, table: Union[str, type], rows: Union[dict, List[dict]]) -> List[dict]:
        headers = {"Prefer": "return=representation"}
        return await self._request("POST", table, json=_as_list(rows), headers=headers)

    async def upsert(self, table: Union[str, type], rows: Union[dict, List[dict]], on_conflict: Optional[str] = None) -> List[dict]:
        headers = {"Prefer": "resolution=merge-duplicates,return=representation"}
        params = {"on_conflict": on_conflict} if on_conflict else None
        return await self._request("POST", table, json=_as_list(rows), headers=headers, params=params)

    async def update(self, table: Union[str, type], values: dict, *filters: Filter) -> List[dict]:
        if not filters:
            raise ValueError("Refusing to update without a filter")
        headers = {"Prefer": "return=representation"}
        params = [f.to_param() for f in filters]
        return await self._request("PATCH", table, json=values, headers=headers, params=params)

    async def delete(self, table: Union[str, type], *filters: Filter) -> List[dict]:
        if not filters:
            raise ValueError("Refusing to delete without a filter")
        headers = {"Prefer": "return=representation"}
        params = [f.to_param() for f in filters]
        return await self._request("DELETE", table, headers=headers, params=params)


def _env_key() -> Optional[str]:
    return os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY")


def _as_list(rows: Union[dict, List[dict]]) -> List[dict]:
    return [rows] if isinstance(rows, dict) else list(rows)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or response.reason_phrase
    return response.reason_phrase


def get_db(request: Request) -> DatabaseHandler:
    """FastAPI dependency: one handler per invocation, forwarding the caller's Authorization header."""
    return DatabaseHandler(authorization=request.headers.get("Authorization"))
