from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Generator, List, Mapping, Optional
from uuid import UUID, uuid4

import asyncpg
from fastapi.concurrency import run_in_threadpool

from .errors import classify_storage_error, describe_error
from .models import (
    CreateResult,
    DeleteResult,
    Deleted,
    Failed,
    Found,
    GetResult,
    Listed,
    ListResult,
    NotFound,
    TodoEntity,
    UpdateResult,
)
from .repositories import ListQuery, Repository
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings

logger = logging.getLogger(__name__)


POSTGRES_SCHEMA = """
CREATE TABLE IF NOT EXISTS todos (
    id UUID PRIMARY KEY NOT NULL DEFAULT gen_random_uuid(),
    title VARCHAR(255) NOT NULL UNIQUE,
    content TEXT NOT NULL,
    category VARCHAR(100),
    completed BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
)
"""

PG_LIST = "SELECT * FROM todos ORDER BY id LIMIT $1 OFFSET $2"
PG_CREATE = "INSERT INTO todos (title, content, category) VALUES ($1, $2, $3) RETURNING *"
PG_GET = "SELECT * FROM todos WHERE id = $1"
PG_UPDATE = """
UPDATE todos
SET title = COALESCE($2, title),
    content = COALESCE($3, content),
    category = COALESCE($4, category),
    completed = COALESCE($5, completed),
    updated_at = NOW()
WHERE id = $1
RETURNING *
"""
PG_DELETE = "DELETE FROM todos WHERE id = $1"


def _affected_rows(status: str) -> int:
    """Parse the row count out of a command tag such as 'DELETE 1'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class PostgresRepository(Repository):
    """
    Repository over a shared asyncpg connection pool.

    Connection checkout, limits and queuing are left entirely to the pool.
    """

    name = "postgres"

    def __init__(self, pool: Any) -> None:
        self._pool = pool

    @classmethod
    async def connect(cls, settings: Settings) -> "PostgresRepository":
        """Create the pool, verify connectivity and optionally bootstrap the table."""
        pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                if settings.db_init_schema:
                    await conn.execute(POSTGRES_SCHEMA)
                    logger.info("Ensured todos table exists")
        except Exception:
            await pool.close()
            raise
        logger.info(
            "Database pool initialized (min_size=%d, max_size=%d)",
            settings.db_pool_min_size,
            settings.db_pool_max_size,
        )
        return cls(pool)

    async def close(self) -> None:
        await self._pool.close()
        logger.info("Database connections closed")

    @staticmethod
    def _row_to_entity(row: Mapping[str, Any]) -> TodoEntity:
        return dict(row)  # type: ignore[return-value]

    async def list(self, query: ListQuery) -> ListResult:
        try:
            rows = await self._pool.fetch(PG_LIST, query.limit, query.offset)
        except Exception as e:
            logger.error("Failed to list todos: %s", describe_error(e))
            return Failed(describe_error(e))
        return Listed([self._row_to_entity(r) for r in rows])

    async def create(self, data: TodoCreate) -> CreateResult:
        try:
            row = await self._pool.fetchrow(PG_CREATE, data.title, data.content, data.category)
        except Exception as e:
            outcome = classify_storage_error(e)
            if isinstance(outcome, Failed):
                logger.error("Failed to create todo: %s", outcome.detail)
            return outcome
        if row is None:
            return Failed("INSERT returned no row")
        return Found(self._row_to_entity(row))

    async def get(self, todo_id: UUID) -> GetResult:
        try:
            row = await self._pool.fetchrow(PG_GET, todo_id)
        except Exception as e:
            logger.error("Failed to fetch todo %s: %s", todo_id, describe_error(e))
            return Failed(describe_error(e))
        return NotFound() if row is None else Found(self._row_to_entity(row))

    async def update(self, todo_id: UUID, data: TodoUpdate) -> UpdateResult:
        try:
            row = await self._pool.fetchrow(
                PG_UPDATE, todo_id, data.title, data.content, data.category, data.completed
            )
        except Exception as e:
            outcome = classify_storage_error(e)
            if isinstance(outcome, Failed):
                logger.error("Failed to update todo %s: %s", todo_id, outcome.detail)
            return outcome
        return NotFound() if row is None else Found(self._row_to_entity(row))

    async def delete(self, todo_id: UUID) -> DeleteResult:
        try:
            status = await self._pool.execute(PG_DELETE, todo_id)
        except Exception as e:
            logger.error("Failed to delete todo %s: %s", todo_id, describe_error(e))
            return Failed(describe_error(e))
        count = _affected_rows(status)
        return NotFound() if count == 0 else Deleted(count)


SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS todos (
    id TEXT PRIMARY KEY NOT NULL,
    title TEXT NOT NULL UNIQUE,
    content TEXT NOT NULL,
    category TEXT,
    completed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

SQLITE_LIST = "SELECT * FROM todos ORDER BY id LIMIT ? OFFSET ?"
SQLITE_CREATE = """
INSERT INTO todos (id, title, content, category, completed, created_at, updated_at)
VALUES (?, ?, ?, ?, 0, ?, ?)
RETURNING *
"""
SQLITE_GET = "SELECT * FROM todos WHERE id = ?"
SQLITE_UPDATE = """
UPDATE todos
SET title = COALESCE(?, title),
    content = COALESCE(?, content),
    category = COALESCE(?, category),
    completed = COALESCE(?, completed),
    updated_at = ?
WHERE id = ?
RETURNING *
"""
SQLITE_DELETE = "DELETE FROM todos WHERE id = ?"

# sqlite3 raises OverflowError, not sqlite3.Error, for integers beyond 64 bits.
_SQLITE_ERRORS = (sqlite3.Error, OverflowError)


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Blocking sqlite3 calls run in the threadpool so the event loop stays free.
    """

    name = "sqlite"

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(SQLITE_SCHEMA)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _row_to_entity(row: sqlite3.Row) -> TodoEntity:
        def parse_dt(s: Optional[str]) -> Optional[datetime]:
            return None if s is None else datetime.fromisoformat(s)

        return {
            "id": UUID(row["id"]),
            "title": row["title"],
            "content": row["content"],
            "category": row["category"],
            "completed": bool(row["completed"]),
            "created_at": parse_dt(row["created_at"]),
            "updated_at": parse_dt(row["updated_at"]),
        }

    def _fetch(self, sql: str, params: tuple) -> List[sqlite3.Row]:
        with self._conn() as conn:
            return conn.execute(sql, params).fetchall()

    def _execute(self, sql: str, params: tuple) -> int:
        with self._conn() as conn:
            return conn.execute(sql, params).rowcount

    async def list(self, query: ListQuery) -> ListResult:
        try:
            rows = await run_in_threadpool(self._fetch, SQLITE_LIST, (query.limit, query.offset))
        except _SQLITE_ERRORS as e:
            logger.error("Failed to list todos: %s", describe_error(e))
            return Failed(describe_error(e))
        return Listed([self._row_to_entity(r) for r in rows])

    async def create(self, data: TodoCreate) -> CreateResult:
        now = self._now()
        params = (str(uuid4()), data.title, data.content, data.category, now, now)
        try:
            rows = await run_in_threadpool(self._fetch, SQLITE_CREATE, params)
        except _SQLITE_ERRORS as e:
            outcome = classify_storage_error(e)
            if isinstance(outcome, Failed):
                logger.error("Failed to create todo: %s", outcome.detail)
            return outcome
        if not rows:
            return Failed("INSERT returned no row")
        return Found(self._row_to_entity(rows[0]))

    async def get(self, todo_id: UUID) -> GetResult:
        try:
            rows = await run_in_threadpool(self._fetch, SQLITE_GET, (str(todo_id),))
        except _SQLITE_ERRORS as e:
            logger.error("Failed to fetch todo %s: %s", todo_id, describe_error(e))
            return Failed(describe_error(e))
        return Found(self._row_to_entity(rows[0])) if rows else NotFound()

    async def update(self, todo_id: UUID, data: TodoUpdate) -> UpdateResult:
        completed = None if data.completed is None else int(data.completed)
        params = (data.title, data.content, data.category, completed, self._now(), str(todo_id))
        try:
            rows = await run_in_threadpool(self._fetch, SQLITE_UPDATE, params)
        except _SQLITE_ERRORS as e:
            outcome = classify_storage_error(e)
            if isinstance(outcome, Failed):
                logger.error("Failed to update todo %s: %s", todo_id, outcome.detail)
            return outcome
        return Found(self._row_to_entity(rows[0])) if rows else NotFound()

    async def delete(self, todo_id: UUID) -> DeleteResult:
        try:
            count = await run_in_threadpool(self._execute, SQLITE_DELETE, (str(todo_id),))
        except _SQLITE_ERRORS as e:
            logger.error("Failed to delete todo %s: %s", todo_id, describe_error(e))
            return Failed(describe_error(e))
        return NotFound() if count == 0 else Deleted(count)
