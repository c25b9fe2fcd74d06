from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Dict, Optional
from uuid import UUID, uuid4

from .models import (
    CreateResult,
    DeleteResult,
    Deleted,
    Duplicate,
    Found,
    GetResult,
    Listed,
    ListResult,
    NotFound,
    TodoEntity,
    UpdateResult,
)
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings

# Largest OFFSET both sqlite and Postgres accept (signed 64-bit).
MAX_OFFSET = 2**63 - 1


@dataclass(frozen=True)
class ListQuery:
    """
    Query parameters for listing todos.
    """
    limit: int = 10
    offset: int = 0

    @classmethod
    def from_page(
        cls,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        default_limit: int = 10,
        max_limit: int = 100,
    ) -> "ListQuery":
        """
        Build a query from 1-based page/limit request parameters.

        Non-positive values are clamped: page to 1, limit to 1..max_limit.
        The offset uses the clamped limit and is capped at MAX_OFFSET, so a
        page past the end is simply empty.
        """
        page = 1 if page is None or page < 1 else page
        size = default_limit if limit is None else limit
        size = min(max(size, 1), max_limit)
        return cls(limit=size, offset=min((page - 1) * size, MAX_OFFSET))


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo storage backends.

    Every method issues a single statement against storage and reports the
    outcome as a result variant from ``models``; driver exceptions never escape.
    """

    name: str = "abstract"

    @abstractmethod
    async def list(self, query: ListQuery) -> ListResult:
        """Return todos ordered by id ascending, bounded by limit/offset."""

    @abstractmethod
    async def create(self, data: TodoCreate) -> CreateResult:
        """Insert a todo and return the stored row."""

    @abstractmethod
    async def get(self, todo_id: UUID) -> GetResult:
        """Return a todo by id."""

    @abstractmethod
    async def update(self, todo_id: UUID, data: TodoUpdate) -> UpdateResult:
        """Apply the provided fields of ``data`` and return the updated row."""

    @abstractmethod
    async def delete(self, todo_id: UUID) -> DeleteResult:
        """Delete a todo by id."""

    async def close(self) -> None:
        """Release storage resources held by the repository."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and local runs.

    Emulates the storage-level unique constraint on ``title``.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[UUID, TodoEntity] = {}

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _title_taken(self, title: str, exclude: Optional[UUID] = None) -> bool:
        return any(t["title"] == title and t["id"] != exclude for t in self._items.values())

    async def list(self, query: ListQuery) -> ListResult:
        with self._lock:
            items = sorted(self._items.values(), key=lambda t: t["id"])
            start = max(query.offset, 0)
            end = start + max(query.limit, 0)
            return Listed([t.copy() for t in items[start:end]])

    async def create(self, data: TodoCreate) -> CreateResult:
        now = self._now()
        with self._lock:
            if self._title_taken(data.title):
                return Duplicate(detail=f"title {data.title!r} already exists")
            entity: TodoEntity = {
                "id": uuid4(),
                "title": data.title,
                "content": data.content,
                "category": data.category,
                "completed": False,
                "created_at": now,
                "updated_at": now,
            }
            self._items[entity["id"]] = entity
            return Found(entity.copy())

    async def get(self, todo_id: UUID) -> GetResult:
        with self._lock:
            item = self._items.get(todo_id)
            return NotFound() if item is None else Found(item.copy())

    async def update(self, todo_id: UUID, data: TodoUpdate) -> UpdateResult:
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None:
                return NotFound()
            if data.title is not None and self._title_taken(data.title, exclude=todo_id):
                return Duplicate(detail=f"title {data.title!r} already exists")

            updated = existing.copy()
            if data.title is not None:
                updated["title"] = data.title
            if data.content is not None:
                updated["content"] = data.content
            if data.category is not None:
                updated["category"] = data.category
            if data.completed is not None:
                updated["completed"] = data.completed
            updated["updated_at"] = self._now()

            self._items[todo_id] = updated
            return Found(updated.copy())

    async def delete(self, todo_id: UUID) -> DeleteResult:
        with self._lock:
            if self._items.pop(todo_id, None) is None:
                return NotFound()
            return Deleted(1)


# PUBLIC_INTERFACE
async def open_repository(settings: Settings) -> Repository:
    """
    Build the repository selected by ``settings.persistence_backend``.
    - postgres: PostgresRepository over an asyncpg pool
    - sqlite: SQLiteRepository (standard library sqlite3)
    - memory: InMemoryRepository
    """
    backend = settings.persistence_backend
    if backend == "postgres":
        from .db import PostgresRepository

        return await PostgresRepository.connect(settings)
    if backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    if backend == "memory":
        return InMemoryRepository()
    raise ValueError(f"Unsupported persistence backend: {backend!r}")
