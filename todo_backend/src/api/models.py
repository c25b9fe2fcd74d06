from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, TypedDict, Union
from uuid import UUID


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A row of the ``todos`` table as returned by every storage backend.

    Fields:
    - id: UUID primary key, generated by storage
    - title: unique title (uniqueness enforced by storage)
    - content: free-form body
    - category: stored as '' when omitted on create
    - completed: boolean completion flag
    - created_at / updated_at: storage-assigned timestamps
    """

    id: UUID
    title: str
    content: str
    category: Optional[str]
    completed: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


# Storage outcomes. Repositories never raise driver errors to callers; they
# return one of the variants below and handlers map each variant to a response.


@dataclass(frozen=True)
class Found:
    todo: TodoEntity


@dataclass(frozen=True)
class Listed:
    todos: List[TodoEntity] = field(default_factory=list)


@dataclass(frozen=True)
class Deleted:
    count: int = 1


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Duplicate:
    """The write violated the unique title constraint."""

    detail: str = ""


@dataclass(frozen=True)
class Failed:
    """Any other storage failure; ``detail`` is the driver's error text."""

    detail: str


ListResult = Union[Listed, Failed]
CreateResult = Union[Found, Duplicate, Failed]
GetResult = Union[Found, NotFound, Failed]
UpdateResult = Union[Found, NotFound, Duplicate, Failed]
DeleteResult = Union[Deleted, NotFound, Failed]
