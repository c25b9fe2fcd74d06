from __future__ import annotations

import sqlite3
from typing import Union

import asyncpg

from .models import Duplicate, Failed

UNIQUE_VIOLATION_SQLSTATE = "23505"
DUPLICATE_TITLE_MESSAGE = "Todo with that title already exists"

# Last-resort markers for drivers that expose no structured error code.
_DUPLICATE_MARKERS = (
    "duplicate key value violates unique constraint",
    "unique constraint failed",
)


def _is_unique_violation(exc: BaseException) -> bool:
    if isinstance(exc, asyncpg.UniqueViolationError):
        return True
    if getattr(exc, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    if isinstance(exc, sqlite3.IntegrityError):
        name = getattr(exc, "sqlite_errorname", None)
        if name is not None:
            return name == "SQLITE_CONSTRAINT_UNIQUE"
    message = str(exc).lower()
    return any(marker in message for marker in _DUPLICATE_MARKERS)


def describe_error(exc: BaseException) -> str:
    """Render a driver error as '<ExceptionType>: <message>'."""
    text = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


# PUBLIC_INTERFACE
def classify_storage_error(exc: BaseException) -> Union[Duplicate, Failed]:
    """
    Map a storage exception raised during a write to a result variant.

    Structured signals are checked first (asyncpg UniqueViolationError or
    SQLSTATE 23505, sqlite SQLITE_CONSTRAINT_UNIQUE); the error message is only
    inspected when the driver offers nothing structured.
    """
    if _is_unique_violation(exc):
        return Duplicate(detail=describe_error(exc))
    return Failed(detail=describe_error(exc))
