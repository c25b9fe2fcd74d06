from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

_BACKENDS = {"memory", "sqlite", "postgres"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'postgres', 'sqlite' or 'memory'. Defaults to 'postgres'
      when DATABASE_URL is set, otherwise 'memory'
    - DATABASE_URL: PostgreSQL DSN used by the asyncpg pool
    - DB_POOL_MIN_SIZE / DB_POOL_MAX_SIZE: asyncpg pool bounds (1 / 10)
    - DB_COMMAND_TIMEOUT: asyncpg command timeout in seconds (60)
    - DB_INIT_SCHEMA: 'true' to create the todos table at startup if missing
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LIST_DEFAULT_LIMIT / LIST_MAX_LIMIT: list page size default and ceiling (10 / 100)
    - LOG_LEVEL: root log level (INFO)
    - LOG_FORMAT: 'text' (default) or 'json'
    - HOST / PORT: bind address for the development server
    """

    persistence_backend: str
    database_url: Optional[str]
    db_pool_min_size: int
    db_pool_max_size: int
    db_command_timeout: float
    db_init_schema: bool
    sqlite_db_path: str
    cors_allow_origins: List[str]
    list_default_limit: int
    list_max_limit: int
    log_level: str
    log_format: str
    host: str
    port: int


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _get_env(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    database_url = os.getenv("DATABASE_URL") or None

    default_backend = "postgres" if database_url else "memory"
    backend = _get_env("PERSISTENCE_BACKEND", default_backend).strip().lower()
    if backend not in _BACKENDS:
        raise ValueError(
            f"PERSISTENCE_BACKEND must be one of {sorted(_BACKENDS)}, got {backend!r}"
        )
    if backend == "postgres" and not database_url:
        raise ValueError("DATABASE_URL environment variable is required for the postgres backend")

    pool_min = _parse_int("DB_POOL_MIN_SIZE", 1)
    pool_max = _parse_int("DB_POOL_MAX_SIZE", 10, minimum=1)
    if pool_min > pool_max:
        raise ValueError("DB_POOL_MIN_SIZE cannot exceed DB_POOL_MAX_SIZE")

    default_limit = _parse_int("LIST_DEFAULT_LIMIT", 10, minimum=1)
    max_limit = _parse_int("LIST_MAX_LIMIT", 100, minimum=1)

    log_format = _get_env("LOG_FORMAT", "text").strip().lower()
    if log_format not in {"text", "json"}:
        log_format = "text"

    return Settings(
        persistence_backend=backend,
        database_url=database_url,
        db_pool_min_size=pool_min,
        db_pool_max_size=pool_max,
        db_command_timeout=float(_parse_int("DB_COMMAND_TIMEOUT", 60, minimum=1)),
        db_init_schema=_parse_bool(_get_env("DB_INIT_SCHEMA", "false"), False),
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/todos.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        list_default_limit=min(default_limit, max_limit),
        list_max_limit=max_limit,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_format=log_format,
        host=_get_env("HOST", "0.0.0.0"),
        port=_parse_int("PORT", 8000, minimum=1),
    )
