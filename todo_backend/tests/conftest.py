import os

# Default to the memory backend so importing the app never needs a database
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.api.db import SQLiteRepository  # noqa: E402
from src.api.main import create_app  # noqa: E402
from src.api.repositories import InMemoryRepository  # noqa: E402
from src.api.settings import get_settings  # noqa: E402


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "todos.db"))
    return InMemoryRepository()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def client(repository, settings):
    app = create_app(repository=repository, settings=settings)
    with TestClient(app) as c:
        yield c
