import asyncio
import logging
import uuid
from datetime import datetime, timezone

import asyncpg
from fastapi.testclient import TestClient

from src.api.db import PG_CREATE, PG_DELETE, PG_GET, PG_LIST, PG_UPDATE, PostgresRepository
from src.api.main import create_app
from src.api.models import Deleted, Duplicate, Failed, Found, Listed, NotFound
from src.api.repositories import MAX_OFFSET, ListQuery
from src.api.schemas import TodoCreate, TodoUpdate


def make_row(title="Row", **overrides):
    now = datetime(2025, 1, 25, 10, 15, 30, tzinfo=timezone.utc)
    row = {
        "id": uuid.uuid4(),
        "title": title,
        "content": "body",
        "category": "",
        "completed": False,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


class FakePool:
    """Stands in for an asyncpg pool: records calls and replays canned results."""

    def __init__(self, fetch=None, fetchrow=None, execute="DELETE 0", error=None):
        self._fetch = fetch or []
        self._fetchrow = fetchrow
        self._execute = execute
        self._error = error
        self.calls = []
        self.closed = False

    def _record(self, method, sql, args):
        self.calls.append((method, sql, args))
        if self._error is not None:
            raise self._error

    async def fetch(self, sql, *args):
        self._record("fetch", sql, args)
        return self._fetch

    async def fetchrow(self, sql, *args):
        self._record("fetchrow", sql, args)
        return self._fetchrow

    async def execute(self, sql, *args):
        self._record("execute", sql, args)
        return self._execute

    async def close(self):
        self.closed = True


def run(coro):
    return asyncio.run(coro)


def unique_violation():
    return asyncpg.UniqueViolationError('duplicate key value violates unique constraint "todos_title_key"')


class TestPostgresRepository:
    def test_list_binds_limit_and_offset(self):
        rows = [make_row("a"), make_row("b")]
        pool = FakePool(fetch=rows)
        outcome = run(PostgresRepository(pool).list(ListQuery(limit=3, offset=6)))
        assert pool.calls == [("fetch", PG_LIST, (3, 6))]
        assert isinstance(outcome, Listed)
        assert [t["title"] for t in outcome.todos] == ["a", "b"]

    def test_create_defaults_category_to_empty_string(self):
        row = make_row("New")
        pool = FakePool(fetchrow=row)
        outcome = run(PostgresRepository(pool).create(TodoCreate(title="New", content="body")))
        assert pool.calls == [("fetchrow", PG_CREATE, ("New", "body", ""))]
        assert outcome == Found(row)

    def test_create_unique_violation_is_duplicate(self):
        pool = FakePool(error=unique_violation())
        outcome = run(PostgresRepository(pool).create(TodoCreate(title="Dup", content="x")))
        assert isinstance(outcome, Duplicate)

    def test_create_other_error_is_failed_with_detail(self):
        pool = FakePool(error=ConnectionRefusedError("connection refused"))
        outcome = run(PostgresRepository(pool).create(TodoCreate(title="T", content="x")))
        assert isinstance(outcome, Failed)
        assert "connection refused" in outcome.detail

    def test_get_found_and_not_found(self):
        row = make_row()
        todo_id = row["id"]
        pool = FakePool(fetchrow=row)
        assert run(PostgresRepository(pool).get(todo_id)) == Found(row)
        assert pool.calls == [("fetchrow", PG_GET, (todo_id,))]

        assert run(PostgresRepository(FakePool(fetchrow=None)).get(uuid.uuid4())) == NotFound()

    def test_get_error_is_failed(self):
        outcome = run(PostgresRepository(FakePool(error=OSError("boom"))).get(uuid.uuid4()))
        assert isinstance(outcome, Failed)

    def test_update_binds_fields_in_order(self):
        row = make_row("Renamed", completed=True)
        pool = FakePool(fetchrow=row)
        todo_id = uuid.uuid4()
        outcome = run(PostgresRepository(pool).update(todo_id, TodoUpdate(title="Renamed", completed=True)))
        assert pool.calls == [("fetchrow", PG_UPDATE, (todo_id, "Renamed", None, None, True))]
        assert outcome == Found(row)

    def test_update_missing_row_and_duplicate(self):
        assert run(PostgresRepository(FakePool(fetchrow=None)).update(uuid.uuid4(), TodoUpdate())) == NotFound()
        outcome = run(
            PostgresRepository(FakePool(error=unique_violation())).update(uuid.uuid4(), TodoUpdate(title="x"))
        )
        assert isinstance(outcome, Duplicate)

    def test_delete_reads_affected_rows_from_command_tag(self):
        todo_id = uuid.uuid4()
        pool = FakePool(execute="DELETE 1")
        assert run(PostgresRepository(pool).delete(todo_id)) == Deleted(1)
        assert pool.calls == [("execute", PG_DELETE, (todo_id,))]

        assert run(PostgresRepository(FakePool(execute="DELETE 0")).delete(todo_id)) == NotFound()

    def test_delete_error_is_failed(self):
        outcome = run(PostgresRepository(FakePool(error=OSError("gone"))).delete(uuid.uuid4()))
        assert isinstance(outcome, Failed)

    def test_close_closes_pool(self):
        pool = FakePool()
        run(PostgresRepository(pool).close())
        assert pool.closed is True


class TestStorageFailureResponses:
    def client_for(self, pool):
        return TestClient(create_app(repository=PostgresRepository(pool)))

    def test_list_failure_does_not_leak_detail(self):
        with self.client_for(FakePool(error=OSError("secret host db.internal"))) as client:
            res = client.get("/api/todos")
        assert res.status_code == 500
        assert res.json() == {"status": "error", "message": "Something bad happened fetching"}

    def test_create_failure_echoes_raw_detail(self):
        with self.client_for(FakePool(error=ConnectionRefusedError("connection refused"))) as client:
            res = client.post("/api/todos/", json={"title": "T", "content": "x"})
        assert res.status_code == 500
        body = res.json()
        assert body["status"] == "error"
        assert "connection refused" in body["message"]

    def test_create_unique_violation_is_400(self):
        with self.client_for(FakePool(error=unique_violation())) as client:
            res = client.post("/api/todos/", json={"title": "T", "content": "x"})
        assert res.status_code == 400
        assert res.json() == {"status": "fail", "message": "Todo with that title already exists"}

    def test_get_failure_is_reported_as_not_found(self):
        todo_id = uuid.uuid4()
        with self.client_for(FakePool(error=OSError("timeout"))) as client:
            res = client.get(f"/api/todos/{todo_id}")
        assert res.status_code == 404
        assert res.json() == {"status": "fail", "message": f"Todo with ID: {todo_id} not found"}

    def test_delete_failure_is_500(self):
        with self.client_for(FakePool(error=OSError("timeout"))) as client:
            res = client.delete(f"/api/todos/{uuid.uuid4()}")
        assert res.status_code == 500
        assert res.json() == {"status": "error", "message": "Something bad happened deleting"}

    def test_success_rows_are_serialized(self):
        row = make_row("Serialized", category=None)
        with self.client_for(FakePool(fetchrow=row)) as client:
            res = client.get(f"/api/todos/{row['id']}")
        assert res.status_code == 200
        todo = res.json()["data"]["todo"]
        assert todo["id"] == str(row["id"])
        assert todo["category"] is None
        assert todo["created_at"].startswith("2025-01-25T10:15:30")

    def test_get_failure_is_logged_once_at_error(self, caplog):
        with self.client_for(FakePool(error=OSError("timeout"))) as client:
            caplog.clear()
            client.get(f"/api/todos/{uuid.uuid4()}")
        errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert "timeout" in errors[0].getMessage()

    def test_huge_page_binds_capped_offset(self):
        pool = FakePool(fetch=[])
        with self.client_for(pool) as client:
            res = client.get("/api/todos?page=99999999999999999999&limit=10")
        assert res.status_code == 200
        assert res.json()["results"] == 0
        assert pool.calls == [("fetch", PG_LIST, (10, MAX_OFFSET))]
