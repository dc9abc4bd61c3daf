"""Shared fakes: an in-memory connection provider and a virtual-clock scheduler."""
import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from sql_editor.core.config import Settings
from sql_editor.services.query_executor import build_results
from sql_editor.services.query_service import build_query_service
from sql_editor.services.registry import Execution, QueryFailure


class FakeConnection:
    """Answers SET statements with no rows and the user query via `handler`."""

    def __init__(self, handler, fail_release: bool = False):
        self.handler = handler
        self.fail_release = fail_release
        self.statements: list[str] = []
        self.release_count = 0

    async def query(self, sql, params=None):
        self.statements.append(sql)
        if sql.startswith("SET "):
            return []
        result = self.handler(sql)
        if isinstance(result, BaseException):
            raise result
        return result

    async def release(self):
        self.release_count += 1
        if self.fail_release:
            raise ConnectionError("connection already closed")


class FakeProvider:
    def __init__(self, handler=lambda sql: [], fail_connect: bool = False, fail_release: bool = False):
        self.handler = handler
        self.fail_connect = fail_connect
        self.fail_release = fail_release
        self.connections: list[FakeConnection] = []

    async def connect(self):
        if self.fail_connect:
            raise OSError("connection refused")
        conn = FakeConnection(self.handler, fail_release=self.fail_release)
        self.connections.append(conn)
        return conn


class ManualScheduler:
    """Runs deferred jobs only when the virtual clock is advanced past their due time."""

    def __init__(self):
        self.now = 0.0
        self.jobs: list[tuple[float, object, tuple]] = []

    def call_later(self, delay, callback, *args):
        self.jobs.append((self.now + delay, callback, args))

    def cancel_all(self):
        self.jobs.clear()

    async def advance(self, seconds):
        self.now += seconds
        due = [job for job in self.jobs if job[0] <= self.now]
        self.jobs = [job for job in self.jobs if job[0] > self.now]
        for _, callback, args in due:
            await callback(*args)


FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def rows_of(count: int) -> list[dict]:
    return [{"id": i, "name": f"row-{i}"} for i in range(count)]


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL="postgresql://user:pw@localhost/db",
        EXPORT_DIR=str(tmp_path / "exports"),
        _env_file=None,
    )


@pytest.fixture
def make_service(test_settings, scheduler):
    """Build a QueryService over a FakeProvider and the manual scheduler."""

    def _make(provider=None, **overrides):
        settings = test_settings.model_copy(update=overrides) if overrides else test_settings
        return build_query_service(settings, provider or FakeProvider(), scheduler)

    return _make


def make_execution(execution_id: str = "q-1", records=None, max_rows: int = 10_000, failed: bool = False):
    """Running when records is None, failed when failed=True, completed otherwise."""
    execution = Execution(
        id=execution_id,
        sql="SELECT * FROM things",
        start_time=FIXED_NOW,
        connection=FakeConnection(lambda sql: records or []),
    )
    if failed:
        execution.fail(QueryFailure(message='relation "things" does not exist'), FIXED_NOW)
    elif records is not None:
        execution.complete(build_results(records, max_rows), 3, FIXED_NOW)
    return execution
