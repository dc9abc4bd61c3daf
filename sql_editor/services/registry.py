"""Execution records and the in-memory registry that holds them.

The registry lives for the process lifetime and is never persisted: executions
in flight are lost on restart. It is only touched from the event loop thread,
so plain dict operations are enough.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from sql_editor.services.outcome import ErrorKind, Outcome, failure, success

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]: ...

    async def release(self) -> None: ...


class ConnectionSource(Protocol):
    async def connect(self) -> Connection: ...


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class QueryColumn:
    name: str
    type: str


@dataclass(frozen=True)
class QueryResults:
    columns: list[QueryColumn]
    rows: list[list[Any]]
    row_count: int  # rows returned by the database, before the display cap
    truncated: bool


@dataclass(frozen=True)
class QueryFailure:
    message: str
    line: int | None = None
    column: int | None = None


@dataclass
class Execution:
    id: str
    sql: str
    start_time: datetime
    connection: Connection
    status: ExecutionStatus = ExecutionStatus.RUNNING
    results: QueryResults | None = None
    failure: QueryFailure | None = None
    end_time: datetime | None = None
    exec_time_ms: int | None = None
    released: bool = field(default=False, repr=False)

    def complete(self, results: QueryResults, exec_time_ms: int, end_time: datetime) -> None:
        self._ensure_running()
        self.status = ExecutionStatus.COMPLETED
        self.results = results
        self.exec_time_ms = exec_time_ms
        self.end_time = end_time

    def fail(self, failure: QueryFailure, end_time: datetime) -> None:
        self._ensure_running()
        self.status = ExecutionStatus.ERROR
        self.failure = failure
        self.end_time = end_time

    def _ensure_running(self) -> None:
        if self.status is not ExecutionStatus.RUNNING:
            raise RuntimeError(f"Execution {self.id} already finished ({self.status.value})")

    async def release(self) -> None:
        """Give the connection back, at most once. Release errors are logged, not raised."""
        if self.released:
            return
        self.released = True
        try:
            await self.connection.release()
        except Exception as exc:
            logger.warning("Releasing connection for query %s failed: %s", self.id, exc)


class ExecutionRegistry:
    def __init__(self) -> None:
        self._executions: dict[str, Execution] = {}

    def add(self, execution: Execution) -> None:
        if execution.id in self._executions:
            raise KeyError(f"Execution {execution.id} is already registered")
        self._executions[execution.id] = execution

    def get(self, execution_id: str) -> Execution | None:
        return self._executions.get(execution_id)

    def remove(self, execution_id: str) -> Execution | None:
        return self._executions.pop(execution_id, None)

    def drain(self) -> list[Execution]:
        executions = list(self._executions.values())
        self._executions.clear()
        return executions

    def __contains__(self, execution_id: object) -> bool:
        return execution_id in self._executions

    def __len__(self) -> int:
        return len(self._executions)


def not_found(execution_id: str) -> Outcome:
    return failure(ErrorKind.NOT_FOUND, f"Query with ID '{execution_id}' not found")


def completed_results(registry: ExecutionRegistry, execution_id: str) -> Outcome[QueryResults]:
    """Look up the results of a finished execution, or say why there are none."""
    execution = registry.get(execution_id)
    if execution is None:
        return not_found(execution_id)
    if execution.status is ExecutionStatus.RUNNING:
        return failure(ErrorKind.STILL_RUNNING, "Query is still running")
    if execution.status is ExecutionStatus.ERROR:
        return failure(ErrorKind.EXECUTION_FAILED, "Query failed with an error")
    if execution.results is None:
        return failure(ErrorKind.NO_RESULTS, "No results available for this query")
    return success(execution.results)
