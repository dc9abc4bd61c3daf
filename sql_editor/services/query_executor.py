"""Query Executor: runs a validated read-only statement out-of-band.

Key guarantees:
- Dedicated pooled connection per execution, held until the reaper frees it.
- SET statement_timeout enforced before every query (server-side timeout).
- Results capped at max_rows; the raw row count is kept for display.
- Database errors are captured on the execution, never raised to the submitter.
"""
import asyncio
import logging
import time
import uuid
from datetime import date, datetime, timezone
from datetime import time as dt_time
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy.exc import DBAPIError

from sql_editor.services.outcome import ErrorKind, Outcome, failure, success
from sql_editor.services.reaper import RetentionReaper
from sql_editor.services.registry import (
    ConnectionSource,
    Execution,
    ExecutionRegistry,
    QueryColumn,
    QueryFailure,
    QueryResults,
)
from sql_editor.services.sql_validator import validate_sql
from sql_editor.services.values import normalize_value

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "public"
DEFAULT_TIMEOUT_MS = 30_000
MAX_ROWS = 10_000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_integral(value: float | Decimal) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite() and value == value.to_integral_value()
    return value.is_integer()


def infer_column_type(value: Any) -> str:
    """Display type for a column, guessed from a single sample value."""
    if value is None:
        return "NULL"
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "BOOLEAN"
    if isinstance(value, int):
        return "INTEGER"
    if isinstance(value, (float, Decimal)):
        return "INTEGER" if _is_integral(value) else "NUMERIC"
    if isinstance(value, (datetime, date, dt_time)):
        return "TIMESTAMP"
    if isinstance(value, (list, tuple)):
        return "ARRAY"
    if isinstance(value, dict):
        return "JSON"
    return "VARCHAR"


def build_results(records: list[dict[str, Any]], max_rows: int = MAX_ROWS) -> QueryResults:
    """Turn keyed records into positional rows, keeping at most max_rows of them.

    Column names and types come from the first record only. Retained cells are
    normalised so they can be served as JSON and written to CSV.
    """
    if not records:
        return QueryResults(columns=[], rows=[], row_count=0, truncated=False)

    first = records[0]
    columns = [QueryColumn(name=key, type=infer_column_type(value)) for key, value in first.items()]
    rows = [
        [normalize_value(record.get(col.name)) for col in columns]
        for record in records[:max_rows]
    ]
    return QueryResults(
        columns=columns,
        rows=rows,
        row_count=len(records),
        truncated=len(records) > max_rows,
    )


def _line_and_column(sql: str, position: int) -> tuple[int, int]:
    """Map a 1-based character offset in sql to a 1-based (line, column)."""
    prefix = sql[: max(position - 1, 0)]
    line = prefix.count("\n") + 1
    column = position - (prefix.rfind("\n") + 1)
    return line, column


def failure_from_exception(exc: BaseException, sql: str) -> QueryFailure:
    """Pull the driver's own message and error position out of a wrapped DB error."""
    chain: list[BaseException] = [exc]
    if isinstance(exc, DBAPIError) and isinstance(exc.orig, BaseException):
        chain.append(exc.orig)
    while chain[-1].__cause__ is not None and chain[-1].__cause__ not in chain:
        chain.append(chain[-1].__cause__)

    root = chain[-1]
    message = str(root) or type(root).__name__

    line = column = None
    for err in reversed(chain):
        position = getattr(err, "position", None)
        if position is None:
            continue
        try:
            line, column = _line_and_column(sql, int(position))
        except (TypeError, ValueError):
            continue
        break

    return QueryFailure(message=message, line=line, column=column)


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class QueryExecutor:
    def __init__(
        self,
        provider: ConnectionSource,
        registry: ExecutionRegistry,
        reaper: RetentionReaper,
        *,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_rows: int = MAX_ROWS,
        schema: str = DEFAULT_SCHEMA,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._provider = provider
        self._registry = registry
        self._reaper = reaper
        self.default_timeout_ms = default_timeout_ms
        self.max_rows = max_rows
        self.schema = schema
        self._clock = clock
        self._tasks: set[asyncio.Task] = set()

    async def submit(self, sql: str, timeout_ms: int | None = None) -> Outcome[Execution]:
        """
        Register a new execution and start running it in the background.

        Args:
            sql: Read-only SQL to execute.
            timeout_ms: Statement timeout; the default applies when None.

        Returns:
            Outcome holding the running Execution, or a VALIDATION /
            UNAVAILABLE error. No execution exists when the outcome failed.
        """
        validation = validate_sql(sql)
        if not validation.is_valid:
            return failure(ErrorKind.VALIDATION, validation.error)

        try:
            connection = await self._provider.connect()
        except Exception as exc:
            logger.error("Could not acquire a database connection: %s", exc)
            return failure(ErrorKind.UNAVAILABLE, "Could not acquire a database connection")

        execution = Execution(
            id=str(uuid.uuid4()),
            sql=sql,
            start_time=self._clock(),
            connection=connection,
        )
        self._registry.add(execution)

        effective_timeout = self.default_timeout_ms if timeout_ms is None else timeout_ms
        task = asyncio.create_task(self._run(execution, effective_timeout))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return success(execution)

    async def _run(self, execution: Execution, timeout_ms: int) -> None:
        conn = execution.connection
        try:
            await conn.query(f"SET statement_timeout = {int(timeout_ms)}")

            if self.schema and self.schema != DEFAULT_SCHEMA:
                await conn.query(
                    f"SET search_path TO {_quote_identifier(self.schema)}, {DEFAULT_SCHEMA}"
                )

            start = time.perf_counter()
            records = await conn.query(execution.sql)
            elapsed_ms = int((time.perf_counter() - start) * 1000)

            results = build_results(records, self.max_rows)
            execution.complete(results, elapsed_ms, self._clock())
            logger.info(
                "Query %s completed in %dms with %d rows", execution.id, elapsed_ms, len(results.rows)
            )
        except Exception as exc:
            query_failure = failure_from_exception(exc, execution.sql)
            execution.fail(query_failure, self._clock())
            logger.error("Query %s failed: %s", execution.id, query_failure.message)
        finally:
            self._reaper.schedule(execution.id)

    async def join(self) -> None:
        """Wait for every in-flight execution to reach a terminal state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
