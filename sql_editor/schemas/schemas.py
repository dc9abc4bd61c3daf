"""Pydantic v2 schemas for request/response validation (camelCase on the wire)."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from sql_editor.services.paginator import ResultsPage
from sql_editor.services.registry import Execution, ExecutionStatus

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


# ── Query execution ───────────────────────────────────────────────────────────

class ExecuteQueryRequest(BaseModel):
    sql: str
    timeout: Optional[int] = Field(default=None, gt=0, description="Statement timeout in ms")


class QueryErrorResponse(BaseModel):
    """Database error for a failed query.

    The error location is sent as 1-based `line` and `column` keys, derived
    from the server's character offset. There is no raw `position` key.
    """

    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    model_config = _CAMEL


class QueryExecutionResponse(BaseModel):
    query_id: str
    status: ExecutionStatus
    start_time: datetime
    exec_time_ms: Optional[int] = None
    error: Optional[QueryErrorResponse] = None

    model_config = _CAMEL

    @classmethod
    def from_execution(cls, execution: Execution) -> "QueryExecutionResponse":
        error = None
        if execution.failure is not None:
            error = QueryErrorResponse(
                message=execution.failure.message,
                line=execution.failure.line,
                column=execution.failure.column,
            )
        return cls(
            query_id=execution.id,
            status=execution.status,
            start_time=execution.start_time,
            exec_time_ms=execution.exec_time_ms,
            error=error,
        )


# ── Results ───────────────────────────────────────────────────────────────────

class QueryColumnResponse(BaseModel):
    name: str
    type: str


class QueryResultsResponse(BaseModel):
    columns: list[QueryColumnResponse]
    rows: list[list[Any]]
    row_count: int
    truncated: bool
    page_count: int
    current_page: int

    model_config = _CAMEL

    @classmethod
    def from_page(cls, page: ResultsPage) -> "QueryResultsResponse":
        return cls(
            columns=[QueryColumnResponse(name=c.name, type=c.type) for c in page.columns],
            rows=page.rows,
            row_count=page.row_count,
            truncated=page.truncated,
            page_count=page.page_count,
            current_page=page.current_page,
        )
