"""Query endpoints: submit, poll status, page through results, download CSV."""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from sql_editor.api.deps import get_query_service, http_error
from sql_editor.schemas.schemas import (
    ExecuteQueryRequest,
    QueryExecutionResponse,
    QueryResultsResponse,
)
from sql_editor.services.query_service import QueryService

router = APIRouter()


@router.post("/execute", response_model=QueryExecutionResponse, response_model_exclude_none=True)
async def execute_query(
    payload: ExecuteQueryRequest,
    service: QueryService = Depends(get_query_service),
) -> QueryExecutionResponse:
    """Start a read-only query in the background; returns immediately with its id."""
    outcome = await service.submit(payload.sql, payload.timeout)
    if not outcome.ok:
        raise http_error(outcome.error)
    return QueryExecutionResponse.from_execution(outcome.value)


@router.get(
    "/{query_id}/status",
    response_model=QueryExecutionResponse,
    response_model_exclude_none=True,
)
async def get_query_status(
    query_id: str,
    service: QueryService = Depends(get_query_service),
) -> QueryExecutionResponse:
    outcome = service.get_status(query_id)
    if not outcome.ok:
        raise http_error(outcome.error)
    return QueryExecutionResponse.from_execution(outcome.value)


@router.get("/{query_id}/results", response_model=QueryResultsResponse)
async def get_query_results(
    query_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, alias="pageSize"),
    service: QueryService = Depends(get_query_service),
) -> QueryResultsResponse:
    """One page of a completed query's results. pageSize is capped server-side."""
    outcome = service.get_page(query_id, page, page_size)
    if not outcome.ok:
        raise http_error(outcome.error)
    return QueryResultsResponse.from_page(outcome.value)


@router.get("/{query_id}/download/csv")
async def download_csv(
    query_id: str,
    service: QueryService = Depends(get_query_service),
) -> FileResponse:
    outcome = await service.export_csv(query_id)
    if not outcome.ok:
        raise http_error(outcome.error)
    export = outcome.value
    return FileResponse(export.file_path, media_type="text/csv", filename=export.file_name)
