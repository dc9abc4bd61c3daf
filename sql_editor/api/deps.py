"""FastAPI dependencies: the query service and error translation."""
from fastapi import HTTPException, Request, status

from sql_editor.services.outcome import ErrorKind, ServiceError
from sql_editor.services.query_service import QueryService

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.STILL_RUNNING: status.HTTP_409_CONFLICT,
    ErrorKind.EXECUTION_FAILED: status.HTTP_409_CONFLICT,
    ErrorKind.NO_RESULTS: status.HTTP_409_CONFLICT,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_query_service(request: Request) -> QueryService:
    """The process-wide service built in the app lifespan."""
    return request.app.state.query_service


def http_error(error: ServiceError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_KIND[error.kind], detail=error.message)
