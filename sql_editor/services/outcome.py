"""Tagged success/failure values returned by the query services.

Caller-facing failures (bad SQL, unknown id, wrong execution state) are data,
not exceptions; the HTTP layer maps each ErrorKind to a status code.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STILL_RUNNING = "still_running"
    EXECUTION_FAILED = "execution_failed"
    NO_RESULTS = "no_results"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def success(value: T) -> Outcome[T]:
    return Outcome(value=value)


def failure(kind: ErrorKind, message: str) -> Outcome:
    return Outcome(error=ServiceError(kind=kind, message=message))
