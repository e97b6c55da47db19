from collections.abc import Iterator
from contextlib import contextmanager

from ..repository.errors import (
    RepositoryUnavailableError,
    ResultNotFoundError,
    UnknownReferenceError,
)


class EngineError(Exception):
    """Base class for errors surfaced by the diff and trend engine."""

    error_code = "ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidParameter(EngineError):
    """Malformed or out-of-range input. Never retried."""

    error_code = "INVALID_PARAMETER"

    def __init__(self, message: str, *, parameter: str | None = None) -> None:
        self.parameter = parameter
        super().__init__(message)


class BatchTooLarge(InvalidParameter):
    error_code = "BATCH_TOO_LARGE"

    def __init__(self, size: int, maximum: int) -> None:
        self.size = size
        self.maximum = maximum
        super().__init__(
            f"Batch contains {size} trend queries; at most {maximum} are allowed",
            parameter="trend_queries",
        )


class NotFound(EngineError):
    """A referenced result key or benchmark has no data."""

    error_code = "NOT_FOUND"


class RepositoryUnavailable(EngineError):
    """Transient failure of the result repository."""

    error_code = "REPOSITORY_UNAVAILABLE"


class Cancelled(EngineError):
    """The call's deadline elapsed or the caller cancelled it."""

    error_code = "CANCELLED"


@contextmanager
def translate_repository_errors() -> Iterator[None]:
    """Re-raise repository adapter errors as engine errors."""
    try:
        yield
    except ResultNotFoundError as exc:
        raise NotFound(str(exc)) from exc
    except UnknownReferenceError as exc:
        raise InvalidParameter(str(exc), parameter=f"{exc.kind}_id") from exc
    except RepositoryUnavailableError as exc:
        raise RepositoryUnavailable(str(exc)) from exc
