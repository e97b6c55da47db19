from ..types import ResultKey


class RepositoryError(Exception):
    """Base class for result repository failures."""


class ResultNotFoundError(RepositoryError):
    """The result key has never been ingested."""

    def __init__(self, key: ResultKey) -> None:
        self.key = key
        super().__init__(
            f"No results for commit={key.commit_sha} binary={key.binary_id} "
            f"environment={key.environment_id}"
        )


class UnknownReferenceError(RepositoryError):
    """A filter references an environment or binary the repository does not know."""

    def __init__(self, kind: str, value: str) -> None:
        self.kind = kind
        self.value = value
        super().__init__(f"Unknown {kind} id: {value}")


class RepositoryUnavailableError(RepositoryError):
    """Transient backing-store failure (network, timeout, 5xx, pool exhaustion)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
