from ..config import BenchtrackConfig
from .base import ResultRepository, python_version_matches
from .errors import (
    RepositoryError,
    RepositoryUnavailableError,
    ResultNotFoundError,
    UnknownReferenceError,
)
from .http import HttpResultRepository
from .memory import InMemoryResultRepository
from .pool import RepositoryPool

__all__ = [
    "HttpResultRepository",
    "InMemoryResultRepository",
    "RepositoryError",
    "RepositoryPool",
    "RepositoryUnavailableError",
    "ResultNotFoundError",
    "ResultRepository",
    "UnknownReferenceError",
    "build_repository",
    "python_version_matches",
]


def build_repository(config: BenchtrackConfig) -> RepositoryPool:
    """Create the configured repository behind a bounded pool."""
    repository: ResultRepository
    if config.snapshot_path:
        repository = InMemoryResultRepository.from_file(config.snapshot_path)
    elif config.repository_url:
        repository = HttpResultRepository(
            config.repository_url,
            api_token=config.api_token,
            timeout=config.repository_timeout,
        )
    else:
        raise RuntimeError("No result repository configured")
    return RepositoryPool(
        repository,
        config.max_concurrency,
        acquire_timeout=config.pool_acquire_timeout,
    )
