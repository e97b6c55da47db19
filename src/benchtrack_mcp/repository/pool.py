import asyncio
import logging

from ..types import BenchmarkMeasurement, CatalogFilter, ResultKey, ResultKeyFilter
from .base import ResultRepository
from .errors import RepositoryUnavailableError

logger = logging.getLogger(__name__)


class RepositoryPool:
    """Bounds the number of in-flight calls made against a shared repository.

    Callers beyond ``max_concurrency`` wait on the semaphore and are served in
    FIFO order. With ``acquire_timeout`` set, a caller that cannot get a slot
    in time fails with RepositoryUnavailableError instead of waiting forever.
    """

    def __init__(
        self,
        repository: ResultRepository,
        max_concurrency: int = 8,
        *,
        acquire_timeout: float | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._repository = repository
        self._max_concurrency = max_concurrency
        self._acquire_timeout = acquire_timeout
        self._semaphore: asyncio.Semaphore | None = None
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def repository(self) -> ResultRepository:
        return self._repository

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._peak_in_flight

    def _get_semaphore(self) -> asyncio.Semaphore:
        # Created lazily so the pool can be built outside a running loop.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        return self._semaphore

    async def _acquire(self) -> None:
        semaphore = self._get_semaphore()
        if self._acquire_timeout is None:
            await semaphore.acquire()
        else:
            try:
                await asyncio.wait_for(semaphore.acquire(), timeout=self._acquire_timeout)
            except TimeoutError:
                logger.warning(
                    "Repository pool exhausted (max_concurrency=%d, waited %.1fs)",
                    self._max_concurrency,
                    self._acquire_timeout,
                )
                raise RepositoryUnavailableError("repository pool exhausted") from None
        self._in_flight += 1
        self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

    def _release(self) -> None:
        self._in_flight -= 1
        self._get_semaphore().release()

    async def get_measurements(self, key: ResultKey) -> list[BenchmarkMeasurement]:
        await self._acquire()
        try:
            return await self._repository.get_measurements(key)
        finally:
            self._release()

    async def list_result_keys(
        self, query_filter: ResultKeyFilter, limit: int
    ) -> list[ResultKey]:
        await self._acquire()
        try:
            return await self._repository.list_result_keys(query_filter, limit)
        finally:
            self._release()

    async def list_environments(self, binary_id: str | None = None) -> list[str]:
        await self._acquire()
        try:
            return await self._repository.list_environments(binary_id)
        finally:
            self._release()

    async def list_binaries(self) -> list[str]:
        await self._acquire()
        try:
            return await self._repository.list_binaries()
        finally:
            self._release()

    async def list_python_versions(self) -> list[str]:
        await self._acquire()
        try:
            return await self._repository.list_python_versions()
        finally:
            self._release()

    async def search_benchmark_names(self, catalog_filter: CatalogFilter) -> list[str]:
        await self._acquire()
        try:
            return await self._repository.search_benchmark_names(catalog_filter)
        finally:
            self._release()
