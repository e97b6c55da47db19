import asyncio

import pytest

from benchtrack_mcp.repository import (
    InMemoryResultRepository,
    RepositoryPool,
    RepositoryUnavailableError,
    ResultNotFoundError,
)
from benchtrack_mcp.types import BenchmarkMeasurement, CatalogFilter, ResultKey, ResultKeyFilter

KEY = ResultKey("c01", "default", "linux-x86_64")


class BlockingRepository:
    """Holds every call until ``release`` is set."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.order: list[str] = []

    async def get_measurements(self, key: ResultKey) -> list[BenchmarkMeasurement]:
        self.order.append(key.commit_sha)
        await self.release.wait()
        return []

    async def list_result_keys(
        self, query_filter: ResultKeyFilter, limit: int
    ) -> list[ResultKey]:
        await self.release.wait()
        return []


class TestRepositoryPool:
    """Test the bounded limiter in front of a repository."""

    def test_rejects_zero_concurrency(self) -> None:
        with pytest.raises(ValueError):
            RepositoryPool(InMemoryResultRepository(), 0)

    @pytest.mark.asyncio
    async def test_delegates(self, sample_repository: InMemoryResultRepository) -> None:
        pool = RepositoryPool(sample_repository, 2)
        measurements = await pool.get_measurements(KEY)
        assert {m.benchmark_name for m in measurements} >= {"nbody", "json_dumps"}
        keys = await pool.list_result_keys(ResultKeyFilter(environment_id="linux-x86_64"), 2)
        assert len(keys) == 2
        assert pool.repository is sample_repository
        assert pool.max_concurrency == 2

    @pytest.mark.asyncio
    async def test_delegates_catalog(self, sample_repository: InMemoryResultRepository) -> None:
        pool = RepositoryPool(sample_repository, 1)
        assert await pool.list_environments("jit") == ["linux-x86_64"]
        assert await pool.list_binaries() == ["debug", "default", "jit"]
        assert await pool.list_python_versions() == ["3.12.1", "3.13.0"]
        assert await pool.search_benchmark_names(CatalogFilter(binary_id="jit")) == ["nbody"]
        assert pool.in_flight == 0
        assert pool.peak_in_flight == 1

    @pytest.mark.asyncio
    async def test_errors_pass_through_and_release(
        self, sample_repository: InMemoryResultRepository
    ) -> None:
        pool = RepositoryPool(sample_repository, 1)
        with pytest.raises(ResultNotFoundError):
            await pool.get_measurements(ResultKey("nope", "default", "linux-x86_64"))
        assert pool.in_flight == 0
        # The slot was released, so the next call does not block.
        await asyncio.wait_for(pool.get_measurements(KEY), timeout=1.0)

    @pytest.mark.asyncio
    async def test_waiters_served_in_order(self) -> None:
        repo = BlockingRepository()
        pool = RepositoryPool(repo, 1)
        tasks = [
            asyncio.create_task(pool.get_measurements(ResultKey(f"c{i}", "default", "linux")))
            for i in range(4)
        ]
        await asyncio.sleep(0.05)
        assert pool.in_flight == 1
        assert repo.order == ["c0"]
        repo.release.set()
        await asyncio.gather(*tasks)
        assert repo.order == ["c0", "c1", "c2", "c3"]
        assert pool.peak_in_flight == 1

    @pytest.mark.asyncio
    async def test_acquire_timeout(self) -> None:
        repo = BlockingRepository()
        pool = RepositoryPool(repo, 1, acquire_timeout=0.05)
        holder = asyncio.create_task(pool.get_measurements(KEY))
        await asyncio.sleep(0.01)
        with pytest.raises(RepositoryUnavailableError, match="pool exhausted"):
            await pool.list_result_keys(ResultKeyFilter(environment_id="linux"), 10)
        repo.release.set()
        await holder
        assert pool.in_flight == 0
