import asyncio
from typing import Any

import pytest

from benchtrack_mcp.engine import BatchTooLarge, InvalidParameter
from benchtrack_mcp.engine.batch import run_trend_batch
from benchtrack_mcp.repository import (
    InMemoryResultRepository,
    RepositoryPool,
    RepositoryUnavailableError,
)
from benchtrack_mcp.types import (
    BenchmarkMeasurement,
    EntryStatus,
    ResultKey,
    ResultKeyFilter,
)

ENV = "linux-x86_64"


class ScriptedRepository:
    """One run per benchmark ``bench_<i>``; behavior scripted per benchmark index."""

    def __init__(
        self,
        *,
        delays: dict[int, float] | None = None,
        failing: set[int] | None = None,
        default_delay: float = 0.0,
    ) -> None:
        self.delays = delays or {}
        self.failing = failing or set()
        self.default_delay = default_delay
        self.calls = 0

    @staticmethod
    def _index(benchmark_name: str) -> int:
        return int(benchmark_name.split("_")[1])

    async def list_result_keys(
        self, query_filter: ResultKeyFilter, limit: int
    ) -> list[ResultKey]:
        self.calls += 1
        assert query_filter.benchmark_name is not None
        index = self._index(query_filter.benchmark_name)
        await asyncio.sleep(self.delays.get(index, self.default_delay))
        if index in self.failing:
            raise RepositoryUnavailableError(f"backend down for bench_{index}")
        return [ResultKey(f"commit_{index}", "default", ENV)]

    async def get_measurements(self, key: ResultKey) -> list[BenchmarkMeasurement]:
        self.calls += 1
        index = int(key.commit_sha.split("_")[1])
        return [BenchmarkMeasurement(benchmark_name=f"bench_{index}", value=float(index))]


def _queries(n: int) -> list[dict[str, Any]]:
    return [{"environment_id": ENV, "benchmark_name": f"bench_{i}"} for i in range(n)]


class TestRunTrendBatch:
    """Test batch fan-out, ordering and failure isolation."""

    @pytest.mark.asyncio
    async def test_partial_failure(self) -> None:
        repo = ScriptedRepository(failing={3, 17, 41})
        response = await run_trend_batch(RepositoryPool(repo, 8), _queries(50))

        assert len(response.results) == 50
        assert response.ok_count == 47
        for i, entry in enumerate(response.results):
            assert entry.index == i
            if i in {3, 17, 41}:
                assert entry.status is EntryStatus.ERROR
                assert entry.error_code == "REPOSITORY_UNAVAILABLE"
                assert f"bench_{i}" in (entry.error or "")
            else:
                assert entry.status is EntryStatus.OK
                assert [p.value for p in entry.points] == [float(i)]

    @pytest.mark.asyncio
    async def test_order_follows_request_not_completion(self) -> None:
        # Earlier entries finish last.
        delays = {i: (10 - i) * 0.01 for i in range(10)}
        repo = ScriptedRepository(delays=delays)
        response = await run_trend_batch(repo, _queries(10))
        assert [e.query["benchmark_name"] for e in response.results] == [
            f"bench_{i}" for i in range(10)
        ]
        assert [e.points[0].commit_sha for e in response.results] == [
            f"commit_{i}" for i in range(10)
        ]

    @pytest.mark.asyncio
    async def test_too_large_touches_nothing(self) -> None:
        repo = ScriptedRepository()
        with pytest.raises(BatchTooLarge):
            await run_trend_batch(repo, _queries(51), max_queries=50)
        assert repo.calls == 0

    @pytest.mark.asyncio
    async def test_non_list_payload(self) -> None:
        repo = ScriptedRepository()
        with pytest.raises(InvalidParameter):
            await run_trend_batch(repo, "bench_1")
        assert repo.calls == 0

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        response = await run_trend_batch(ScriptedRepository(), [])
        assert response.results == []
        assert response.to_dict() == {"results": []}

    @pytest.mark.asyncio
    async def test_invalid_entry_fails_only_its_slot(self) -> None:
        queries = _queries(3)
        queries[1] = {"environment_id": ENV, "benchmark_name": "bench_1", "limit": 0}
        response = await run_trend_batch(ScriptedRepository(), queries)
        assert [e.status for e in response.results] == [
            EntryStatus.OK,
            EntryStatus.ERROR,
            EntryStatus.OK,
        ]
        assert response.results[1].error_code == "INVALID_PARAMETER"
        assert response.results[1].query["limit"] == 0

    @pytest.mark.asyncio
    async def test_unknown_environment_entry(
        self, sample_repository: InMemoryResultRepository
    ) -> None:
        queries = [
            {"environment_id": ENV, "benchmark_name": "nbody", "binary_id": "default"},
            {"environment_id": "windows", "benchmark_name": "nbody"},
        ]
        response = await run_trend_batch(sample_repository, queries)
        assert response.results[0].status is EntryStatus.OK
        assert len(response.results[0].points) == 5
        assert response.results[1].status is EntryStatus.ERROR
        assert response.results[1].error_code == "INVALID_PARAMETER"

    @pytest.mark.asyncio
    async def test_entry_limit_is_independent(
        self, sample_repository: InMemoryResultRepository
    ) -> None:
        queries = [
            {"environment_id": ENV, "benchmark_name": "nbody", "binary_id": "default", "limit": 2},
            {"environment_id": ENV, "benchmark_name": "nbody", "binary_id": "default"},
        ]
        response = await run_trend_batch(sample_repository, queries)
        assert [p.commit_sha for p in response.results[0].points] == ["c04", "c05"]
        assert len(response.results[1].points) == 5
        assert response.results[1].query["limit"] == 50

    @pytest.mark.asyncio
    async def test_deadline_cancels_unfinished(self) -> None:
        repo = ScriptedRepository(delays={1: 5.0})
        response = await run_trend_batch(repo, _queries(3), deadline=0.2)
        assert [e.status for e in response.results] == [
            EntryStatus.OK,
            EntryStatus.CANCELLED,
            EntryStatus.OK,
        ]
        cancelled = response.results[1]
        assert cancelled.error_code == "CANCELLED"
        assert "deadline" in (cancelled.error or "")
        assert cancelled.to_dict()["query"]["benchmark_name"] == "bench_1"

    @pytest.mark.asyncio
    async def test_cancel_event_mid_flight(self) -> None:
        repo = ScriptedRepository(delays={0: 0.0}, default_delay=5.0)
        cancel_event = asyncio.Event()

        async def cancel_soon() -> None:
            await asyncio.sleep(0.1)
            cancel_event.set()

        canceller = asyncio.create_task(cancel_soon())
        response = await run_trend_batch(
            repo, _queries(4), deadline=None, cancel_event=cancel_event
        )
        await canceller
        assert response.results[0].status is EntryStatus.OK
        assert all(e.status is EntryStatus.CANCELLED for e in response.results[1:])
        assert "cancelled by caller" in (response.results[1].error or "")

    @pytest.mark.asyncio
    async def test_cancel_event_already_set(self) -> None:
        repo = ScriptedRepository()
        cancel_event = asyncio.Event()
        cancel_event.set()
        response = await run_trend_batch(repo, _queries(3), cancel_event=cancel_event)
        assert all(e.status is EntryStatus.CANCELLED for e in response.results)
        assert repo.calls == 0

    @pytest.mark.asyncio
    async def test_pool_bounds_concurrency(self) -> None:
        repo = ScriptedRepository(default_delay=0.02)
        pool = RepositoryPool(repo, max_concurrency=3)
        response = await run_trend_batch(pool, _queries(20))
        assert response.ok_count == 20
        assert pool.peak_in_flight == 3
        assert pool.in_flight == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal_error(self) -> None:
        class BrokenRepository(ScriptedRepository):
            async def get_measurements(self, key: ResultKey) -> list[BenchmarkMeasurement]:
                raise ZeroDivisionError("boom")

        response = await run_trend_batch(BrokenRepository(), _queries(2))
        assert all(e.status is EntryStatus.ERROR for e in response.results)
        assert response.results[0].error_code == "INTERNAL_ERROR"
        assert response.results[0].error == "boom"

    @pytest.mark.asyncio
    async def test_response_serialization(self) -> None:
        repo = ScriptedRepository(failing={1})
        payload = (await run_trend_batch(repo, _queries(2))).to_dict()
        ok, failed = payload["results"]
        assert ok["status"] == "ok"
        assert ok["points"] == [{"commit_sha": "commit_0", "timestamp": None, "value": 0.0}]
        assert "error" not in ok
        assert failed["status"] == "error"
        assert failed["error_code"] == "REPOSITORY_UNAVAILABLE"
        assert "points" not in failed
