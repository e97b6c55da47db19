import asyncio
import logging
import time
from collections.abc import Awaitable, Mapping
from typing import Any, TypeVar

from ..config import BenchtrackConfig
from ..observability import get_trace_id
from ..repository import ResultRepository
from ..types import BatchTrendResponse, DiffRow, ResultKey, TrendPoint
from .batch import run_trend_batch
from .diff import compute_diff
from .errors import Cancelled
from .listing import (
    list_benchmark_names,
    list_binaries,
    list_environments,
    list_python_versions,
    list_runs,
    search_benchmark_names,
)
from .normalizer import (
    normalize_catalog_filter,
    normalize_diff_request,
    normalize_result_key,
    normalize_run_list_query,
    normalize_trend_query,
    optional_str,
)
from .polarity import PolarityTable
from .trends import extract_trend

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BenchmarkEngine:
    """Entry point for diff, trend, batch and listing requests.

    Takes raw parameter mappings, normalizes them, runs the request against
    the shared repository and bounds the whole call by the configured
    request timeout. Holds no per-request state.
    """

    def __init__(
        self,
        config: BenchtrackConfig,
        repository: ResultRepository,
        polarity_table: PolarityTable | None = None,
    ) -> None:
        self._config = config
        self._repository = repository
        self._polarity_table = polarity_table or PolarityTable.from_file(config.polarity_path)

    @property
    def repository(self) -> ResultRepository:
        return self._repository

    @property
    def polarity_table(self) -> PolarityTable:
        return self._polarity_table

    async def _with_deadline(self, operation: str, aw: Awaitable[T]) -> T:
        trace_id = get_trace_id()
        started_at = time.perf_counter()
        try:
            result = await asyncio.wait_for(aw, timeout=self._config.request_timeout)
        except TimeoutError:
            logger.warning(
                "[%s] %s exceeded request timeout of %.1fs",
                trace_id,
                operation,
                self._config.request_timeout,
            )
            raise Cancelled(
                f"{operation} exceeded the request timeout of {self._config.request_timeout}s"
            ) from None
        logger.debug(
            "[%s] %s completed in %dms",
            trace_id,
            operation,
            int((time.perf_counter() - started_at) * 1000),
        )
        return result

    async def diff(self, params: Mapping[str, Any]) -> list[DiffRow]:
        request = normalize_diff_request(params)
        return await self._with_deadline(
            "diff",
            compute_diff(
                self._repository,
                request,
                polarity_table=self._polarity_table,
                threshold_percent=self._config.significance_threshold,
            ),
        )

    async def trend(self, params: Mapping[str, Any]) -> list[TrendPoint]:
        query = normalize_trend_query(params, max_limit=self._config.trend_max_limit)
        return await self._with_deadline("trend", extract_trend(self._repository, query))

    async def trends_batch(
        self, trend_queries: Any, *, cancel_event: asyncio.Event | None = None
    ) -> BatchTrendResponse:
        # The batch applies the deadline itself so finished entries survive it.
        return await run_trend_batch(
            self._repository,
            trend_queries,
            max_queries=self._config.batch_max_queries,
            max_limit=self._config.trend_max_limit,
            deadline=self._config.request_timeout,
            cancel_event=cancel_event,
        )

    async def list_runs(self, params: Mapping[str, Any]) -> list[ResultKey]:
        query = normalize_run_list_query(params, max_limit=self._config.list_max_limit)
        return await self._with_deadline("list_runs", list_runs(self._repository, query))

    async def list_benchmark_names(self, params: Mapping[str, Any]) -> list[str]:
        key = normalize_result_key(params)
        return await self._with_deadline(
            "list_benchmark_names", list_benchmark_names(self._repository, key)
        )

    async def list_environments(self, params: Mapping[str, Any]) -> list[str]:
        binary_id = optional_str(params, "binary_id")
        return await self._with_deadline(
            "list_environments", list_environments(self._repository, binary_id)
        )

    async def list_binaries(self) -> list[str]:
        return await self._with_deadline("list_binaries", list_binaries(self._repository))

    async def list_python_versions(self) -> list[str]:
        return await self._with_deadline(
            "list_python_versions", list_python_versions(self._repository)
        )

    async def search_benchmark_names(self, params: Mapping[str, Any]) -> list[str]:
        catalog_filter = normalize_catalog_filter(params)
        return await self._with_deadline(
            "search_benchmark_names", search_benchmark_names(self._repository, catalog_filter)
        )
