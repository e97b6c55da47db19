import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastmcp import FastMCP
from mcp.types import ToolAnnotations

from ..engine import BenchmarkEngine, EngineError
from ..observability import get_trace_id
from .errors import engine_error_result

__all__ = ["register_tools"]

logger = logging.getLogger(__name__)

_READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True)


async def _run_tool(
    operation: str, call: Callable[[], Awaitable[dict[str, Any]]]
) -> dict[str, Any]:
    trace_id = get_trace_id()
    started_at = time.perf_counter()
    try:
        result = await call()
    except EngineError as exc:
        timing_ms = int((time.perf_counter() - started_at) * 1000)
        logger.info("[%s] %s failed: %s (%s)", trace_id, operation, exc.message, exc.error_code)
        return engine_error_result(exc, trace_id, timing_ms)
    result["trace_id"] = trace_id
    return result


def register_tools(mcp: FastMCP, engine: BenchmarkEngine) -> None:
    """Register benchmark diff/trend tools to the FastMCP instance."""

    @mcp.tool(annotations=_READ_ONLY)
    async def benchmark_diff(
        commit_a: str,
        binary_a: str,
        environment_a: str,
        commit_b: str,
        binary_b: str,
        environment_b: str,
        benchmark_names: list[str] | None = None,
        threshold_percent: float | None = None,
        polarities: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Compare benchmark results of a baseline run (A) against a candidate run (B).

        A run is identified by commit, binary (build variant) and environment.
        Returns one row per benchmark name, sorted by name, with value_a,
        value_b, delta_absolute, delta_percent and a direction of
        improved / regressed / unchanged / new (only in B) / removed (only in A).

        Args:
            benchmark_names: Restrict the comparison to these benchmarks.
            threshold_percent: Minimum percent change to count as improved/regressed.
            polarities: Per-benchmark override, "lower_is_better" or "higher_is_better".
        """
        params = {
            "commit_a": commit_a,
            "binary_a": binary_a,
            "environment_a": environment_a,
            "commit_b": commit_b,
            "binary_b": binary_b,
            "environment_b": environment_b,
            "benchmark_names": benchmark_names,
            "threshold_percent": threshold_percent,
            "polarities": polarities,
        }

        async def call() -> dict[str, Any]:
            rows = await engine.diff(params)
            return {"status": "ok", "rows": [r.to_dict() for r in rows]}

        return await _run_tool("benchmark_diff", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def benchmark_trend(
        environment_id: str,
        benchmark_name: str,
        binary_id: str | None = None,
        python_version: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Return the value of one benchmark over the most recent commits.

        Points are ordered oldest first (left to right on a time axis) and
        there are at most ``limit`` of them (default 50). An empty list means
        no data yet for this benchmark in this environment.
        """
        params = {
            "environment_id": environment_id,
            "benchmark_name": benchmark_name,
            "binary_id": binary_id,
            "python_version": python_version,
            "limit": limit,
        }

        async def call() -> dict[str, Any]:
            points = await engine.trend(params)
            return {"status": "ok", "points": [p.to_dict() for p in points]}

        return await _run_tool("benchmark_trend", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def benchmark_trends_batch(trend_queries: list[dict[str, Any]]) -> dict[str, Any]:
        """Run many trend queries at once, e.g. to fill a grid of charts.

        Each entry takes the same fields as benchmark_trend. The response has
        one result per query, in request order; check each entry's status
        (ok / error / cancelled) since one failing query never fails the
        others.
        """

        async def call() -> dict[str, Any]:
            response = await engine.trends_batch(trend_queries)
            return response.to_dict()

        return await _run_tool("benchmark_trends_batch", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def list_runs(
        environment_id: str,
        binary_id: str | None = None,
        python_version: str | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """List benchmark runs (commit, binary, environment) of an environment, newest first.

        Use it to find commits to pass to benchmark_diff. Paginate with
        skip/limit (default limit 100).
        """
        params = {
            "environment_id": environment_id,
            "binary_id": binary_id,
            "python_version": python_version,
            "skip": skip,
            "limit": limit,
        }

        async def call() -> dict[str, Any]:
            keys = await engine.list_runs(params)
            return {"status": "ok", "runs": [k.to_dict() for k in keys]}

        return await _run_tool("list_runs", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def list_benchmark_names(
        commit_sha: str, binary_id: str, environment_id: str
    ) -> dict[str, Any]:
        """List the benchmark names measured in one run, sorted by name."""
        params = {
            "commit_sha": commit_sha,
            "binary_id": binary_id,
            "environment_id": environment_id,
        }

        async def call() -> dict[str, Any]:
            names = await engine.list_benchmark_names(params)
            return {"status": "ok", "benchmark_names": names}

        return await _run_tool("list_benchmark_names", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def list_environments(binary_id: str | None = None) -> dict[str, Any]:
        """List environment ids; with binary_id, only environments that binary ran on."""

        async def call() -> dict[str, Any]:
            environments = await engine.list_environments({"binary_id": binary_id})
            return {"status": "ok", "environments": environments}

        return await _run_tool("list_environments", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def list_binaries() -> dict[str, Any]:
        """List binary (build variant) ids, e.g. default, debug, jit."""

        async def call() -> dict[str, Any]:
            return {"status": "ok", "binaries": await engine.list_binaries()}

        return await _run_tool("list_binaries", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def list_python_versions() -> dict[str, Any]:
        """List the Python versions results were recorded with, oldest first.

        Any of these, or a dotted prefix such as "3.13", can be passed as
        python_version to the trend tools.
        """

        async def call() -> dict[str, Any]:
            return {"status": "ok", "python_versions": await engine.list_python_versions()}

        return await _run_tool("list_python_versions", call)

    @mcp.tool(annotations=_READ_ONLY)
    async def search_benchmark_names(
        environment_id: str | None = None,
        binary_id: str | None = None,
        python_version: str | None = None,
    ) -> dict[str, Any]:
        """List every benchmark name with results, sorted.

        Without arguments this is the full catalog. Narrow it to the names
        measured in an environment, by a binary or under a Python version to
        find valid benchmark_name values for benchmark_trend.
        """
        params = {
            "environment_id": environment_id,
            "binary_id": binary_id,
            "python_version": python_version,
        }

        async def call() -> dict[str, Any]:
            names = await engine.search_benchmark_names(params)
            return {"status": "ok", "benchmark_names": names}

        return await _run_tool("search_benchmark_names", call)

    _ = benchmark_diff
    _ = benchmark_trend
    _ = benchmark_trends_batch
    _ = list_runs
    _ = list_benchmark_names
    _ = list_environments
    _ = list_binaries
    _ = list_python_versions
    _ = search_benchmark_names
