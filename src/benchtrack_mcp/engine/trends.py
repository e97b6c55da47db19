"""Time-ordered benchmark series across commit history."""

import logging

from ..repository import ResultRepository, python_version_matches
from ..types import BenchmarkMeasurement, ResultKey, TrendPoint, TrendQuery
from .errors import RepositoryUnavailable, translate_repository_errors
from .tasks import gather_all

logger = logging.getLogger(__name__)


def _pick_measurement(
    key: ResultKey, measurements: list[BenchmarkMeasurement], query: TrendQuery
) -> BenchmarkMeasurement:
    for m in measurements:
        if m.benchmark_name == query.benchmark_name and python_version_matches(
            m.python_version, query.python_version
        ):
            return m
    # The listing promised this run carries the benchmark.
    raise RepositoryUnavailable(
        f"Inconsistent repository: run {key.commit_sha}/{key.binary_id}/{key.environment_id} "
        f"was listed for {query.benchmark_name!r} but has no such measurement"
    )


async def extract_trend(repository: ResultRepository, query: TrendQuery) -> list[TrendPoint]:
    """Return at most ``query.limit`` points for the newest matching runs, oldest first.

    Having fewer matching runs than ``limit`` (or none at all) is not an error.

    Raises:
        InvalidParameter: the environment or binary id is unknown.
        RepositoryUnavailable: the repository failed or is inconsistent.
    """
    with translate_repository_errors():
        keys = await repository.list_result_keys(query.to_filter(), query.limit)
        keys = keys[: query.limit]
        measurement_sets = await gather_all(repository.get_measurements(key) for key in keys)

    points: list[TrendPoint] = []
    for key, measurements in zip(keys, measurement_sets, strict=True):
        m = _pick_measurement(key, measurements, query)
        points.append(TrendPoint(commit_sha=key.commit_sha, timestamp=m.timestamp, value=m.value))

    # Repository order is newest first; charts read left to right.
    points.reverse()
    logger.debug(
        "Trend %s/%s: %d points (limit=%d)",
        query.environment_id,
        query.benchmark_name,
        len(points),
        query.limit,
    )
    return points
