"""Point-in-time comparison of two benchmark runs."""

import logging

from ..repository import ResultRepository
from ..types import BenchmarkMeasurement, DiffRequest, DiffRow, Direction, Polarity, ResultKey
from .errors import translate_repository_errors
from .polarity import PolarityTable
from .tasks import gather_all

logger = logging.getLogger(__name__)


def classify_change(
    value_a: float, value_b: float, polarity: Polarity, threshold_percent: float
) -> tuple[float, float | None, Direction]:
    """Return (delta_absolute, delta_percent, direction) for a benchmark present on both sides.

    Identical values are always unchanged. When the baseline is zero the
    percentage is undefined (None) and any change counts as significant.
    """
    delta_absolute = value_b - value_a
    if value_a == value_b:
        return delta_absolute, (0.0 if value_a != 0 else None), Direction.UNCHANGED

    delta_percent: float | None = None
    if value_a != 0:
        delta_percent = delta_absolute / value_a * 100
        # Percent change in the "worse" direction; negative means it got better.
        worse_percent = delta_percent if polarity is Polarity.LOWER_IS_BETTER else -delta_percent
        if value_a < 0:
            # A negative baseline flips the sign of the ratio.
            worse_percent = -worse_percent
        if worse_percent > threshold_percent:
            return delta_absolute, delta_percent, Direction.REGRESSED
        if -worse_percent > threshold_percent:
            return delta_absolute, delta_percent, Direction.IMPROVED
        return delta_absolute, delta_percent, Direction.UNCHANGED

    got_worse = delta_absolute > 0 if polarity is Polarity.LOWER_IS_BETTER else delta_absolute < 0
    return delta_absolute, None, Direction.REGRESSED if got_worse else Direction.IMPROVED


def build_diff_rows(
    measurements_a: list[BenchmarkMeasurement],
    measurements_b: list[BenchmarkMeasurement],
    *,
    polarity_table: PolarityTable,
    threshold_percent: float,
    benchmark_names: tuple[str, ...] = (),
) -> list[DiffRow]:
    by_name_a = {m.benchmark_name: m for m in measurements_a}
    by_name_b = {m.benchmark_name: m for m in measurements_b}

    names = set(by_name_a) | set(by_name_b)
    if benchmark_names:
        names &= set(benchmark_names)

    rows: list[DiffRow] = []
    for name in sorted(names):
        polarity = polarity_table.polarity_for(name)
        a = by_name_a.get(name)
        b = by_name_b.get(name)
        if a is not None and b is not None:
            delta_absolute, delta_percent, direction = classify_change(
                a.value, b.value, polarity, threshold_percent
            )
            rows.append(
                DiffRow(
                    benchmark_name=name,
                    value_a=a.value,
                    value_b=b.value,
                    delta_absolute=delta_absolute,
                    delta_percent=delta_percent,
                    direction=direction,
                    unit=b.unit or a.unit,
                    polarity=polarity,
                )
            )
        elif b is not None:
            rows.append(
                DiffRow(
                    benchmark_name=name,
                    value_a=None,
                    value_b=b.value,
                    delta_absolute=None,
                    delta_percent=None,
                    direction=Direction.NEW,
                    unit=b.unit,
                    polarity=polarity,
                )
            )
        elif a is not None:
            rows.append(
                DiffRow(
                    benchmark_name=name,
                    value_a=a.value,
                    value_b=None,
                    delta_absolute=None,
                    delta_percent=None,
                    direction=Direction.REMOVED,
                    unit=a.unit,
                    polarity=polarity,
                )
            )
    return rows


async def compute_diff(
    repository: ResultRepository,
    request: DiffRequest,
    *,
    polarity_table: PolarityTable,
    threshold_percent: float,
) -> list[DiffRow]:
    """Compare baseline ``request.key_a`` against candidate ``request.key_b``.

    Raises:
        NotFound: either key was never ingested.
        RepositoryUnavailable: the repository failed.
    """
    if request.threshold_percent is not None:
        threshold_percent = request.threshold_percent
    table = polarity_table.with_overrides(request.polarities)

    keys: list[ResultKey] = [request.key_a, request.key_b]
    with translate_repository_errors():
        measurements_a, measurements_b = await gather_all(
            repository.get_measurements(key) for key in keys
        )

    rows = build_diff_rows(
        measurements_a,
        measurements_b,
        polarity_table=table,
        threshold_percent=threshold_percent,
        benchmark_names=request.benchmark_names,
    )
    logger.debug(
        "Diff %s..%s: %d rows (threshold=%.2f%%)",
        request.key_a.commit_sha,
        request.key_b.commit_sha,
        len(rows),
        threshold_percent,
    )
    return rows
