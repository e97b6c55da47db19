"""Validation and defaulting of raw request parameters.

Parameters arrive string-keyed and loosely typed (``"25"`` as often as
``25``). Everything here is pure: no repository access, so unknown
environment or binary ids are only detected later, at the point of use.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..config import settings
from ..types import CatalogFilter, DiffRequest, Polarity, ResultKey, RunListQuery, TrendQuery
from .errors import BatchTooLarge, InvalidParameter
from .polarity import parse_polarity

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidParameter(f"{name} must be an integer, got {value!r}", parameter=name)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise InvalidParameter(f"{name} must be an integer, got {value!r}", parameter=name)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise InvalidParameter(f"{name} must be an integer, got {value!r}", parameter=name)


def normalize_skip(value: Any) -> int:
    if _is_blank(value):
        return 0
    skip = parse_int(value, "skip")
    if skip < 0:
        raise InvalidParameter(f"skip must be >= 0, got {skip}", parameter="skip")
    return skip


def normalize_limit(value: Any, *, default: int, maximum: int, name: str = "limit") -> int:
    """Default a missing limit, reject non-positive ones, clamp oversized ones."""
    if _is_blank(value):
        return min(default, maximum)
    limit = parse_int(value, name)
    if limit <= 0:
        raise InvalidParameter(f"{name} must be > 0, got {limit}", parameter=name)
    if limit > maximum:
        logger.debug("Clamping %s=%d to %d", name, limit, maximum)
        return maximum
    return limit


def require_str(params: Mapping[str, Any], name: str) -> str:
    value = params.get(name)
    if _is_blank(value):
        raise InvalidParameter(f"{name} is required", parameter=name)
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise InvalidParameter(f"{name} must be a string, got {value!r}", parameter=name)
    return str(value).strip()


def optional_str(params: Mapping[str, Any], name: str) -> str | None:
    if _is_blank(params.get(name)):
        return None
    return require_str(params, name)


def normalize_benchmark_names(value: Any) -> tuple[str, ...]:
    """Accept a list or a comma-separated string; drop blanks and duplicates."""
    if _is_blank(value):
        return ()
    if isinstance(value, str):
        raw_names: Sequence[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        raw_names = value
    else:
        raise InvalidParameter(
            f"benchmark_names must be a list or comma-separated string, got {value!r}",
            parameter="benchmark_names",
        )
    names: dict[str, None] = {}
    for raw in raw_names:
        if not isinstance(raw, str):
            raise InvalidParameter(
                f"benchmark_names entries must be strings, got {raw!r}",
                parameter="benchmark_names",
            )
        name = raw.strip()
        if name:
            names.setdefault(name, None)
    return tuple(names)


def normalize_threshold(value: Any) -> float | None:
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise InvalidParameter("threshold_percent must be a number", parameter="threshold_percent")
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(
            f"threshold_percent must be a number, got {value!r}", parameter="threshold_percent"
        ) from None
    if threshold < 0 or threshold != threshold:
        raise InvalidParameter(
            f"threshold_percent must be >= 0, got {value!r}", parameter="threshold_percent"
        )
    return threshold


def normalize_polarities(value: Any) -> dict[str, Polarity]:
    if _is_blank(value):
        return {}
    if not isinstance(value, Mapping):
        raise InvalidParameter(
            "polarities must map benchmark names to a polarity", parameter="polarities"
        )
    overrides: dict[str, Polarity] = {}
    for name, raw in value.items():
        try:
            overrides[str(name)] = parse_polarity(raw)
        except ValueError as exc:
            raise InvalidParameter(str(exc), parameter="polarities") from None
    return overrides


def normalize_diff_request(params: Mapping[str, Any]) -> DiffRequest:
    return DiffRequest(
        key_a=ResultKey(
            commit_sha=require_str(params, "commit_a"),
            binary_id=require_str(params, "binary_a"),
            environment_id=require_str(params, "environment_a"),
        ),
        key_b=ResultKey(
            commit_sha=require_str(params, "commit_b"),
            binary_id=require_str(params, "binary_b"),
            environment_id=require_str(params, "environment_b"),
        ),
        benchmark_names=normalize_benchmark_names(params.get("benchmark_names")),
        threshold_percent=normalize_threshold(params.get("threshold_percent")),
        polarities=normalize_polarities(params.get("polarities")),
    )


def normalize_trend_query(
    params: Mapping[str, Any], *, max_limit: int = settings.TREND_MAX_LIMIT
) -> TrendQuery:
    if not isinstance(params, Mapping):
        raise InvalidParameter(f"trend query must be an object, got {params!r}")
    return TrendQuery(
        environment_id=require_str(params, "environment_id"),
        benchmark_name=require_str(params, "benchmark_name"),
        binary_id=optional_str(params, "binary_id"),
        python_version=optional_str(params, "python_version"),
        limit=normalize_limit(
            params.get("limit"), default=settings.TREND_DEFAULT_LIMIT, maximum=max_limit
        ),
    )


def normalize_run_list_query(
    params: Mapping[str, Any], *, max_limit: int = settings.LIST_MAX_LIMIT
) -> RunListQuery:
    return RunListQuery(
        environment_id=require_str(params, "environment_id"),
        binary_id=optional_str(params, "binary_id"),
        python_version=optional_str(params, "python_version"),
        skip=normalize_skip(params.get("skip")),
        limit=normalize_limit(
            params.get("limit"), default=settings.LIST_DEFAULT_LIMIT, maximum=max_limit
        ),
    )


def normalize_result_key(params: Mapping[str, Any]) -> ResultKey:
    return ResultKey(
        commit_sha=require_str(params, "commit_sha"),
        binary_id=require_str(params, "binary_id"),
        environment_id=require_str(params, "environment_id"),
    )


def normalize_catalog_filter(params: Mapping[str, Any]) -> CatalogFilter:
    return CatalogFilter(
        environment_id=optional_str(params, "environment_id"),
        binary_id=optional_str(params, "binary_id"),
        python_version=optional_str(params, "python_version"),
    )


def check_batch(
    trend_queries: Any, *, max_queries: int = settings.BATCH_MAX_QUERIES
) -> list[Any]:
    """Validate the batch envelope only; entries are normalized one by one later."""
    if trend_queries is None:
        return []
    if not isinstance(trend_queries, (list, tuple)):
        raise InvalidParameter("trend_queries must be a list", parameter="trend_queries")
    if len(trend_queries) > max_queries:
        raise BatchTooLarge(len(trend_queries), max_queries)
    return list(trend_queries)
