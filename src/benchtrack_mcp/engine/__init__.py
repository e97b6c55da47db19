from .batch import run_trend_batch
from .core import BenchmarkEngine
from .diff import build_diff_rows, classify_change, compute_diff
from .errors import (
    BatchTooLarge,
    Cancelled,
    EngineError,
    InvalidParameter,
    NotFound,
    RepositoryUnavailable,
)
from .listing import (
    list_benchmark_names,
    list_binaries,
    list_environments,
    list_python_versions,
    list_runs,
    search_benchmark_names,
)
from .polarity import PolarityRule, PolarityTable, parse_polarity
from .trends import extract_trend

__all__ = [
    "BatchTooLarge",
    "BenchmarkEngine",
    "Cancelled",
    "EngineError",
    "InvalidParameter",
    "NotFound",
    "PolarityRule",
    "PolarityTable",
    "RepositoryUnavailable",
    "build_diff_rows",
    "classify_change",
    "compute_diff",
    "extract_trend",
    "list_benchmark_names",
    "list_binaries",
    "list_environments",
    "list_python_versions",
    "list_runs",
    "parse_polarity",
    "run_trend_batch",
    "search_benchmark_names",
]
