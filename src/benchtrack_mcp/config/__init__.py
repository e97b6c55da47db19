"""Configuration module for benchtrack-mcp."""

from .settings import (
    BATCH_MAX_QUERIES,
    DEFAULT_POLARITY_PATH,
    LIST_DEFAULT_LIMIT,
    LIST_MAX_LIMIT,
    LOG_DIR,
    LOG_PATH,
    MAX_LOG_SIZE_BYTES,
    REQUEST_TIMEOUT_SECONDS,
    SIGNIFICANCE_THRESHOLD_PERCENT,
    TREND_DEFAULT_LIMIT,
    TREND_MAX_LIMIT,
    BenchtrackConfig,
)

__all__ = [
    "BATCH_MAX_QUERIES",
    "DEFAULT_POLARITY_PATH",
    "LIST_DEFAULT_LIMIT",
    "LIST_MAX_LIMIT",
    "LOG_DIR",
    "LOG_PATH",
    "MAX_LOG_SIZE_BYTES",
    "REQUEST_TIMEOUT_SECONDS",
    "SIGNIFICANCE_THRESHOLD_PERCENT",
    "TREND_DEFAULT_LIMIT",
    "TREND_MAX_LIMIT",
    "BenchtrackConfig",
]
