import logging
import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_state_dir

from .compat import env_float, env_int

logger = logging.getLogger(__name__)

__all__ = [
    "BATCH_MAX_QUERIES",
    "LIST_DEFAULT_LIMIT",
    "LIST_MAX_LIMIT",
    "TREND_DEFAULT_LIMIT",
    "TREND_MAX_LIMIT",
    "BenchtrackConfig",
]

# Result repository timeouts
REPOSITORY_TIMEOUT_SECONDS = env_float("BENCHTRACK_REPOSITORY_TIMEOUT", 10.0)

# Concurrency limiter in front of the repository
MAX_CONCURRENCY = env_int("BENCHTRACK_MAX_CONCURRENCY", 8)
MAX_CONCURRENCY_CAP = 64
POOL_ACQUIRE_TIMEOUT_SECONDS: float | None = None

# Overall deadline for one tool call (diff, trend or whole batch)
REQUEST_TIMEOUT_SECONDS = env_float("BENCHTRACK_REQUEST_TIMEOUT", 30.0)

# Pagination and batch bounds
LIST_DEFAULT_LIMIT = 100
LIST_MAX_LIMIT = env_int("BENCHTRACK_LIST_MAX_LIMIT", 1000)
TREND_DEFAULT_LIMIT = 50
TREND_MAX_LIMIT = env_int("BENCHTRACK_TREND_MAX_LIMIT", 500)
BATCH_MAX_QUERIES = env_int("BENCHTRACK_BATCH_MAX_QUERIES", 50)

# Diff significance threshold, in percent of the baseline value
SIGNIFICANCE_THRESHOLD_PERCENT = env_float("BENCHTRACK_SIGNIFICANCE_THRESHOLD", 5.0)

DEFAULT_POLARITY_PATH = Path(__file__).parent / "polarity.yaml"
POLARITY_PATH = Path(os.getenv("BENCHTRACK_POLARITY_FILE", "").strip() or DEFAULT_POLARITY_PATH)

# Local file logging mode (default: off)
# Options: off (disabled), safe (enabled with redaction), full (enabled without redaction)
_MCP_LOGGING_RAW = os.getenv("MCP_LOGGING", "off").strip().lower()
MCP_LOGGING = _MCP_LOGGING_RAW in ("safe", "full", "1", "true", "yes")
MCP_LOG_REDACT = _MCP_LOGGING_RAW != "full"

# Logging - Cross-platform state directory:
# - Linux: ~/.local/state/benchtrack
# - macOS: ~/Library/Application Support/benchtrack
# - Windows: %LOCALAPPDATA%\benchtrack
# Note: Directory is created lazily when the first event is written
LOG_DIR = Path(user_state_dir("benchtrack", appauthor=False))
LOG_PATH = LOG_DIR / "benchtrack.log"
MAX_LOG_SIZE_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class BenchtrackConfig:
    repository_url: str | None = None
    snapshot_path: str | None = None
    api_token: str | None = None
    repository_timeout: float = REPOSITORY_TIMEOUT_SECONDS
    max_concurrency: int = MAX_CONCURRENCY
    pool_acquire_timeout: float | None = POOL_ACQUIRE_TIMEOUT_SECONDS
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    batch_max_queries: int = BATCH_MAX_QUERIES
    trend_max_limit: int = TREND_MAX_LIMIT
    list_max_limit: int = LIST_MAX_LIMIT
    significance_threshold: float = SIGNIFICANCE_THRESHOLD_PERCENT
    polarity_path: str = str(POLARITY_PATH)

    @classmethod
    def from_env(cls) -> "BenchtrackConfig":
        """Build the configuration from BENCHTRACK_* variables.

        Variables are read at call time so values loaded from a .env file
        after import are honored.
        """
        repository_url = os.getenv("BENCHTRACK_REPOSITORY_URL", "").strip().rstrip("/") or None
        snapshot_path = os.getenv("BENCHTRACK_SNAPSHOT_PATH", "").strip() or None

        if repository_url and snapshot_path:
            raise RuntimeError(
                "BENCHTRACK_REPOSITORY_URL and BENCHTRACK_SNAPSHOT_PATH are mutually exclusive. "
                "Set only one of them."
            )
        if not repository_url and not snapshot_path:
            raise RuntimeError(
                "A result repository is required: set BENCHTRACK_REPOSITORY_URL "
                "or BENCHTRACK_SNAPSHOT_PATH."
            )
        if snapshot_path:
            if not os.path.isfile(snapshot_path):
                raise RuntimeError(f"BENCHTRACK_SNAPSHOT_PATH does not exist: {snapshot_path}")
            snapshot_path = str(Path(snapshot_path).resolve())
            logger.debug("Using snapshot repository: %s", snapshot_path)

        max_concurrency = env_int("BENCHTRACK_MAX_CONCURRENCY", MAX_CONCURRENCY)
        if not 1 <= max_concurrency <= MAX_CONCURRENCY_CAP:
            logger.warning(
                "BENCHTRACK_MAX_CONCURRENCY=%d out of range, clamping to [1, %d]",
                max_concurrency,
                MAX_CONCURRENCY_CAP,
            )
            max_concurrency = min(max(max_concurrency, 1), MAX_CONCURRENCY_CAP)

        acquire_raw = os.getenv("BENCHTRACK_POOL_ACQUIRE_TIMEOUT", "").strip()
        pool_acquire_timeout = (
            env_float("BENCHTRACK_POOL_ACQUIRE_TIMEOUT", 0.0) if acquire_raw else None
        )
        polarity_path = os.getenv("BENCHTRACK_POLARITY_FILE", "").strip() or str(
            DEFAULT_POLARITY_PATH
        )

        return cls(
            repository_url=repository_url,
            snapshot_path=snapshot_path,
            api_token=os.getenv("BENCHTRACK_API_TOKEN") or None,
            repository_timeout=env_float("BENCHTRACK_REPOSITORY_TIMEOUT", 10.0),
            max_concurrency=max_concurrency,
            pool_acquire_timeout=pool_acquire_timeout or None,
            request_timeout=env_float("BENCHTRACK_REQUEST_TIMEOUT", 30.0),
            batch_max_queries=env_int("BENCHTRACK_BATCH_MAX_QUERIES", 50),
            trend_max_limit=env_int("BENCHTRACK_TREND_MAX_LIMIT", 500),
            list_max_limit=env_int("BENCHTRACK_LIST_MAX_LIMIT", 1000),
            significance_threshold=env_float("BENCHTRACK_SIGNIFICANCE_THRESHOLD", 5.0),
            polarity_path=polarity_path,
        )
