import json
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from benchtrack_mcp.config import BenchtrackConfig
from benchtrack_mcp.engine import PolarityTable
from benchtrack_mcp.repository import InMemoryResultRepository, RepositoryPool
from benchtrack_mcp.types import BenchmarkMeasurement, ResultKey

ENV = "linux-x86_64"
BINARY = "default"
COMMITS = ["c01", "c02", "c03", "c04", "c05"]


def make_key(commit: str, binary: str = BINARY, environment: str = ENV) -> ResultKey:
    return ResultKey(commit_sha=commit, binary_id=binary, environment_id=environment)


def make_measurement(
    name: str,
    value: float,
    *,
    unit: str = "s",
    python_version: str = "3.12.1",
    timestamp: str | None = None,
) -> BenchmarkMeasurement:
    return BenchmarkMeasurement(
        benchmark_name=name,
        value=value,
        unit=unit,
        python_version=python_version,
        timestamp=timestamp,
    )


@pytest.fixture
def sample_repository() -> InMemoryResultRepository:
    """Five commits on one environment, oldest first, plus a JIT run of the newest commit.

    nbody grows by 0.1 per commit; old_bench only exists in c01 and
    new_bench only in c05.
    """
    repo = InMemoryResultRepository(environments=["macos-arm64"], binaries=["debug"])
    for i, commit in enumerate(COMMITS):
        ts = f"2024-01-0{i + 1}T00:00:00+00:00"
        measurements = [
            make_measurement("nbody", 1.0 + i / 10, timestamp=ts),
            make_measurement("json_dumps", 2.0, timestamp=ts),
            make_measurement("throughput_requests", 100.0 + i, unit="req/s", timestamp=ts),
        ]
        if commit == "c01":
            measurements.append(make_measurement("old_bench", 5.0, timestamp=ts))
        if commit == "c05":
            measurements.append(make_measurement("new_bench", 7.0, timestamp=ts))
        repo.add_run(make_key(commit), measurements)
    repo.add_run(
        make_key("c05", binary="jit"),
        [
            make_measurement(
                "nbody", 0.8, python_version="3.13.0", timestamp="2024-01-05T00:00:00+00:00"
            )
        ],
    )
    return repo


@pytest.fixture
def sample_pool(sample_repository: InMemoryResultRepository) -> RepositoryPool:
    return RepositoryPool(sample_repository, max_concurrency=4)


@pytest.fixture
def polarity_table() -> PolarityTable:
    return PolarityTable.from_dict(
        {
            "default": "lower_is_better",
            "rules": [{"pattern": "*throughput*", "polarity": "higher_is_better"}],
        }
    )


@pytest.fixture
def mock_config() -> BenchtrackConfig:
    return BenchtrackConfig(
        repository_url="http://results.test/api",
        request_timeout=5.0,
    )


@pytest.fixture
def snapshot_data() -> dict[str, Any]:
    return {
        "environments": [ENV],
        "runs": [
            {
                "commit_sha": "aaa111",
                "binary_id": BINARY,
                "environment_id": ENV,
                "timestamp": "2024-02-01T00:00:00+00:00",
                "python_version": "3.12.1",
                "unit": "s",
                "measurements": [
                    {"benchmark_name": "nbody", "value": 100.0},
                    {"benchmark_name": "richards", "value": 50.0},
                ],
            },
            {
                "commit_sha": "bbb222",
                "binary_id": BINARY,
                "environment_id": ENV,
                "timestamp": "2024-02-02T00:00:00+00:00",
                "python_version": "3.12.2",
                "unit": "s",
                "measurements": [
                    {"benchmark_name": "nbody", "value": 150.0},
                    {"benchmark_name": "richards", "value": 50.0},
                    {"benchmark_name": "spectral_norm", "value": 3.0, "unit": "ms"},
                ],
            },
        ],
    }


@pytest.fixture
def snapshot_file(tmp_path: Path, snapshot_data: dict[str, Any]) -> Path:
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(snapshot_data), encoding="utf-8")
    return path


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in [
        "BENCHTRACK_REPOSITORY_URL",
        "BENCHTRACK_SNAPSHOT_PATH",
        "BENCHTRACK_API_TOKEN",
        "BENCHTRACK_MAX_CONCURRENCY",
        "BENCHTRACK_POOL_ACQUIRE_TIMEOUT",
        "BENCHTRACK_REQUEST_TIMEOUT",
        "BENCHTRACK_BATCH_MAX_QUERIES",
        "BENCHTRACK_TREND_MAX_LIMIT",
        "BENCHTRACK_LIST_MAX_LIMIT",
        "BENCHTRACK_SIGNIFICANCE_THRESHOLD",
        "BENCHTRACK_POLARITY_FILE",
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def mock_log_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Auto-mock LOG_PATH and enable MCP_LOGGING for all tests."""
    log_file = tmp_path / "test.log"
    with (
        patch("benchtrack_mcp.config.settings.MCP_LOGGING", True),
        patch("benchtrack_mcp.config.settings.LOG_PATH", log_file),
    ):
        yield log_file
