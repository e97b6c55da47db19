from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Polarity(str, Enum):
    """Which direction of change counts as an improvement for a benchmark."""

    LOWER_IS_BETTER = "lower_is_better"
    HIGHER_IS_BETTER = "higher_is_better"


class Direction(str, Enum):
    IMPROVED = "improved"
    REGRESSED = "regressed"
    UNCHANGED = "unchanged"
    NEW = "new"
    REMOVED = "removed"


class EntryStatus(str, Enum):
    OK = "ok"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ResultKey:
    """One benchmark-suite run: a commit built as a binary, run on an environment."""

    commit_sha: str
    binary_id: str
    environment_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "commit_sha": self.commit_sha,
            "binary_id": self.binary_id,
            "environment_id": self.environment_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResultKey":
        return cls(
            commit_sha=str(data["commit_sha"]),
            binary_id=str(data["binary_id"]),
            environment_id=str(data["environment_id"]),
        )


@dataclass(frozen=True)
class BenchmarkMeasurement:
    benchmark_name: str
    value: float
    unit: str = ""
    python_version: str = ""
    timestamp: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BenchmarkMeasurement":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, datetime):
            timestamp = timestamp.isoformat()
        return cls(
            benchmark_name=str(data["benchmark_name"]),
            value=float(data["value"]),
            unit=str(data.get("unit") or ""),
            python_version=str(data.get("python_version") or ""),
            timestamp=str(timestamp) if timestamp is not None else None,
        )


@dataclass(frozen=True)
class ResultKeyFilter:
    environment_id: str
    benchmark_name: str | None = None
    binary_id: str | None = None
    python_version: str | None = None


@dataclass(frozen=True)
class CatalogFilter:
    """Optional narrowing of the benchmark-name catalog; all fields unset means everything."""

    environment_id: str | None = None
    binary_id: str | None = None
    python_version: str | None = None

    def to_params(self) -> dict[str, str]:
        params = {
            "environment_id": self.environment_id,
            "binary_id": self.binary_id,
            "python_version": self.python_version,
        }
        return {k: v for k, v in params.items() if v}


@dataclass(frozen=True)
class DiffRow:
    benchmark_name: str
    value_a: float | None
    value_b: float | None
    delta_absolute: float | None
    delta_percent: float | None
    direction: Direction
    unit: str = ""
    polarity: Polarity = Polarity.LOWER_IS_BETTER

    def to_dict(self) -> dict[str, Any]:
        return {
            "benchmark_name": self.benchmark_name,
            "value_a": self.value_a,
            "value_b": self.value_b,
            "delta_absolute": self.delta_absolute,
            "delta_percent": self.delta_percent,
            "direction": self.direction.value,
            "unit": self.unit,
            "polarity": self.polarity.value,
        }


@dataclass(frozen=True)
class TrendPoint:
    commit_sha: str
    timestamp: str | None
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"commit_sha": self.commit_sha, "timestamp": self.timestamp, "value": self.value}


@dataclass(frozen=True)
class DiffRequest:
    key_a: ResultKey
    key_b: ResultKey
    benchmark_names: tuple[str, ...] = ()
    threshold_percent: float | None = None
    polarities: dict[str, Polarity] = field(default_factory=dict)


@dataclass(frozen=True)
class TrendQuery:
    environment_id: str
    benchmark_name: str
    binary_id: str | None = None
    python_version: str | None = None
    limit: int = 50

    def to_filter(self) -> ResultKeyFilter:
        return ResultKeyFilter(
            environment_id=self.environment_id,
            benchmark_name=self.benchmark_name,
            binary_id=self.binary_id,
            python_version=self.python_version,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "environment_id": self.environment_id,
            "benchmark_name": self.benchmark_name,
            "binary_id": self.binary_id,
            "python_version": self.python_version,
            "limit": self.limit,
        }


@dataclass(frozen=True)
class RunListQuery:
    environment_id: str
    binary_id: str | None = None
    python_version: str | None = None
    skip: int = 0
    limit: int = 100


@dataclass
class BatchEntry:
    """Outcome of one batch slot. ``query`` echoes the raw request entry."""

    index: int
    query: dict[str, Any]
    status: EntryStatus
    points: list[TrendPoint] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "index": self.index,
            "query": self.query,
            "status": self.status.value,
        }
        if self.status is EntryStatus.OK:
            d["points"] = [p.to_dict() for p in self.points]
        else:
            d["error"] = self.error
            d["error_code"] = self.error_code
        return d


@dataclass
class BatchTrendResponse:
    results: list[BatchEntry]

    @property
    def ok_count(self) -> int:
        return sum(1 for r in self.results if r.status is EntryStatus.OK)

    def to_dict(self) -> dict[str, Any]:
        return {"results": [r.to_dict() for r in self.results]}
