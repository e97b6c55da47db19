import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import yaml

from ..types import BenchmarkMeasurement, CatalogFilter, ResultKey, ResultKeyFilter
from .base import python_version_matches, python_version_sort_key
from .errors import ResultNotFoundError, UnknownReferenceError

logger = logging.getLogger(__name__)


class InMemoryResultRepository:
    """Result repository held in process memory.

    Runs are kept in ingestion order; the most recently added run is the
    newest commit. Environments and binaries are known either because a run
    references them or because they were declared explicitly.
    """

    def __init__(
        self,
        *,
        environments: Iterable[str] = (),
        binaries: Iterable[str] = (),
    ) -> None:
        self._runs: dict[ResultKey, list[BenchmarkMeasurement]] = {}
        self._environments: set[str] = set(environments)
        self._binaries: set[str] = set(binaries)

    def __len__(self) -> int:
        return len(self._runs)

    def add_run(self, key: ResultKey, measurements: Sequence[BenchmarkMeasurement]) -> None:
        names = [m.benchmark_name for m in measurements]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate benchmark names in run {key}")
        if key in self._runs:
            raise ValueError(f"Run already ingested: {key}")
        self._runs[key] = list(measurements)
        self._environments.add(key.environment_id)
        self._binaries.add(key.binary_id)

    async def get_measurements(self, key: ResultKey) -> list[BenchmarkMeasurement]:
        try:
            return list(self._runs[key])
        except KeyError:
            raise ResultNotFoundError(key) from None

    async def list_result_keys(
        self, query_filter: ResultKeyFilter, limit: int
    ) -> list[ResultKey]:
        self._check_references(query_filter.environment_id, query_filter.binary_id)

        matches: list[ResultKey] = []
        for key in reversed(self._runs):
            if len(matches) >= limit:
                break
            if key.environment_id != query_filter.environment_id:
                continue
            if query_filter.binary_id is not None and key.binary_id != query_filter.binary_id:
                continue
            if self._run_matches(self._runs[key], query_filter):
                matches.append(key)
        return matches

    @staticmethod
    def _run_matches(
        measurements: list[BenchmarkMeasurement], query_filter: ResultKeyFilter
    ) -> bool:
        candidates = measurements
        if query_filter.benchmark_name is not None:
            candidates = [m for m in measurements if m.benchmark_name == query_filter.benchmark_name]
            if not candidates:
                return False
        if not query_filter.python_version:
            return True
        return any(
            python_version_matches(m.python_version, query_filter.python_version)
            for m in candidates
        )

    def _check_references(self, environment_id: str | None, binary_id: str | None) -> None:
        if environment_id is not None and environment_id not in self._environments:
            raise UnknownReferenceError("environment", environment_id)
        if binary_id is not None and binary_id not in self._binaries:
            raise UnknownReferenceError("binary", binary_id)

    async def list_environments(self, binary_id: str | None = None) -> list[str]:
        if binary_id is None:
            return sorted(self._environments)
        self._check_references(None, binary_id)
        return sorted({key.environment_id for key in self._runs if key.binary_id == binary_id})

    async def list_binaries(self) -> list[str]:
        return sorted(self._binaries)

    async def list_python_versions(self) -> list[str]:
        versions = {
            m.python_version
            for measurements in self._runs.values()
            for m in measurements
            if m.python_version
        }
        return sorted(versions, key=python_version_sort_key)

    async def search_benchmark_names(self, catalog_filter: CatalogFilter) -> list[str]:
        self._check_references(catalog_filter.environment_id, catalog_filter.binary_id)
        names: set[str] = set()
        wanted_env = catalog_filter.environment_id
        wanted_binary = catalog_filter.binary_id
        for key, measurements in self._runs.items():
            if wanted_env and key.environment_id != wanted_env:
                continue
            if wanted_binary and key.binary_id != wanted_binary:
                continue
            names.update(
                m.benchmark_name
                for m in measurements
                if python_version_matches(m.python_version, catalog_filter.python_version)
            )
        return sorted(names)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InMemoryResultRepository":
        repo = cls(
            environments=data.get("environments") or (),
            binaries=data.get("binaries") or (),
        )
        for run in data.get("runs") or []:
            key = ResultKey.from_dict(run)
            measurements = []
            for raw in run.get("measurements") or []:
                merged = {
                    "timestamp": run.get("timestamp"),
                    "python_version": run.get("python_version"),
                    "unit": run.get("unit"),
                    **{k: v for k, v in raw.items() if v is not None},
                }
                measurements.append(BenchmarkMeasurement.from_dict(merged))
            repo.add_run(key, measurements)
        return repo

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryResultRepository":
        """Load a JSON or YAML snapshot file."""
        snapshot = Path(path)
        with snapshot.open(encoding="utf-8") as f:
            if snapshot.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot must be a mapping with a 'runs' list: {snapshot}")
        repo = cls.from_dict(data)
        logger.info("Loaded %d runs from snapshot %s", len(repo), snapshot)
        return repo
