from typing import Protocol, runtime_checkable

from ..types import BenchmarkMeasurement, CatalogFilter, ResultKey, ResultKeyFilter


@runtime_checkable
class ResultRepository(Protocol):
    """Read-only query surface over stored benchmark measurements.

    Implementations raise:
        ResultNotFoundError: from get_measurements when the key was never ingested.
        UnknownReferenceError: when a filter names an unknown environment/binary id.
        RepositoryUnavailableError: on any transient failure.
    """

    async def get_measurements(self, key: ResultKey) -> list[BenchmarkMeasurement]: ...

    async def list_result_keys(
        self, query_filter: ResultKeyFilter, limit: int
    ) -> list[ResultKey]:
        """Return matching keys ordered newest commit first, at most ``limit`` of them."""
        ...

    async def list_environments(self, binary_id: str | None = None) -> list[str]:
        """Sorted environment ids, optionally only those with runs of ``binary_id``."""
        ...

    async def list_binaries(self) -> list[str]: ...

    async def list_python_versions(self) -> list[str]:
        """Distinct Python versions seen in any measurement, oldest first."""
        ...

    async def search_benchmark_names(self, catalog_filter: CatalogFilter) -> list[str]:
        """Sorted distinct benchmark names across every run matching the filter."""
        ...


def python_version_matches(version: str, wanted: str | None) -> bool:
    """Exact match, or dotted prefix match ("3.13" matches "3.13.2")."""
    if not wanted:
        return True
    return version == wanted or version.startswith(f"{wanted}.")


def python_version_sort_key(version: str) -> tuple[tuple[int, int | str], ...]:
    """Numeric ordering of dotted versions; "3.10.0" sorts after "3.9.1"."""
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in version.split("."))
