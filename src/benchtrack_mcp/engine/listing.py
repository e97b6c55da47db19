from ..repository import ResultRepository
from ..types import CatalogFilter, ResultKey, ResultKeyFilter, RunListQuery
from .errors import translate_repository_errors


async def list_runs(repository: ResultRepository, query: RunListQuery) -> list[ResultKey]:
    """Page through the runs of one environment, newest first."""
    query_filter = ResultKeyFilter(
        environment_id=query.environment_id,
        binary_id=query.binary_id,
        python_version=query.python_version,
    )
    with translate_repository_errors():
        keys = await repository.list_result_keys(query_filter, query.skip + query.limit)
    return keys[query.skip : query.skip + query.limit]


async def list_benchmark_names(repository: ResultRepository, key: ResultKey) -> list[str]:
    with translate_repository_errors():
        measurements = await repository.get_measurements(key)
    return sorted(m.benchmark_name for m in measurements)


async def list_environments(
    repository: ResultRepository, binary_id: str | None = None
) -> list[str]:
    with translate_repository_errors():
        return await repository.list_environments(binary_id)


async def list_binaries(repository: ResultRepository) -> list[str]:
    with translate_repository_errors():
        return await repository.list_binaries()


async def list_python_versions(repository: ResultRepository) -> list[str]:
    with translate_repository_errors():
        return await repository.list_python_versions()


async def search_benchmark_names(
    repository: ResultRepository, catalog_filter: CatalogFilter
) -> list[str]:
    """Benchmark names across all runs, narrowed by environment, binary and Python version."""
    with translate_repository_errors():
        return await repository.search_benchmark_names(catalog_filter)
