import json
import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from ..config import settings
from ..types import BenchmarkMeasurement, CatalogFilter, ResultKey, ResultKeyFilter
from .base import python_version_sort_key
from .errors import ResultNotFoundError, RepositoryUnavailableError, UnknownReferenceError

logger = logging.getLogger(__name__)

_UNKNOWN_REFERENCE_CODES = {
    "unknown_environment": "environment",
    "unknown_binary": "binary",
}


def _parse_error_body(response_text: str) -> tuple[str, str]:
    """Extract (code, message) from a results-service error body."""
    code = ""
    message = response_text
    try:
        data = json.loads(response_text)
        if isinstance(data, dict):
            code = str(data.get("code", data.get("error", "")) or "")
            detail = data.get("message", data.get("detail", response_text))
            message = detail if isinstance(detail, str) else json.dumps(detail)
    except (json.JSONDecodeError, TypeError):
        pass
    return code, message


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        # 2xx with a non-JSON body is a service-side fault, not a caller error
        raise RepositoryUnavailableError(
            "Results service returned non-JSON response", status_code=resp.status_code
        ) from exc
    if not isinstance(data, dict):
        raise RepositoryUnavailableError(
            "Results service returned unexpected payload", status_code=resp.status_code
        )
    return data


def _string_list(resp: httpx.Response, field: str) -> list[str]:
    values = _json_body(resp).get(field)
    if values is None:
        return []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise RepositoryUnavailableError(
            f"Malformed {field} payload: expected a list of strings",
            status_code=resp.status_code,
        )
    return values


class HttpResultRepository:
    """Result repository backed by a read-only REST results service.

    Retries are left to the caller; every transport or server failure is
    raised as RepositoryUnavailableError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout: float = settings.REPOSITORY_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        url = f"{self._base_url}{path}"
        started_at = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(url, params=params, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("Results service timeout after %.1fs: GET %s", self._timeout, path)
            raise RepositoryUnavailableError(
                f"Request timed out after {self._timeout}s"
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Results service network error: GET %s: %s", path, exc)
            raise RepositoryUnavailableError(f"Network error: {exc}") from exc

        latency_ms = int((time.monotonic() - started_at) * 1000)
        logger.debug(
            "Results service GET %s (status=%d, latency=%dms)", path, resp.status_code, latency_ms
        )
        return resp

    async def get_measurements(self, key: ResultKey) -> list[BenchmarkMeasurement]:
        path = "/results/{}/{}/{}".format(
            quote(key.commit_sha, safe=""),
            quote(key.binary_id, safe=""),
            quote(key.environment_id, safe=""),
        )
        resp = await self._get(path)
        if resp.status_code == 404:
            raise ResultNotFoundError(key)
        self._raise_for_status(resp)

        data = _json_body(resp)
        try:
            measurements = [
                BenchmarkMeasurement.from_dict(m) for m in data.get("measurements") or []
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryUnavailableError(
                f"Malformed measurement payload: {exc}", status_code=resp.status_code
            ) from exc

        seen: set[str] = set()
        for m in measurements:
            if m.benchmark_name in seen:
                raise RepositoryUnavailableError(
                    "Malformed measurement payload: "
                    f"duplicate benchmark name {m.benchmark_name!r}",
                    status_code=resp.status_code,
                )
            seen.add(m.benchmark_name)
        return measurements

    async def list_result_keys(
        self, query_filter: ResultKeyFilter, limit: int
    ) -> list[ResultKey]:
        params: dict[str, Any] = {
            "environment_id": query_filter.environment_id,
            "order_by": "commit_desc",
            "limit": limit,
        }
        if query_filter.binary_id is not None:
            params["binary_id"] = query_filter.binary_id
        if query_filter.benchmark_name is not None:
            params["benchmark_name"] = query_filter.benchmark_name
        if query_filter.python_version:
            params["python_version"] = query_filter.python_version

        resp = await self._get("/result-keys", params=params)
        self._raise_for_listing(
            resp,
            "Result key listing",
            environment_id=query_filter.environment_id,
            binary_id=query_filter.binary_id,
        )

        data = _json_body(resp)
        try:
            keys = [ResultKey.from_dict(k) for k in data.get("result_keys") or []]
        except (KeyError, TypeError) as exc:
            raise RepositoryUnavailableError(
                f"Malformed result key payload: {exc}", status_code=resp.status_code
            ) from exc
        return keys[:limit]

    async def list_environments(self, binary_id: str | None = None) -> list[str]:
        if binary_id is None:
            resp = await self._get("/environments")
        else:
            resp = await self._get(f"/binaries/{quote(binary_id, safe='')}/environments")
        self._raise_for_listing(resp, "Environment listing", binary_id=binary_id)
        return sorted(_string_list(resp, "environments"))

    async def list_binaries(self) -> list[str]:
        resp = await self._get("/binaries")
        self._raise_for_status(resp)
        return sorted(_string_list(resp, "binaries"))

    async def list_python_versions(self) -> list[str]:
        resp = await self._get("/python-versions")
        self._raise_for_status(resp)
        return sorted(set(_string_list(resp, "python_versions")), key=python_version_sort_key)

    async def search_benchmark_names(self, catalog_filter: CatalogFilter) -> list[str]:
        resp = await self._get("/benchmark-names", params=catalog_filter.to_params())
        self._raise_for_listing(
            resp,
            "Benchmark name listing",
            environment_id=catalog_filter.environment_id,
            binary_id=catalog_filter.binary_id,
        )
        return sorted(set(_string_list(resp, "benchmark_names")))

    @classmethod
    def _raise_for_listing(
        cls,
        resp: httpx.Response,
        what: str,
        *,
        environment_id: str | None = None,
        binary_id: str | None = None,
    ) -> None:
        """Map a 404 naming an unknown environment/binary to UnknownReferenceError."""
        if resp.status_code == 404:
            code, message = _parse_error_body(resp.text)
            kind = _UNKNOWN_REFERENCE_CODES.get(code.lower())
            if kind == "binary" and binary_id is not None:
                raise UnknownReferenceError("binary", binary_id)
            if kind == "environment" and environment_id is not None:
                raise UnknownReferenceError("environment", environment_id)
            raise RepositoryUnavailableError(f"{what} not found: {message}", status_code=404)
        cls._raise_for_status(resp)

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        code, message = _parse_error_body(resp.text)
        logger.error(
            "Results service error (status=%d, code=%s): %s", resp.status_code, code, message
        )
        raise RepositoryUnavailableError(
            f"Results service error {resp.status_code}: {message}", status_code=resp.status_code
        )
