from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from fastmcp import Client

from benchtrack_mcp.config import BenchtrackConfig
from benchtrack_mcp.repository import InMemoryResultRepository, RepositoryPool
from benchtrack_mcp.server import build_server, check_health


class TestBuildServer:
    """Test build_server function."""

    def test_build_with_explicit_config(self, snapshot_file: Path) -> None:
        """Should build server with provided config."""
        server = build_server(config=BenchtrackConfig(snapshot_path=str(snapshot_file)))
        assert server is not None
        assert server.name == "Benchmark Trend MCP"

    def test_build_from_env(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch, snapshot_file: Path
    ) -> None:
        """Should build server from environment variables."""
        monkeypatch.setenv("BENCHTRACK_SNAPSHOT_PATH", str(snapshot_file))

        server = build_server()
        assert server is not None

    def test_build_fails_without_repository(self, clean_env: None) -> None:
        with pytest.raises(RuntimeError, match="BENCHTRACK_REPOSITORY_URL"):
            build_server()

    @pytest.mark.asyncio
    async def test_snapshot_served_end_to_end(self, snapshot_file: Path) -> None:
        server = build_server(config=BenchtrackConfig(snapshot_path=str(snapshot_file)))

        async with Client(server) as client:
            result = await client.call_tool(
                "benchmark_diff",
                {
                    "commit_a": "aaa111",
                    "binary_a": "default",
                    "environment_a": "linux-x86_64",
                    "commit_b": "bbb222",
                    "binary_b": "default",
                    "environment_b": "linux-x86_64",
                    "benchmark_names": ["nbody"],
                },
            )

            content = result.structured_content
            assert content is not None
            row = content["rows"][0]
            assert row["value_a"] == 100.0
            assert row["value_b"] == 150.0
            assert row["delta_absolute"] == 50.0
            assert row["delta_percent"] == 50.0
            assert row["direction"] == "regressed"

    @pytest.mark.asyncio
    async def test_tool_calls_write_events(
        self, mock_config: BenchtrackConfig, mock_log_path: Path
    ) -> None:
        repository = RepositoryPool(InMemoryResultRepository(environments=["linux"]))
        server = build_server(config=mock_config, repository=repository, run_health_check=False)

        async with Client(server) as client:
            await client.call_tool("list_runs", {"environment_id": "linux"})

        lines = mock_log_path.read_text(encoding="utf-8").splitlines()
        assert any('"kind": "tool_start"' in line for line in lines)
        assert any('"kind": "tool_complete"' in line for line in lines)


class TestCheckHealth:
    """Test startup health checks."""

    def test_snapshot_ok(self, snapshot_file: Path) -> None:
        results = check_health(BenchtrackConfig(snapshot_path=str(snapshot_file)))
        assert results["snapshot"] == "ok"
        assert results["polarity"] == "ok"
        assert results["log_path"] == "ok"

    def test_missing_snapshot(self, tmp_path: Path) -> None:
        config = BenchtrackConfig(snapshot_path=str(tmp_path / "gone.json"))
        with pytest.raises(RuntimeError, match="snapshot file does not exist"):
            check_health(config)

    def test_bad_url(self) -> None:
        with pytest.raises(RuntimeError, match="not an http"):
            check_health(BenchtrackConfig(repository_url="ftp://results.test"))

    def test_no_repository(self) -> None:
        with pytest.raises(RuntimeError, match="no result repository configured"):
            check_health(BenchtrackConfig())

    def test_bad_polarity_file(self, snapshot_file: Path, tmp_path: Path) -> None:
        polarity = tmp_path / "polarity.yaml"
        polarity.write_text("default: sideways\n", encoding="utf-8")
        config = BenchtrackConfig(snapshot_path=str(snapshot_file), polarity_path=str(polarity))
        with pytest.raises(RuntimeError, match="cannot load polarity file"):
            check_health(config)

    def test_ping(self) -> None:
        response = MagicMock()
        response.status_code = 200
        mock_client = MagicMock()
        mock_client.__enter__.return_value = mock_client
        mock_client.head.return_value = response

        with patch("benchtrack_mcp.server.httpx.Client", return_value=mock_client):
            results = check_health(
                BenchtrackConfig(repository_url="http://results.test"), ping_repository=True
            )
        assert results["repository_ping"] == "ok"

    def test_ping_failure(self) -> None:
        mock_client = MagicMock()
        mock_client.__enter__.return_value = mock_client
        mock_client.head.side_effect = httpx.ConnectError("refused")

        with patch("benchtrack_mcp.server.httpx.Client", return_value=mock_client):
            with pytest.raises(RuntimeError, match="repository ping failed"):
                check_health(
                    BenchtrackConfig(repository_url="http://results.test"), ping_repository=True
                )
