import logging
import os
from pathlib import Path
from urllib.parse import urlparse

import httpx
from dotenv import load_dotenv
from fastmcp import FastMCP

from .config import BenchtrackConfig, settings
from .engine import BenchmarkEngine, PolarityTable
from .middleware import ToolTracingMiddleware
from .repository import RepositoryPool, build_repository
from .tools import register_tools

logger = logging.getLogger(__name__)


def check_health(config: BenchtrackConfig, ping_repository: bool = False) -> dict[str, str]:
    """Run startup health checks.

    Args:
        config: benchtrack configuration.
        ping_repository: Whether to send a request to the results service.

    Returns:
        Mapping of check name to "ok".

    Raises:
        RuntimeError: If any check fails.
    """
    results: dict[str, str] = {}
    errors: list[str] = []

    # 1. Repository source
    if config.snapshot_path:
        snapshot = Path(config.snapshot_path)
        if not snapshot.is_file():
            errors.append(f"snapshot file does not exist: {config.snapshot_path}")
        elif not os.access(snapshot, os.R_OK):
            errors.append(f"snapshot file is not readable: {config.snapshot_path}")
        else:
            results["snapshot"] = "ok"
    elif config.repository_url:
        parsed = urlparse(config.repository_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"repository URL is not an http(s) URL: {config.repository_url}")
        else:
            results["repository_url"] = "ok"
    else:
        errors.append("no result repository configured")

    # 2. Polarity rules
    try:
        PolarityTable.from_file(config.polarity_path)
        results["polarity"] = "ok"
    except (OSError, ValueError, KeyError) as exc:
        errors.append(f"cannot load polarity file {config.polarity_path}: {exc}")

    # 3. Event log directory
    log_dir = settings.LOG_PATH.parent
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        if not os.access(log_dir, os.W_OK):
            errors.append(f"log directory is not writable: {log_dir}")
        else:
            results["log_path"] = "ok"
    except OSError as exc:
        errors.append(f"cannot create log directory: {exc}")

    # 4. Optional: ping the results service
    if ping_repository and config.repository_url and "repository_url" in results:
        try:
            with httpx.Client(timeout=5.0) as client:
                resp = client.head(config.repository_url)
            if resp.status_code < 500:
                results["repository_ping"] = "ok"
            else:
                errors.append(f"repository ping failed: status {resp.status_code}")
        except httpx.RequestError as exc:
            errors.append(f"repository ping failed: {exc}")

    if errors:
        raise RuntimeError("; ".join(errors))

    return results


def build_server(
    config: BenchtrackConfig | None = None,
    *,
    repository: RepositoryPool | None = None,
    run_health_check: bool = True,
) -> FastMCP:
    """Create and configure the FastMCP instance.

    Args:
        config: benchtrack configuration; loaded from the environment if None.
        repository: Pre-built repository pool; built from config if None.
        run_health_check: Whether to run health checks at startup.

    Returns:
        FastMCP instance with all tools registered.
    """
    if config is None:
        config = BenchtrackConfig.from_env()

    if run_health_check:
        results = check_health(config, ping_repository=False)
        logger.info("Health check passed: %s", results)

    if repository is None:
        repository = build_repository(config)

    engine = BenchmarkEngine(config, repository)
    mcp = FastMCP("Benchmark Trend MCP")
    mcp.add_middleware(ToolTracingMiddleware())
    register_tools(mcp, engine)
    return mcp


def main() -> None:
    load_dotenv()

    log_level_str = os.getenv("BENCHTRACK_LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    logger.info("Starting Benchmark Trend MCP Server (log_level=%s)", log_level_str)
    server = build_server()
    server.run()


if __name__ == "__main__":
    main()
