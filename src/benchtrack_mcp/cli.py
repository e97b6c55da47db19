"""Command line entry points for benchmark comparisons and trends.

Commands:
    - diff: Compare two benchmark runs
    - trend: Show one benchmark over recent commits
    - batch: Run a JSON file of trend queries
    - runs: List runs of an environment
    - names: List benchmark names of one run
    - environments, binaries, python-versions: List valid filter values
    - benchmarks: List benchmark names across runs
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from dotenv import load_dotenv

from .config import BenchtrackConfig
from .engine import BenchmarkEngine, EngineError
from .repository import build_repository
from .types import DiffRow

T = TypeVar("T")


def _build_config(snapshot: str | None, url: str | None) -> BenchtrackConfig:
    if snapshot and url:
        raise click.UsageError("--snapshot and --url are mutually exclusive.")
    if snapshot:
        path = Path(snapshot)
        if not path.is_file():
            raise click.BadParameter(f"file not found: {snapshot}", param_hint="--snapshot")
        return BenchtrackConfig(snapshot_path=str(path.resolve()))
    if url:
        return BenchtrackConfig(repository_url=url.rstrip("/"))
    try:
        return BenchtrackConfig.from_env()
    except RuntimeError as exc:
        raise click.UsageError(str(exc)) from exc


def _run(ctx: click.Context, call: Callable[[BenchmarkEngine], Awaitable[T]]) -> T:
    config = _build_config(ctx.obj["snapshot"], ctx.obj["url"])
    engine = BenchmarkEngine(config, build_repository(config))
    try:
        return asyncio.run(call(engine))
    except EngineError as exc:
        click.echo(f"Error: {exc.error_code}: {exc.message}", err=True)
        raise SystemExit(1) from exc


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _format_value(value: float | None, unit: str = "") -> str:
    if value is None:
        return "-"
    return f"{value:.6g} {unit}" if unit else f"{value:.6g}"


def _format_pct(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:+.1f}%"


def _generate_markdown_diff(rows: list[DiffRow]) -> str:
    lines = ["| Benchmark | A | B | Delta | Delta % | Direction |"]
    lines.append("|-----------|---|---|-------|---------|-----------|")
    for row in rows:
        lines.append(
            f"| {row.benchmark_name} | "
            f"{_format_value(row.value_a, row.unit)} | "
            f"{_format_value(row.value_b, row.unit)} | "
            f"{_format_value(row.delta_absolute)} | "
            f"{_format_pct(row.delta_percent)} | "
            f"{row.direction.value} |"
        )
    return "\n".join(lines)


@click.group()
@click.option("--snapshot", default=None, help="Snapshot file (JSON/YAML) to read results from")
@click.option("--url", default=None, help="Base URL of the results service")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, snapshot: str | None, url: str | None, verbose: bool) -> None:
    """Compare benchmark results and inspect performance trends."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["snapshot"] = snapshot
    ctx.obj["url"] = url


@cli.command()
@click.argument("commit_a")
@click.argument("binary_a")
@click.argument("environment_a")
@click.argument("commit_b")
@click.argument("binary_b")
@click.argument("environment_b")
@click.option(
    "--benchmark",
    "benchmark_names",
    multiple=True,
    help="Only compare this benchmark (repeatable)",
)
@click.option("--threshold", type=float, default=None, help="Significance threshold in percent")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["markdown", "json"]),
    default="markdown",
    show_default=True,
)
@click.pass_context
def diff(
    ctx: click.Context,
    commit_a: str,
    binary_a: str,
    environment_a: str,
    commit_b: str,
    binary_b: str,
    environment_b: str,
    benchmark_names: tuple[str, ...],
    threshold: float | None,
    output_format: str,
) -> None:
    """Compare run A (baseline) against run B."""
    params = {
        "commit_a": commit_a,
        "binary_a": binary_a,
        "environment_a": environment_a,
        "commit_b": commit_b,
        "binary_b": binary_b,
        "environment_b": environment_b,
        "benchmark_names": list(benchmark_names) or None,
        "threshold_percent": threshold,
    }
    rows = _run(ctx, lambda engine: engine.diff(params))
    if output_format == "json":
        _echo_json({"rows": [r.to_dict() for r in rows]})
    else:
        click.echo(_generate_markdown_diff(rows))


@cli.command()
@click.argument("environment_id")
@click.argument("benchmark_name")
@click.option("--binary", "binary_id", default=None, help="Restrict to one binary")
@click.option("--python-version", default=None, help="Restrict to a Python version (prefix)")
@click.option("--limit", default=None, type=int, help="Number of most recent commits (default 50)")
@click.pass_context
def trend(
    ctx: click.Context,
    environment_id: str,
    benchmark_name: str,
    binary_id: str | None,
    python_version: str | None,
    limit: int | None,
) -> None:
    """Show BENCHMARK_NAME over the most recent commits, oldest first."""
    params = {
        "environment_id": environment_id,
        "benchmark_name": benchmark_name,
        "binary_id": binary_id,
        "python_version": python_version,
        "limit": limit,
    }
    points = _run(ctx, lambda engine: engine.trend(params))
    _echo_json({"points": [p.to_dict() for p in points]})


@cli.command()
@click.argument("queries_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def batch(ctx: click.Context, queries_file: str) -> None:
    """Run the trend queries listed in QUERIES_FILE (a JSON list)."""
    with open(queries_file, encoding="utf-8") as f:
        try:
            queries = json.load(f)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"invalid JSON: {exc}", param_hint="QUERIES_FILE") from exc
    response = _run(ctx, lambda engine: engine.trends_batch(queries))
    _echo_json(response.to_dict())


@cli.command()
@click.argument("environment_id")
@click.option("--binary", "binary_id", default=None, help="Restrict to one binary")
@click.option("--python-version", default=None, help="Restrict to a Python version (prefix)")
@click.option("--skip", default=0, type=int, show_default=True)
@click.option("--limit", default=None, type=int, help="Page size (default 100)")
@click.pass_context
def runs(
    ctx: click.Context,
    environment_id: str,
    binary_id: str | None,
    python_version: str | None,
    skip: int,
    limit: int | None,
) -> None:
    """List runs of ENVIRONMENT_ID, newest first."""
    params = {
        "environment_id": environment_id,
        "binary_id": binary_id,
        "python_version": python_version,
        "skip": skip,
        "limit": limit,
    }
    keys = _run(ctx, lambda engine: engine.list_runs(params))
    for key in keys:
        click.echo(f"{key.commit_sha}\t{key.binary_id}\t{key.environment_id}")


@cli.command()
@click.argument("commit_sha")
@click.argument("binary_id")
@click.argument("environment_id")
@click.pass_context
def names(ctx: click.Context, commit_sha: str, binary_id: str, environment_id: str) -> None:
    """List benchmark names measured in one run."""
    params = {
        "commit_sha": commit_sha,
        "binary_id": binary_id,
        "environment_id": environment_id,
    }
    for name in _run(ctx, lambda engine: engine.list_benchmark_names(params)):
        click.echo(name)


@cli.command()
@click.option(
    "--binary", "binary_id", default=None, help="Only environments this binary ran on"
)
@click.pass_context
def environments(ctx: click.Context, binary_id: str | None) -> None:
    """List environment ids."""
    params = {"binary_id": binary_id}
    for environment_id in _run(ctx, lambda engine: engine.list_environments(params)):
        click.echo(environment_id)


@cli.command()
@click.pass_context
def binaries(ctx: click.Context) -> None:
    """List binary ids."""
    for binary_id in _run(ctx, lambda engine: engine.list_binaries()):
        click.echo(binary_id)


@cli.command("python-versions")
@click.pass_context
def python_versions(ctx: click.Context) -> None:
    """List Python versions results were recorded with, oldest first."""
    for version in _run(ctx, lambda engine: engine.list_python_versions()):
        click.echo(version)


@cli.command()
@click.option(
    "--environment", "environment_id", default=None, help="Restrict to one environment"
)
@click.option("--binary", "binary_id", default=None, help="Restrict to one binary")
@click.option("--python-version", default=None, help="Restrict to a Python version (prefix)")
@click.pass_context
def benchmarks(
    ctx: click.Context,
    environment_id: str | None,
    binary_id: str | None,
    python_version: str | None,
) -> None:
    """List benchmark names measured in any matching run."""
    params = {
        "environment_id": environment_id,
        "binary_id": binary_id,
        "python_version": python_version,
    }
    for name in _run(ctx, lambda engine: engine.search_benchmark_names(params)):
        click.echo(name)


if __name__ == "__main__":
    cli()
