"""Local JSONL event log of tool calls.

Enabled with MCP_LOGGING=safe|full. In safe mode free-text values are
replaced by their length and a short hash, so a log can be attached to a
bug report without leaking service responses or credentials.
"""

import hashlib
import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..config import settings
from .context import current_call, get_trace_id

logger = logging.getLogger(__name__)

KEEP_ROTATED = 5
_write_lock = threading.Lock()

_FREE_TEXT_FIELDS = frozenset({"api_token", "authorization", "message"})


def _fingerprint(value: str) -> str:
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"[REDACTED len={len(value)} sha256={digest}]"


def _scrub(record: dict[str, Any]) -> dict[str, Any]:
    if not settings.MCP_LOG_REDACT:
        return record
    scrubbed = dict(record)
    for key, value in record.items():
        if isinstance(value, str) and key.lower() in _FREE_TEXT_FIELDS:
            scrubbed[key] = _fingerprint(value)
    return scrubbed


def redact_value(value: str, max_len: int = 200) -> str:
    """Fingerprint ``value`` in safe mode, otherwise cut it to ``max_len`` characters."""
    if not value:
        return value
    if settings.MCP_LOG_REDACT:
        return _fingerprint(value)
    if len(value) <= max_len:
        return value
    marker = f"... [truncated, len={len(value)}]"
    return value[: max(max_len - len(marker), 0)] + marker


def _rotate(path: Path) -> None:
    # benchtrack.log -> .1 -> .2 ... ; the file past KEEP_ROTATED is overwritten.
    for n in range(KEEP_ROTATED - 1, 0, -1):
        older = path.with_name(f"{path.name}.{n}")
        if older.exists():
            older.replace(path.with_name(f"{path.name}.{n + 1}"))
    path.replace(path.with_name(f"{path.name}.1"))
    logger.debug("Rotated event log %s", path)


def log_event(event: dict[str, Any]) -> None:
    """Append one event to the log, stamped with time, trace id, tool and level.

    Write failures are reported through the module logger only.
    """
    if not settings.MCP_LOGGING:
        return

    kind = str(event.get("kind", ""))
    record: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "trace_id": get_trace_id(),
        "level": "error" if kind.endswith("error") else "info",
    }
    call = current_call()
    if call is not None and call.tool:
        record["tool"] = call.tool
    record.update(event)
    line = json.dumps(_scrub(record), ensure_ascii=False, default=str)

    path = settings.LOG_PATH
    try:
        with _write_lock:
            if path.is_dir():
                logger.warning("Event log path %s is a directory, skipping write", path)
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists() and path.stat().st_size > settings.MAX_LOG_SIZE_BYTES:
                _rotate(path)
            with path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
    except OSError as exc:
        logger.warning("Failed to write event log: %s", exc)


def log_tool_start(tool: str, params: dict[str, Any] | None = None) -> None:
    log_event(
        {
            "kind": "tool_start",
            "level": "debug",
            "tool": tool,
            "params_keys": sorted(params) if params else [],
        }
    )


def log_tool_complete(
    tool: str, latency_ms: float, result_summary: dict[str, Any] | None = None
) -> None:
    event: dict[str, Any] = {"kind": "tool_complete", "tool": tool, "latency_ms": int(latency_ms)}
    event.update(result_summary or {})
    log_event(event)


def log_tool_error(
    tool: str,
    latency_ms: float,
    error: str,
    error_type: str | None = None,
    *,
    traceback_str: str | None = None,
) -> None:
    event: dict[str, Any] = {
        "kind": "tool_error",
        "tool": tool,
        "latency_ms": int(latency_ms),
        "error": redact_value(error, 500),
        "error_type": error_type or "Exception",
    }
    if traceback_str:
        event["traceback"] = redact_value(traceback_str, 8000)
    log_event(event)
