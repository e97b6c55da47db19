import traceback
from dataclasses import dataclass, field
from typing import Any

from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext

from ..observability import (
    begin_call,
    end_call,
    log_tool_complete,
    log_tool_error,
    log_tool_start,
)


@dataclass(frozen=True)
class ToolOutcome:
    success: bool
    error: str | None = None
    error_type: str | None = None
    summary: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        if not self.success:
            return f"error: {self.error}"
        failed = self.summary.get("failed_entries")
        if failed:
            return f"partial: {self.summary['entries'] - failed}/{self.summary['entries']} ok"
        return "ok"


def _payload(result: Any) -> dict[str, Any] | None:
    """The tool's dict payload, whether raw or wrapped in a fastmcp ToolResult."""
    if isinstance(result, dict):
        return result
    structured = getattr(result, "structured_content", None)
    return structured if isinstance(structured, dict) else None


def classify_tool_result(result: Any) -> ToolOutcome:
    """Classify a tool payload: error envelopes fail, batches report failed entries."""
    payload = _payload(result)
    if payload is None:
        return ToolOutcome(success=True)

    if payload.get("status") == "error":
        return ToolOutcome(
            success=False,
            error=str(payload.get("message") or "Tool returned status=error"),
            error_type=str(payload.get("code") or "ToolError"),
        )

    entries = payload.get("results")
    if isinstance(entries, list):
        failed = sum(1 for e in entries if isinstance(e, dict) and e.get("status") != "ok")
        summary = {"entries": len(entries), "failed_entries": failed}
        if entries and failed == len(entries):
            return ToolOutcome(
                success=False,
                error="All batch entries failed",
                error_type="BatchFailed",
                summary=summary,
            )
        return ToolOutcome(success=True, summary=summary)

    for key in (
        "rows",
        "points",
        "runs",
        "benchmark_names",
        "environments",
        "binaries",
        "python_versions",
    ):
        if isinstance(payload.get(key), list):
            return ToolOutcome(success=True, summary={key: len(payload[key])})
    return ToolOutcome(success=True)


class ToolTracingMiddleware(Middleware):
    """Binds a call context per tool call and records its outcome.

    Each call gets a trace id shared by engine log lines and the JSONL event
    log (MCP_LOGGING=safe|full); a one-line summary is also sent to the
    client through MCP protocol logging.
    """

    async def on_call_tool(
        self,
        context: MiddlewareContext[Any],
        call_next: CallNext[Any, Any],
    ) -> Any:
        tool = getattr(context.message, "name", "unknown")
        call, token = begin_call(tool)
        log_tool_start(tool, getattr(context.message, "arguments", None))

        try:
            result = await call_next(context)
        except Exception as exc:
            outcome = ToolOutcome(
                success=False, error=str(exc) or type(exc).__name__, error_type=type(exc).__name__
            )
            log_tool_error(
                tool,
                call.elapsed_ms(),
                outcome.error or "",
                outcome.error_type,
                traceback_str=traceback.format_exc(),
            )
            await self._notify_client(context, tool, outcome, call.elapsed_ms())
            raise
        else:
            outcome = classify_tool_result(result)
            if outcome.success:
                log_tool_complete(tool, call.elapsed_ms(), outcome.summary)
            else:
                log_tool_error(tool, call.elapsed_ms(), outcome.error or "", outcome.error_type)
            await self._notify_client(context, tool, outcome, call.elapsed_ms())
            return result
        finally:
            end_call(token)

    async def _notify_client(
        self,
        context: MiddlewareContext[Any],
        tool: str,
        outcome: ToolOutcome,
        duration_ms: float,
    ) -> None:
        ctx = context.fastmcp_context
        if ctx is None:
            return
        try:
            await ctx.debug(f"[{tool}] {outcome.describe()} ({duration_ms:.0f}ms)")
        except Exception:  # nosec B110
            pass
