from .tracing import ToolOutcome, ToolTracingMiddleware, classify_tool_result

__all__ = ["ToolOutcome", "ToolTracingMiddleware", "classify_tool_result"]
