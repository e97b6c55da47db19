from .context import CallContext, begin_call, current_call, end_call, get_trace_id
from .events import log_event, log_tool_complete, log_tool_error, log_tool_start, redact_value

__all__ = [
    "CallContext",
    "begin_call",
    "current_call",
    "end_call",
    "get_trace_id",
    "log_event",
    "log_tool_complete",
    "log_tool_error",
    "log_tool_start",
    "redact_value",
]
