"""Per-call context shared by the tracing middleware, engine logs and event log."""

import time
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CallContext:
    trace_id: str
    tool: str = ""
    started_at: float = field(default_factory=time.monotonic)

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000


_current_call: ContextVar[CallContext | None] = ContextVar("benchtrack_call", default=None)


def _make_trace_id() -> str:
    return f"b-{uuid.uuid4().hex[:12]}"


def begin_call(
    tool: str, trace_id: str | None = None
) -> tuple[CallContext, Token[CallContext | None]]:
    """Bind a fresh call context; pass the returned token to end_call."""
    call = CallContext(trace_id=trace_id or _make_trace_id(), tool=tool)
    return call, _current_call.set(call)


def end_call(token: Token[CallContext | None]) -> None:
    _current_call.reset(token)


def current_call() -> CallContext | None:
    return _current_call.get()


def get_trace_id() -> str:
    """Trace id of the current call.

    Outside a tool call (CLI, library use) an anonymous context is bound on
    first use so every log line of that task shares one id.
    """
    call = _current_call.get()
    if call is None:
        call = CallContext(trace_id=_make_trace_id())
        _current_call.set(call)
    return call.trace_id
