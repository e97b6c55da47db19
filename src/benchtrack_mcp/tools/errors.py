from typing import Any

from ..engine import EngineError, InvalidParameter


def error_result(
    error_code: str,
    message: str,
    trace_id: str = "",
    timing_ms: int = 0,
    detail: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the structured error envelope returned by single-call tools.

    Args:
        error_code: Stable error code (INVALID_PARAMETER, NOT_FOUND, ...).
        message: Human-readable description.
        trace_id: Trace id of the failing call.
        timing_ms: Time spent before failing, in milliseconds.
        detail: Optional machine-readable extras.

    Returns:
        Dict with ``status == "error"``.
    """
    result: dict[str, Any] = {
        "status": "error",
        "code": error_code,
        "message": message,
        "trace_id": trace_id,
        "timing_ms": timing_ms,
    }
    if detail:
        result["detail"] = detail
    return result


def engine_error_result(exc: EngineError, trace_id: str = "", timing_ms: int = 0) -> dict[str, Any]:
    detail: dict[str, Any] = {"retryable": exc.error_code == "REPOSITORY_UNAVAILABLE"}
    if isinstance(exc, InvalidParameter) and exc.parameter:
        detail["parameter"] = exc.parameter
    return error_result(exc.error_code, exc.message, trace_id, timing_ms, detail)
