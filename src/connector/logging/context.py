"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_session_id: ContextVar[str] = ContextVar("session_id", default="")
_endpoint_id: ContextVar[str] = ContextVar("endpoint_id", default="")
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def set_log_context(
    session_id: Optional[str] = None,
    endpoint_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> None:
    if session_id is not None:
        _session_id.set(session_id)
    if endpoint_id is not None:
        _endpoint_id.set(endpoint_id)
    if trace_id is not None:
        _trace_id.set(trace_id)


def get_log_context() -> Dict[str, str]:
    return {
        "session_id": _session_id.get(),
        "endpoint_id": _endpoint_id.get(),
        "trace_id": _trace_id.get(),
    }


def clear_log_context() -> None:
    _session_id.set("")
    _endpoint_id.set("")
    _trace_id.set("")
