"""Context managers for structured logging."""

import secrets
from typing import Dict, Optional

from connector.logging.context import get_log_context, set_log_context


def generate_trace_id() -> str:
    """Generate a short random identifier for one authenticated call."""
    return secrets.token_hex(8)


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(session_id=session_id, endpoint_id="salesforce"):
            # All logs in this block will carry session and endpoint ids
            outcome = await orchestrator.call(...)
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        endpoint_id: Optional[str] = None,
        trace_id: Optional[str] = None,
    ):
        self.new_context = {
            "session_id": session_id,
            "endpoint_id": endpoint_id,
            "trace_id": trace_id,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        for key, value in self.new_context.items():
            if value is not None:
                set_log_context(**{key: value})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore old context
        set_log_context(
            session_id=self.old_context.get("session_id", ""),
            endpoint_id=self.old_context.get("endpoint_id", ""),
            trace_id=self.old_context.get("trace_id", ""),
        )
        return False
