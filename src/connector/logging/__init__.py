"""
Structured logging module.

Provides JSON logging with per-call context (session, endpoint, trace id) and
credential redaction.
"""

from connector.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from connector.logging.context_managers import LogContext, generate_trace_id
from connector.logging.formatters import ConsoleFormatter, JSONFormatter, redact
from connector.logging.setup import get_logger, setup_logging
from connector.logging.utilities import log_exception, log_with_context

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    "redact",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Context Managers
    "LogContext",
    "generate_trace_id",
    # Utilities
    "log_with_context",
    "log_exception",
]
