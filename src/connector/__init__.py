"""
OAuth2 connector: authenticated calls to OAuth2-protected HTTP resources.

Runs every outbound request through the load / call / reload / refresh /
replay protocol, scoped per user session and endpoint, and relays the final
response (or a structured error) to the caller.

Modules:
    oauth2   - Call protocol, refresh grant, transport, relay and token store
    errors   - Error identifiers and exception hierarchy
    logging  - Structured JSON logging with per-call context and redaction
    utils    - Shared serialization helpers

Design Principles:
    - Token snapshots are immutable and never shared across sessions
    - Collaborators (store, transport, refresher) are injected protocols
    - Async-first; responses are materialised before the retry decision
"""

from .types import ConfigResolver, ErrorKind, RequestExecutor, TokenRefresher, TokenStore

__version__ = "0.1.0"

__all__ = [
    "ErrorKind",
    "TokenStore",
    "ConfigResolver",
    "RequestExecutor",
    "TokenRefresher",
]
