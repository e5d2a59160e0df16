"""
Error identifiers and exception hierarchy.

Provides:
- ErrorKind enum for the identifiers written to callers
- ConnectorError hierarchy for typed exceptions
- Status classification helpers used by the call protocol
"""

from connector.errors.exceptions import (
    AUTH_FAILURE_STATUSES,
    STATUS_FORBIDDEN,
    STATUS_UNAUTHORIZED,
    CalloutError,
    ConfigError,
    ConnectorError,
    CredentialFetchError,
    CredentialStoreError,
    ErrorKind,
    ResponseCopyError,
    VaultError,
    is_auth_failure,
    is_unauthorized,
    kind_for_exception,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorKind",
    # Base classes
    "ConnectorError",
    "VaultError",
    # Concrete errors
    "CredentialStoreError",
    "CredentialFetchError",
    "ConfigError",
    "CalloutError",
    "ResponseCopyError",
    # Status classification
    "STATUS_UNAUTHORIZED",
    "STATUS_FORBIDDEN",
    "AUTH_FAILURE_STATUSES",
    "is_auth_failure",
    "is_unauthorized",
    "kind_for_exception",
    "wrap_exception",
]
