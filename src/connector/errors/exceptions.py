"""
Exception hierarchy for the OAuth2 connector.

Every exception carries the ErrorKind that identifies it on the wire, so the
orchestrator and relay can turn any failure into a structured error payload
without inspecting messages.
"""

# Import ErrorKind from canonical source to avoid duplicate enum issues
from connector.types import ErrorKind

STATUS_UNAUTHORIZED = 401
STATUS_FORBIDDEN = 403

# Statuses that make the orchestrator reload tokens from the store
AUTH_FAILURE_STATUSES = frozenset({STATUS_UNAUTHORIZED, STATUS_FORBIDDEN})


class ConnectorError(Exception):
    """
    Base exception for all connector errors.

    Attributes:
        message: Human-readable error description
        kind: Error identifier written to the caller
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    kind: ErrorKind = ErrorKind.ERR_CALLOUT

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Credential Store Errors
# =============================================================================


class VaultError(ConnectorError):
    """Base class for token store failures."""

    kind = ErrorKind.ERR_CREDENTIALSTORE


class CredentialStoreError(VaultError):
    """The credential store could not be reached or initialised."""

    kind = ErrorKind.ERR_CREDENTIALSTORE


class CredentialFetchError(VaultError):
    """Credentials could not be retrieved from or written to the store."""

    kind = ErrorKind.ERR_FETCH_CREDENTIALS


# =============================================================================
# Configuration, Transport and Relay Errors
# =============================================================================


class ConfigError(ConnectorError):
    """Endpoint is unknown or its configuration is incomplete."""

    kind = ErrorKind.ERR_CONFIG


class CalloutError(ConnectorError):
    """The downstream resource call raised unexpectedly."""

    kind = ErrorKind.ERR_CALLOUT


class ResponseCopyError(ConnectorError):
    """Copying the final response onto the caller-facing response failed."""

    kind = ErrorKind.ERR_COPY_RESPONSE


# =============================================================================
# Status Classification
# =============================================================================


def is_auth_failure(status_code: int) -> bool:
    """True for statuses that should trigger a token reload (401, 403)."""
    return status_code in AUTH_FAILURE_STATUSES


def is_unauthorized(status_code: int) -> bool:
    """True only for 401, the one status a token refresh can fix."""
    return status_code == STATUS_UNAUTHORIZED


def kind_for_exception(exc: BaseException) -> ErrorKind:
    """Map an exception to the error kind it surfaces as."""
    kind = getattr(exc, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind
    return ErrorKind.ERR_CALLOUT


def wrap_exception(
    exc: BaseException,
    default_class: type = CalloutError,
    message: str | None = None,
    context: dict | None = None,
) -> ConnectorError:
    """Wrap a generic exception in a ConnectorError subclass."""
    if isinstance(exc, ConnectorError):
        if context:
            exc.context.update(context)
        return exc

    return default_class(message or str(exc) or type(exc).__name__, cause=exc, context=context)


__all__ = [
    "ErrorKind",
    "ConnectorError",
    "VaultError",
    "CredentialStoreError",
    "CredentialFetchError",
    "ConfigError",
    "CalloutError",
    "ResponseCopyError",
    "STATUS_UNAUTHORIZED",
    "STATUS_FORBIDDEN",
    "AUTH_FAILURE_STATUSES",
    "is_auth_failure",
    "is_unauthorized",
    "kind_for_exception",
    "wrap_exception",
]
