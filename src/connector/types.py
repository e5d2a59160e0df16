"""
Core types and protocols used across modules.

This module provides the error-kind enum and the protocol definitions for the
collaborators the authenticated-call orchestrator depends on. Implementations
are injected, never looked up from global state.
"""

from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from connector.oauth2.models import (
        CallResult,
        EndpointConfig,
        RequestContext,
        TokenPair,
    )


class ErrorKind(Enum):
    """
    Machine-readable identifiers for errors surfaced to callers.

    Each kind maps to the HTTP status written on the caller-facing response.

    Kinds:
        NO_TOKEN: No access token available after load and reload (401)
        ERR_REFRESH_TOKEN: Refresh exchange failed or returned garbage (500)
        ERR_CREDENTIALSTORE: Credential store unreachable (500)
        ERR_FETCH_CREDENTIALS: Credentials could not be retrieved (500)
        ERR_COPY_RESPONSE: Relaying the response to the caller failed (500)
        ERR_CALLOUT: The downstream call raised unexpectedly (500)
        ERR_CONFIG: Endpoint configuration missing or invalid (500)
    """

    NO_TOKEN = "NO_TOKEN"
    ERR_REFRESH_TOKEN = "ERR_REFRESH_TOKEN"
    ERR_CREDENTIALSTORE = "ERR_CREDENTIALSTORE"
    ERR_FETCH_CREDENTIALS = "ERR_FETCH_CREDENTIALS"
    ERR_COPY_RESPONSE = "ERR_COPY_RESPONSE"
    ERR_CALLOUT = "ERR_CALLOUT"
    ERR_CONFIG = "ERR_CONFIG"

    @property
    def status_code(self) -> int:
        if self is ErrorKind.NO_TOKEN:
            return 401
        return 500


class TokenStore(Protocol):
    """
    Protocol for per-session, per-endpoint token persistence.

    Implementations must scope every operation by session identity and treat
    load/save as atomic for a given (session, endpoint) pair.
    """

    def load(self, session_id: str, endpoint_id: str) -> "TokenPair | None":
        """
        Load the stored tokens for a session and endpoint.

        Returns:
            TokenPair snapshot, or None if nothing is stored

        Raises:
            VaultError: If the store cannot be reached or read
        """
        ...

    def save(self, session_id: str, endpoint_id: str, tokens: "TokenPair") -> None:
        """
        Persist tokens for a session and endpoint.

        Raises:
            VaultError: If the store cannot be reached or written
        """
        ...


class ConfigResolver(Protocol):
    """Protocol for resolving endpoint configuration by id."""

    def resolve(self, endpoint_id: str) -> "EndpointConfig":
        """
        Resolve configuration for an endpoint.

        Raises:
            ConfigError: If the endpoint is unknown
            InvalidConfigurationError: If the endpoint configuration is incomplete
        """
        ...


class RequestExecutor(Protocol):
    """Protocol for the outbound transport primitive."""

    async def perform(
        self,
        uri: str,
        context: "RequestContext",
        auth_header_value: str,
    ) -> "CallResult":
        """
        Perform one authenticated call and materialise the response.

        Never raises for transport failures; those become synthetic
        ERR_CALLOUT results.
        """
        ...


class TokenRefresher(Protocol):
    """Protocol for the refresh-token grant exchange."""

    async def refresh(
        self,
        refresh_token: str,
        client_id: str,
        token_url: str,
    ) -> str | None:
        """
        Exchange a refresh token for a new access token.

        Returns:
            New access token, or None if the provider rejected the refresh

        Raises:
            TokenRefreshError: If the exchange itself failed
        """
        ...


__all__ = [
    "ErrorKind",
    "TokenStore",
    "ConfigResolver",
    "RequestExecutor",
    "TokenRefresher",
]
