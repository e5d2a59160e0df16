"""OAuth2 connector data models."""

import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from multidict import CIMultiDict

from connector.errors.exceptions import kind_for_exception
from connector.oauth2.schemas import ErrorBody, ErrorPayload
from connector.types import ErrorKind

AUTH_METHOD_OAUTH = "OAuth"
AUTH_METHOD_BEARER = "Bearer"
DEFAULT_AUTH_METHOD = AUTH_METHOD_OAUTH
SUPPORTED_AUTH_METHODS = (AUTH_METHOD_OAUTH, AUTH_METHOD_BEARER)


def join_url(base_url: str, uri: str) -> str:
    """Join a base URL and a request URI with exactly one slash."""
    if not base_url or uri.startswith(("http://", "https://")):
        return uri
    return f"{base_url.rstrip('/')}/{uri.lstrip('/')}"


@dataclass(frozen=True)
class TokenPair:
    """
    Immutable snapshot of the tokens held for one session and endpoint.

    Tokens are opaque: they are only compared for equality and transmitted.

    Attributes:
        access_token: Short-lived credential sent on every request
        refresh_token: Longer-lived credential exchanged for new access tokens
    """

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def has_access_token(self) -> bool:
        """An absent token and an empty token both count as no token."""
        return bool(self.access_token)

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)

    def with_access_token(self, access_token: str) -> "TokenPair":
        """Return a new pair with the access token replaced and refresh token kept."""
        return replace(self, access_token=access_token)

    def __repr__(self) -> str:
        # Keep credentials out of logs and tracebacks
        return (
            f"TokenPair(access_token={'***' if self.access_token else None!r}, "
            f"refresh_token={'***' if self.refresh_token else None!r})"
        )


@dataclass(frozen=True)
class EndpointConfig:
    """
    Read-only configuration for one OAuth2-protected endpoint.

    Attributes:
        endpoint_id: Identifier the token store is keyed by
        client_id: OAuth2 client id sent with the refresh grant
        token_url: Provider token endpoint for the refresh grant
        auth_scheme: Authorization header scheme ("OAuth" or "Bearer")
        endpoint_url: Base URL outbound request URIs are joined to
    """

    endpoint_id: str
    client_id: str
    token_url: str
    auth_scheme: str = DEFAULT_AUTH_METHOD
    endpoint_url: str = ""

    def __post_init__(self) -> None:
        if not self.auth_scheme:
            object.__setattr__(self, "auth_scheme", DEFAULT_AUTH_METHOD)

    def authorization_header(self, access_token: str) -> str:
        """Build the Authorization header value for an access token."""
        return f"{self.auth_scheme} {access_token}"

    def resolve_url(self, uri: str) -> str:
        """Join the endpoint URL and a request URI; absolute URIs pass through."""
        return join_url(self.endpoint_url, uri)


@dataclass
class RequestContext:
    """
    The caller's request, replayed on every attempt.

    Attributes:
        method: HTTP method
        headers: Caller headers to forward (hop-by-hop headers are dropped)
        body: Request body, if any
        content_type: Content-Type of the body
    """

    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    content_type: str | None = None


@dataclass(frozen=True)
class CallerRequestInfo:
    """
    Identity and routing information about the caller's request.

    Attributes:
        session_id: User session the tokens belong to
        path_info: Routed request path, used to derive the endpoint id
    """

    session_id: str | None
    path_info: str = ""


@dataclass(frozen=True)
class OutboundCall:
    """Immutable description of one outbound request."""

    uri: str
    method: str
    headers: dict[str, str]
    body: bytes | None = None


@dataclass
class StructuredError:
    """
    Error surfaced to the caller instead of a relayed response.

    Attributes:
        kind: Machine-readable error identifier
        message: Human-readable description
        cause: Underlying exception, for diagnostics only
    """

    kind: ErrorKind
    message: str
    cause: BaseException | None = None

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: str | None = None,
        kind: ErrorKind | None = None,
    ) -> "StructuredError":
        """Build a structured error from a (usually ConnectorError) exception."""
        return cls(
            kind=kind or kind_for_exception(exc),
            message=message or getattr(exc, "message", None) or str(exc),
            cause=exc,
        )

    def to_payload(self) -> ErrorPayload:
        if self.cause is None:
            return ErrorPayload(error=ErrorBody(id=self.kind.value, message=self.message))

        stack_trace = "".join(
            traceback.format_exception(type(self.cause), self.cause, self.cause.__traceback__)
        )
        return ErrorPayload(
            error=ErrorBody(
                id=self.kind.value,
                message=self.message,
                exceptionMessage=str(self.cause),
                stackTrace=stack_trace,
            )
        )

    def to_json(self) -> str:
        return self.to_payload().model_dump_json(exclude_none=True)


@dataclass
class CallResult:
    """
    Fully materialised result of one outbound call.

    Attributes:
        status_code: HTTP status code
        headers: Response headers; repeated names (Set-Cookie) are kept
        body: Response body
        error: Set only on synthetic results built from a failed callout
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=CIMultiDict)
    body: bytes = b""
    error: StructuredError | None = None

    @classmethod
    def from_error(cls, error: StructuredError) -> "CallResult":
        """Build a synthetic result carrying a structured error payload."""
        return cls(
            status_code=error.status_code,
            headers=CIMultiDict({"Content-Type": "application/json"}),
            body=error.to_json().encode("utf-8"),
            error=error,
        )


@dataclass
class CallOutcome:
    """
    Final outcome of one authenticated call.

    Exactly one of result and error is set.

    Attributes:
        result: Response to relay verbatim
        error: Structured error to write instead
        tokens: Token snapshot the call finished with, for caller-side caching
        attempts: Number of outbound calls made
        refreshed: Whether a refresh exchange produced a new token
    """

    result: CallResult | None = None
    error: StructuredError | None = None
    tokens: TokenPair | None = None
    attempts: int = 0
    refreshed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int:
        if self.error is not None:
            return self.error.status_code
        if self.result is None:
            raise ValueError("CallOutcome has neither a result nor an error")
        return self.result.status_code

    def to_dict(self) -> dict[str, Any]:
        """Summary for diagnostics (never includes tokens or bodies)."""
        return {
            "status_code": self.status_code,
            "error_id": self.error.kind.value if self.error else None,
            "attempts": self.attempts,
            "refreshed": self.refreshed,
        }


__all__ = [
    "AUTH_METHOD_OAUTH",
    "AUTH_METHOD_BEARER",
    "DEFAULT_AUTH_METHOD",
    "SUPPORTED_AUTH_METHODS",
    "join_url",
    "TokenPair",
    "EndpointConfig",
    "RequestContext",
    "CallerRequestInfo",
    "OutboundCall",
    "StructuredError",
    "CallResult",
    "CallOutcome",
]
