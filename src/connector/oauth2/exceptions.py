"""OAuth2-specific exceptions."""

from enum import Enum

from connector.errors.exceptions import ConnectorError
from connector.types import ErrorKind


class RefreshFailureCause(Enum):
    """Why a refresh-token exchange failed."""

    TRANSPORT = "transport"
    PARSE = "parse"


class OAuth2Error(ConnectorError):
    """Base exception for OAuth2 operations."""

    kind = ErrorKind.ERR_REFRESH_TOKEN


class TokenRefreshError(OAuth2Error):
    """
    Token refresh exchange failed.

    Raised for transport failures and for success responses that carry no
    usable access token. A provider rejecting the refresh with a non-success
    status is not an error; the refresher returns None instead.
    """

    kind = ErrorKind.ERR_REFRESH_TOKEN

    def __init__(
        self,
        message: str,
        failure_cause: RefreshFailureCause,
        cause: BaseException | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.failure_cause = failure_cause


class InvalidConfigurationError(OAuth2Error):
    """OAuth2 endpoint configuration is invalid."""

    kind = ErrorKind.ERR_CONFIG


__all__ = [
    "RefreshFailureCause",
    "OAuth2Error",
    "TokenRefreshError",
    "InvalidConfigurationError",
]
