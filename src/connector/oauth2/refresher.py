"""Refresh-token grant exchange against an OAuth2 token endpoint."""

import logging

import aiohttp
from pydantic import ValidationError

from connector.oauth2.exceptions import RefreshFailureCause, TokenRefreshError
from connector.oauth2.schemas import TokenResponse

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_TIMEOUT_SECONDS = 30


class OAuth2TokenRefresher:
    """
    Exchanges refresh tokens for new access tokens.

    Performs a single form-encoded POST with grant_type=refresh_token per
    call. The outcome distinguishes a provider that rejected the refresh
    (returns None) from a refresher that failed to complete the exchange
    (raises TokenRefreshError).

    Usage:
        refresher = OAuth2TokenRefresher()
        access_token = await refresher.refresh(
            refresh_token="...",
            client_id="my-client",
            token_url="https://auth.example.com/oauth/token",
        )
        await refresher.close()
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout_seconds: int = DEFAULT_REFRESH_TIMEOUT_SECONDS,
    ):
        """
        Initialize refresher.

        Args:
            session: Shared aiohttp session. If None, one is created lazily
                and owned (closed) by this refresher.
            timeout_seconds: Total timeout for the token request
        """
        self._session = session
        self._owns_session = session is None
        self.timeout_seconds = timeout_seconds

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def refresh(
        self,
        refresh_token: str,
        client_id: str,
        token_url: str,
    ) -> str | None:
        """
        Refresh an access token using the refresh_token grant.

        Args:
            refresh_token: Refresh token held for the session
            client_id: OAuth2 client id of the endpoint
            token_url: Provider token endpoint

        Returns:
            New access token, or None if the provider answered with a
            non-success status

        Raises:
            TokenRefreshError: On transport failure (cause TRANSPORT) or when a
                success response carries no parseable access_token (cause PARSE)
        """
        session = await self._ensure_session()

        request_data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
        }

        try:
            async with session.post(
                token_url,
                data=request_data,
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                body = await response.read()

                if response.status != 200:
                    logger.debug(
                        f"Token refresh rejected by provider: HTTP {response.status}",
                        extra={
                            "http_status": response.status,
                            "error": body[:200].decode("utf-8", errors="replace"),
                        },
                    )
                    return None

        except (TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"HTTP error during token refresh: {e}")
            raise TokenRefreshError(
                f"Unable to reach token endpoint: {e}",
                RefreshFailureCause.TRANSPORT,
                cause=e,
                context={"token_url": token_url},
            ) from e

        try:
            token_response = TokenResponse.model_validate_json(body)
        except (ValidationError, UnicodeDecodeError) as e:
            logger.error("Unable to retrieve access token from provider response")
            raise TokenRefreshError(
                "Unable to retrieve access token from provider response",
                RefreshFailureCause.PARSE,
                cause=e,
                context={"token_url": token_url},
            ) from e

        logger.debug("Refreshed access token", extra={"token_url": token_url})
        return token_response.access_token

    async def close(self) -> None:
        """Close HTTP client session if this refresher created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()


__all__ = ["OAuth2TokenRefresher", "DEFAULT_REFRESH_TIMEOUT_SECONDS"]
