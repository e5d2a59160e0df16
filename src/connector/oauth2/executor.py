"""
Outbound HTTP executor using aiohttp.

Performs one authenticated call against the configured endpoint and reads the
whole response into memory, so the orchestrator can discard it and retry
before anything reaches the caller.
"""

import logging
from collections.abc import Mapping

import aiohttp
from multidict import CIMultiDict

from connector.errors.exceptions import CalloutError
from connector.oauth2.models import (
    CallResult,
    OutboundCall,
    RequestContext,
    StructuredError,
    join_url,
)

logger = logging.getLogger(__name__)

HEADER_AUTHORIZATION = "Authorization"
SESSION_ID_HEADER = "X-Session-Id"

# Headers that describe a single hop and must not be forwarded
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)

# Caller credentials and session identity stay on this side of the connector
CALLER_ONLY_HEADERS = frozenset(
    {
        HEADER_AUTHORIZATION.lower(),
        SESSION_ID_HEADER.lower(),
        "cookie",
        "proxy-authorization",
    }
)


def forwardable_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Drop hop-by-hop headers and the caller's credentials and session identity."""
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() not in CALLER_ONLY_HEADERS
    }


class AiohttpRequestExecutor:
    """
    Performs authenticated calls against one endpoint.

    Any exception raised while dispatching or reading is converted into a
    synthetic ERR_CALLOUT CallResult, so a downstream outage never escapes
    into the call protocol.

    Usage:
        async with create_session() as session:
            executor = AiohttpRequestExecutor("https://api.example.com", session)
            result = await executor.perform("/v1/items", RequestContext(), "Bearer abc")
    """

    def __init__(
        self,
        endpoint_url: str = "",
        session: aiohttp.ClientSession | None = None,
        allow_redirects: bool = False,
    ):
        """
        Initialize executor.

        Args:
            endpoint_url: Base URL request URIs are joined to
            session: aiohttp session. If None, one is created lazily and owned
                (closed) by this executor.
            allow_redirects: Whether to follow redirects from the resource
        """
        self.endpoint_url = endpoint_url
        self.allow_redirects = allow_redirects
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP client session."""
        if self._session is None or self._session.closed:
            self._session = create_session()
            self._owns_session = True
        return self._session

    def build_call(
        self,
        uri: str,
        context: RequestContext,
        auth_header_value: str,
    ) -> OutboundCall:
        """Build the outbound request description for one attempt."""
        headers = forwardable_headers(context.headers)
        if context.content_type and context.body is not None:
            headers.setdefault("Content-Type", context.content_type)
        headers[HEADER_AUTHORIZATION] = auth_header_value

        return OutboundCall(
            uri=join_url(self.endpoint_url, uri),
            method=context.method.upper(),
            headers=headers,
            body=context.body,
        )

    async def perform(
        self,
        uri: str,
        context: RequestContext,
        auth_header_value: str,
    ) -> CallResult:
        """
        Perform one outbound call with the given Authorization value.

        Args:
            uri: Request URI, relative to the endpoint URL
            context: Caller request to replay
            auth_header_value: Full Authorization header value

        Returns:
            Materialised CallResult; a synthetic ERR_CALLOUT result if the
            call raised
        """
        call = self.build_call(uri, context, auth_header_value)

        try:
            session = await self._ensure_session()
            async with session.request(
                call.method,
                call.uri,
                headers=call.headers,
                data=call.body,
                allow_redirects=self.allow_redirects,
            ) as response:
                body = await response.read()
                return CallResult(
                    status_code=response.status,
                    headers=CIMultiDict(response.headers),
                    body=body,
                )

        except Exception as e:
            logger.error(
                f"Encountered error calling {call.method} {call.uri}: {e}",
                extra={"http_method": call.method, "http_url": call.uri},
            )
            error = StructuredError.from_exception(
                CalloutError(
                    "Encountered error when attempting to call resource",
                    cause=e,
                    context={"uri": call.uri},
                ),
            )
            return CallResult.from_error(error)

    async def close(self) -> None:
        """Close HTTP client session if this executor created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()


def create_session(
    max_connections: int = 100,
    max_connections_per_host: int = 10,
    enable_ssl: bool = True,
    timeout_total: int = 300,
    timeout_connect: int = 30,
    timeout_sock_read: int = 60,
) -> aiohttp.ClientSession:
    """
    Create aiohttp ClientSession with connection pooling and timeouts.

    A hung downstream call blocks its authenticated call until one of these
    timeouts fires; there is no other cancellation mechanism.

    Args:
        max_connections: Total connection pool size (default: 100)
        max_connections_per_host: Per-host connection limit (default: 10)
        enable_ssl: Enable SSL verification (default: True)
        timeout_total: Total timeout in seconds (default: 300)
        timeout_connect: Connection timeout in seconds (default: 30)
        timeout_sock_read: Socket read timeout in seconds (default: 60)

    Returns:
        Configured aiohttp.ClientSession

    Note:
        Caller is responsible for session lifecycle management.
    """
    connector = aiohttp.TCPConnector(
        limit=max_connections,
        limit_per_host=max_connections_per_host,
        ssl=enable_ssl,
        ttl_dns_cache=300,
    )

    timeout = aiohttp.ClientTimeout(
        total=timeout_total,
        connect=timeout_connect,
        sock_read=timeout_sock_read,
    )

    return aiohttp.ClientSession(connector=connector, timeout=timeout)


__all__ = [
    "AiohttpRequestExecutor",
    "CALLER_ONLY_HEADERS",
    "HEADER_AUTHORIZATION",
    "SESSION_ID_HEADER",
    "HOP_BY_HOP_HEADERS",
    "create_session",
    "forwardable_headers",
]
