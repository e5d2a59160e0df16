"""
Connector for OAuth2-protected resources.

Wires endpoint resolution, session scoping, the authenticated call protocol
and the response relay into one object an aiohttp application can route
requests to.
"""

import logging
from collections.abc import Callable

from aiohttp import web

from connector.errors.exceptions import ConfigError
from connector.logging.context_managers import LogContext, generate_trace_id
from connector.logging.utilities import log_exception
from connector.oauth2.exceptions import InvalidConfigurationError
from connector.oauth2.executor import (
    SESSION_ID_HEADER,
    AiohttpRequestExecutor,
    forwardable_headers,
)
from connector.oauth2.models import (
    CallerRequestInfo,
    CallOutcome,
    RequestContext,
    StructuredError,
    TokenPair,
)
from connector.oauth2.orchestrator import AuthenticatedCallOrchestrator
from connector.oauth2.refresher import OAuth2TokenRefresher
from connector.oauth2.relay import relay_outcome
from connector.types import ConfigResolver, RequestExecutor, TokenRefresher, TokenStore

logger = logging.getLogger(__name__)

PROXY_PATH_SEGMENT = "/proxy/"

MSG_CONFIG = "Unable to resolve OAuth configuration for endpoint"


def session_id_from_header(request: web.BaseRequest) -> str | None:
    """Default session lookup: the X-Session-Id request header."""
    return request.headers.get(SESSION_ID_HEADER)


def derive_endpoint_id(uri: str, path_info: str) -> str:
    """
    Derive an endpoint id from the routed request path.

    Removes the resource URI and the proxy prefix from the path, so
    "/proxy/salesforce/v1/items" with URI "/v1/items" yields "salesforce".
    This is a heuristic: nested proxy paths are not guaranteed to map to the
    intended endpoint.
    """
    endpoint_id = path_info.replace(uri, "") if uri else path_info
    endpoint_id = endpoint_id.replace(PROXY_PATH_SEGMENT, "")
    return endpoint_id.strip("/")


class OAuth2Connector:
    """
    Executes requests against an OAuth2-protected endpoint for user sessions.

    Usage:
        connector = OAuth2Connector(
            config_resolver=EndpointConfigResolver(load_config()),
            token_store=store,
            endpoint_url="https://api.example.com",
        )
        app.router.add_route("*", "/proxy/{endpoint}/{path:.*}", handler)

        async def handler(request):
            return await connector.handle(request, "/" + request.match_info["path"])
    """

    def __init__(
        self,
        config_resolver: ConfigResolver,
        token_store: TokenStore,
        endpoint_url: str = "",
        token_source: str | None = None,
        executor: RequestExecutor | None = None,
        refresher: TokenRefresher | None = None,
        session_id_getter: Callable[[web.BaseRequest], str | None] = session_id_from_header,
    ):
        """
        Initialize connector.

        Args:
            config_resolver: Resolves EndpointConfig by endpoint id
            token_store: Per-session token store
            endpoint_url: Base URL of the protected resource (used when no
                executor is supplied)
            token_source: Fixed endpoint id; when unset it is derived from
                the request path
            executor: Transport; defaults to an aiohttp executor
            refresher: Refresh grant client; defaults to an aiohttp refresher
            session_id_getter: Extracts the session id from incoming requests
        """
        self.config_resolver = config_resolver
        self.token_source = token_source
        self.session_id_getter = session_id_getter
        self.executor = executor or AiohttpRequestExecutor(endpoint_url)
        self.refresher = refresher or OAuth2TokenRefresher()
        self.orchestrator = AuthenticatedCallOrchestrator(
            token_store=token_store,
            executor=self.executor,
            refresher=self.refresher,
        )

    @classmethod
    def from_settings(cls, settings, token_store: TokenStore, **kwargs) -> "OAuth2Connector":
        """
        Build a connector from loaded ConnectorSettings.

        The connector-level token-source becomes the fixed endpoint id.
        Remaining keyword arguments are passed to the constructor.
        """
        from config.config import EndpointConfigResolver

        kwargs.setdefault("token_source", settings.token_source)
        return cls(
            config_resolver=EndpointConfigResolver(settings),
            token_store=token_store,
            **kwargs,
        )

    def endpoint_id_for(self, uri: str, request_info: CallerRequestInfo) -> str:
        """Configured token source if set, else derived from the request path."""
        if self.token_source:
            return self.token_source
        return derive_endpoint_id(uri, request_info.path_info)

    async def call(
        self,
        uri: str,
        context: RequestContext,
        request_info: CallerRequestInfo,
        tokens: TokenPair | None = None,
    ) -> CallOutcome:
        """
        Perform an authenticated call for a caller session.

        Args:
            uri: Resource URI relative to the endpoint URL
            context: Caller request to replay
            request_info: Caller session and routed path
            tokens: Token snapshot the caller already holds, if any

        Returns:
            CallOutcome to relay to the caller
        """
        endpoint_id = self.endpoint_id_for(uri, request_info)

        with LogContext(
            session_id=request_info.session_id or "",
            endpoint_id=endpoint_id,
            trace_id=generate_trace_id(),
        ):
            try:
                config = self.config_resolver.resolve(endpoint_id)
            except (ConfigError, InvalidConfigurationError) as e:
                log_exception(
                    logger,
                    e,
                    f"{MSG_CONFIG} '{endpoint_id}'",
                    include_traceback=False,
                    api_endpoint=endpoint_id,
                )
                return CallOutcome(error=StructuredError.from_exception(e, MSG_CONFIG))

            outcome = await self.orchestrator.call(uri, context, request_info, config, tokens)
            logger.info(
                f"{context.method} {uri} completed with HTTP {outcome.status_code}",
                extra={
                    "http_method": context.method,
                    "http_status": outcome.status_code,
                    "attempt": outcome.attempts,
                    "refreshed": outcome.refreshed,
                    "error_code": outcome.error.kind.value if outcome.error else None,
                },
            )
            return outcome

    async def handle(self, request: web.Request, uri: str) -> web.StreamResponse:
        """
        aiohttp handler: perform the call for an incoming request and relay it.

        Args:
            request: Incoming caller request
            uri: Resource URI the request maps to

        Returns:
            Response written for the caller
        """
        body = await request.read() if request.body_exists else None
        context = RequestContext(
            method=request.method,
            headers=forwardable_headers(request.headers),
            body=body,
            content_type=request.content_type if body is not None else None,
        )
        request_info = CallerRequestInfo(
            session_id=self.session_id_getter(request),
            path_info=request.path,
        )

        outcome = await self.call(uri, context, request_info)
        return await relay_outcome(outcome, request)

    async def close(self) -> None:
        """Close transport sessions owned by the executor and refresher."""
        for component in (self.executor, self.refresher):
            close = getattr(component, "close", None)
            if close is not None:
                try:
                    await close()
                except Exception as e:
                    logger.warning(f"Error closing {component.__class__.__name__}: {e}")


__all__ = [
    "OAuth2Connector",
    "PROXY_PATH_SEGMENT",
    "SESSION_ID_HEADER",
    "derive_endpoint_id",
    "session_id_from_header",
]
