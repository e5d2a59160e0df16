"""
Authenticated calls against OAuth2-protected endpoints.

Every call goes through the same sequence: use the held token, reload it from
the store on 401/403, refresh it once with the refresh_token grant, and replay
the request with the new token. Only the final response reaches the caller.

Basic Usage:
    from config import load_config
    from connector.oauth2 import InMemoryTokenStore, OAuth2Connector

    store = InMemoryTokenStore()
    store.save("session-1", "salesforce", TokenPair("access", "refresh"))

    connector = OAuth2Connector.from_settings(load_config(), store)
    outcome = await connector.call(
        "/v1/items",
        RequestContext(method="GET"),
        CallerRequestInfo(session_id="session-1", path_info="/proxy/salesforce/v1/items"),
    )

aiohttp Application:
    async def handler(request):
        return await connector.handle(request, "/" + request.match_info["path"])

    app.router.add_route("*", "/proxy/{endpoint}/{path:.*}", handler)

Protocol Only:
    orchestrator = AuthenticatedCallOrchestrator(store, executor, refresher)
    outcome = await orchestrator.call(uri, context, request_info, endpoint_config)
"""

from connector.oauth2.connector import (
    PROXY_PATH_SEGMENT,
    SESSION_ID_HEADER,
    OAuth2Connector,
    derive_endpoint_id,
    session_id_from_header,
)
from connector.oauth2.exceptions import (
    InvalidConfigurationError,
    OAuth2Error,
    RefreshFailureCause,
    TokenRefreshError,
)
from connector.oauth2.executor import AiohttpRequestExecutor, create_session
from connector.oauth2.models import (
    CallerRequestInfo,
    CallOutcome,
    CallResult,
    EndpointConfig,
    OutboundCall,
    RequestContext,
    StructuredError,
    TokenPair,
)
from connector.oauth2.orchestrator import MAX_ATTEMPTS, AuthenticatedCallOrchestrator
from connector.oauth2.refresher import OAuth2TokenRefresher
from connector.oauth2.relay import copy_response, error_response, relay_outcome
from connector.oauth2.store import InMemoryTokenStore

__all__ = [
    # Connector
    "OAuth2Connector",
    "PROXY_PATH_SEGMENT",
    "SESSION_ID_HEADER",
    "derive_endpoint_id",
    "session_id_from_header",
    # Protocol
    "AuthenticatedCallOrchestrator",
    "MAX_ATTEMPTS",
    # Collaborators
    "AiohttpRequestExecutor",
    "OAuth2TokenRefresher",
    "InMemoryTokenStore",
    "create_session",
    # Relay
    "copy_response",
    "error_response",
    "relay_outcome",
    # Models
    "TokenPair",
    "EndpointConfig",
    "RequestContext",
    "CallerRequestInfo",
    "OutboundCall",
    "StructuredError",
    "CallResult",
    "CallOutcome",
    # Exceptions
    "OAuth2Error",
    "TokenRefreshError",
    "RefreshFailureCause",
    "InvalidConfigurationError",
]
