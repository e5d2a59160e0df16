"""
Authenticated call protocol.

Composes a TokenStore, a RequestExecutor and a TokenRefresher into the
load / call / reload / refresh / replay sequence used for every request to an
OAuth2-protected endpoint:

    1. Load tokens if the caller holds none. Nothing stored -> NO_TOKEN.
    2. First call. Anything but 401/403 is the final result.
    3. On 401/403, reload from the store. Nothing stored -> NO_TOKEN.
       A different token is tried once; anything but 401 is final.
       An unchanged token goes straight to the refresh step.
    4. Refresh once. A new, different token is saved and the call replayed
       one last time; that result is final whatever its status.

At most one refresh and three outbound calls happen per top-level call.
"""

import logging

from connector.errors.exceptions import (
    CredentialFetchError,
    VaultError,
    is_auth_failure,
    is_unauthorized,
)
from connector.logging.utilities import log_with_context
from connector.oauth2.exceptions import RefreshFailureCause, TokenRefreshError
from connector.oauth2.models import (
    CallerRequestInfo,
    CallOutcome,
    CallResult,
    EndpointConfig,
    RequestContext,
    StructuredError,
    TokenPair,
)
from connector.types import ErrorKind, RequestExecutor, TokenRefresher, TokenStore

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

MSG_NO_TOKEN = "No access token is present"
MSG_REFRESH_FAILED = "Unable to refresh token"
MSG_CREDENTIALSTORE = "Unable to load credential store"
MSG_FETCH_CREDENTIALS = "Unable to retrieve OAuth credentials from credential vault"


class AuthenticatedCallOrchestrator:
    """
    Runs the authenticated call protocol for one endpoint configuration.

    Token state is never shared between calls through this object: each call
    starts from the snapshot passed in (or loaded from the store) and returns
    the snapshot it finished with on the outcome.

    Usage:
        orchestrator = AuthenticatedCallOrchestrator(
            token_store=InMemoryTokenStore(),
            executor=AiohttpRequestExecutor("https://api.example.com"),
            refresher=OAuth2TokenRefresher(),
        )
        outcome = await orchestrator.call(
            "/v1/items", RequestContext(), CallerRequestInfo("session-1"), config
        )
    """

    def __init__(
        self,
        token_store: TokenStore,
        executor: RequestExecutor,
        refresher: TokenRefresher,
    ):
        self.token_store = token_store
        self.executor = executor
        self.refresher = refresher

    async def call(
        self,
        uri: str,
        context: RequestContext,
        request_info: CallerRequestInfo,
        config: EndpointConfig,
        tokens: TokenPair | None = None,
    ) -> CallOutcome:
        """
        Perform an authenticated call, reloading or refreshing tokens as needed.

        Args:
            uri: Request URI relative to the endpoint
            context: Caller request to replay on each attempt
            request_info: Session identity of the caller
            config: Endpoint configuration
            tokens: Token snapshot the caller already holds, if any

        Returns:
            CallOutcome with either the result to relay or a structured error
        """
        try:
            return await self._call(uri, context, request_info, config, tokens)
        except CredentialFetchError as e:
            logger.error(
                f"{MSG_FETCH_CREDENTIALS}: {e}",
                extra={"error_code": e.kind.value, "api_endpoint": config.endpoint_id},
            )
            return CallOutcome(error=StructuredError.from_exception(e, MSG_FETCH_CREDENTIALS))
        except VaultError as e:
            logger.error(
                f"{MSG_CREDENTIALSTORE}: {e}",
                extra={"error_code": e.kind.value, "api_endpoint": config.endpoint_id},
            )
            return CallOutcome(error=StructuredError.from_exception(e, MSG_CREDENTIALSTORE))

    async def _call(
        self,
        uri: str,
        context: RequestContext,
        request_info: CallerRequestInfo,
        config: EndpointConfig,
        tokens: TokenPair | None,
    ) -> CallOutcome:
        session_id = request_info.session_id
        if not session_id:
            logger.warning("No session available for authenticated call")
            return self._no_token(attempts=0)

        if tokens is None or not tokens.has_access_token:
            tokens = self._load_tokens(session_id, config.endpoint_id)
            if tokens is None or not tokens.has_access_token:
                return self._no_token(attempts=0)

        # First call
        result = await self._perform(uri, context, config, tokens, attempt=1)
        attempts = 1
        if not is_auth_failure(result.status_code):
            return self._finish(result, tokens, attempts)

        # The cached token may have been revoked or replaced in the store
        old_token = tokens.access_token
        reloaded = self._load_tokens(session_id, config.endpoint_id)
        if reloaded is None or not reloaded.has_access_token:
            return self._no_token(attempts=attempts)
        tokens = reloaded

        if tokens.access_token != old_token:
            result = await self._perform(uri, context, config, tokens, attempt=2)
            attempts += 1
            if not is_unauthorized(result.status_code):
                return self._finish(result, tokens, attempts)

        return await self._refresh_and_replay(
            uri, context, session_id, config, tokens, result, attempts
        )

    async def _refresh_and_replay(
        self,
        uri: str,
        context: RequestContext,
        session_id: str,
        config: EndpointConfig,
        tokens: TokenPair,
        last_result: CallResult,
        attempts: int,
    ) -> CallOutcome:
        if not tokens.has_refresh_token:
            logger.debug(
                f"No refresh token held for endpoint {config.endpoint_id}, "
                f"relaying HTTP {last_result.status_code}"
            )
            return self._finish(last_result, tokens, attempts)

        try:
            new_token = await self.refresher.refresh(
                tokens.refresh_token, config.client_id, config.token_url
            )
        except TokenRefreshError as e:
            logger.error(
                f"{MSG_REFRESH_FAILED}: {e}",
                extra={"error_code": e.kind.value, "api_endpoint": config.endpoint_id},
            )
            return CallOutcome(
                error=StructuredError.from_exception(e, MSG_REFRESH_FAILED),
                tokens=tokens,
                attempts=attempts,
            )
        except Exception as e:
            logger.error(f"{MSG_REFRESH_FAILED}: {e}")
            error = TokenRefreshError(str(e), RefreshFailureCause.TRANSPORT, cause=e)
            return CallOutcome(
                error=StructuredError.from_exception(error, MSG_REFRESH_FAILED),
                tokens=tokens,
                attempts=attempts,
            )

        if not new_token or new_token == tokens.access_token:
            # Replaying with the same token cannot succeed
            logger.debug(
                f"Token refresh produced no new token for endpoint {config.endpoint_id}, "
                f"relaying HTTP {last_result.status_code}"
            )
            return self._finish(last_result, tokens, attempts)

        refreshed = tokens.with_access_token(new_token)
        logger.debug(f"Saving OAuth tokens for endpoint {config.endpoint_id}")
        self.token_store.save(session_id, config.endpoint_id, refreshed)

        result = await self._perform(uri, context, config, refreshed, attempt=attempts + 1)
        return self._finish(result, refreshed, attempts + 1, refreshed=True)

    def _load_tokens(self, session_id: str, endpoint_id: str) -> TokenPair | None:
        logger.debug(f"Loading OAuth tokens for endpoint {endpoint_id}")
        return self.token_store.load(session_id, endpoint_id)

    async def _perform(
        self,
        uri: str,
        context: RequestContext,
        config: EndpointConfig,
        tokens: TokenPair,
        attempt: int,
    ) -> CallResult:
        log_with_context(
            logger,
            logging.DEBUG,
            f"Loading resource {uri} - attempt {attempt}",
            attempt=attempt,
            max_attempts=MAX_ATTEMPTS,
            api_endpoint=config.endpoint_id,
        )
        result = await self.executor.perform(
            config.resolve_url(uri), context, config.authorization_header(tokens.access_token)
        )
        logger.debug(
            f"Response status {result.status_code}",
            extra={"attempt": attempt, "http_status": result.status_code},
        )
        return result

    @staticmethod
    def _finish(
        result: CallResult,
        tokens: TokenPair,
        attempts: int,
        refreshed: bool = False,
    ) -> CallOutcome:
        # Synthetic callout failures surface as structured errors
        if result.error is not None:
            return CallOutcome(
                error=result.error, tokens=tokens, attempts=attempts, refreshed=refreshed
            )
        return CallOutcome(result=result, tokens=tokens, attempts=attempts, refreshed=refreshed)

    @staticmethod
    def _no_token(attempts: int) -> CallOutcome:
        logger.debug(MSG_NO_TOKEN)
        return CallOutcome(
            error=StructuredError(kind=ErrorKind.NO_TOKEN, message=MSG_NO_TOKEN),
            attempts=attempts,
        )


__all__ = [
    "AuthenticatedCallOrchestrator",
    "MAX_ATTEMPTS",
    "MSG_NO_TOKEN",
    "MSG_REFRESH_FAILED",
    "MSG_CREDENTIALSTORE",
    "MSG_FETCH_CREDENTIALS",
]
