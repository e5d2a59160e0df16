"""
Thread-safe in-memory token store.

This module provides a reference TokenStore keeping token snapshots per
(session, endpoint). It backs tests and single-process deployments; a
persistent credential vault plugs in through the same TokenStore protocol.

Thread Safety:
    All operations are protected by a lock, so load and save are atomic per
    (session, endpoint) even when concurrent calls for one session refresh at
    the same time.

Example:
    >>> store = InMemoryTokenStore()
    >>> store.save("session-1", "my-endpoint", TokenPair("abc", "refresh"))
    >>> store.load("session-1", "my-endpoint").access_token
    'abc'
    >>> store.load("session-2", "my-endpoint") is None
    True
"""

import logging
import threading
from datetime import datetime, timedelta, timezone

from connector.errors.exceptions import CredentialFetchError
from connector.oauth2.models import TokenPair

logger = logging.getLogger(__name__)


class InMemoryTokenStore:
    """
    Token store keyed by session id and endpoint id.

    Stores immutable TokenPair snapshots, so callers can never mutate state
    shared with other in-flight calls. Sessions never see each other's tokens.
    """

    def __init__(self):
        """Initialize empty store with thread lock."""
        self._tokens: dict[tuple[str, str], TokenPair] = {}
        self._saved_at: dict[tuple[str, str], datetime] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(session_id: str, endpoint_id: str) -> tuple[str, str]:
        if not session_id:
            raise CredentialFetchError("No session id supplied for credential lookup")
        return (session_id, endpoint_id)

    def load(self, session_id: str, endpoint_id: str) -> TokenPair | None:
        """
        Load the token snapshot for a session and endpoint.

        Args:
            session_id: User session identity
            endpoint_id: Endpoint the tokens were issued for

        Returns:
            TokenPair if stored, None otherwise

        Raises:
            CredentialFetchError: If no session id is supplied
        """
        key = self._key(session_id, endpoint_id)
        with self._lock:
            return self._tokens.get(key)

    def save(self, session_id: str, endpoint_id: str, tokens: TokenPair) -> None:
        """
        Store a token snapshot for a session and endpoint.

        Raises:
            CredentialFetchError: If no session id is supplied
        """
        key = self._key(session_id, endpoint_id)
        with self._lock:
            self._tokens[key] = tokens
            self._saved_at[key] = datetime.now(timezone.utc)
        logger.debug(f"Saved OAuth tokens for endpoint {endpoint_id}")

    def clear(self, session_id: str | None = None) -> None:
        """
        Clear tokens for one session, or for all sessions.

        Args:
            session_id: Session to clear. If None, clears everything.
        """
        with self._lock:
            if session_id:
                for key in [k for k in self._tokens if k[0] == session_id]:
                    self._tokens.pop(key, None)
                    self._saved_at.pop(key, None)
            else:
                self._tokens.clear()
                self._saved_at.clear()

    def get_age(self, session_id: str, endpoint_id: str) -> timedelta | None:
        """Age of the stored snapshot for diagnostics, or None if not stored."""
        with self._lock:
            saved_at = self._saved_at.get((session_id, endpoint_id))
            if saved_at:
                return datetime.now(timezone.utc) - saved_at
            return None


__all__ = ["InMemoryTokenStore"]
