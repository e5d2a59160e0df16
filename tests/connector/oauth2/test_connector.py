"""Tests for OAuth2Connector - endpoint resolution, session scoping and relay."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp.streams import EmptyStreamReader
from aiohttp.test_utils import make_mocked_request
from fakes import CONFIG, FakeExecutor, FakeRefresher, FakeTokenStore

from config.config import ConnectorSettings, EndpointDescriptor
from connector.errors.exceptions import ConfigError
from connector.logging.context import get_log_context
from connector.oauth2.exceptions import InvalidConfigurationError
from connector.oauth2.connector import (
    SESSION_ID_HEADER,
    OAuth2Connector,
    derive_endpoint_id,
    session_id_from_header,
)
from connector.oauth2.models import CallerRequestInfo, RequestContext, TokenPair
from connector.types import ErrorKind


class FakeResolver:
    def __init__(self, configs):
        self.configs = configs
        self.resolved = []

    def resolve(self, endpoint_id):
        self.resolved.append(endpoint_id)
        if endpoint_id not in self.configs:
            raise ConfigError(f"Unknown endpoint '{endpoint_id}'")
        return self.configs[endpoint_id]


def _connector(executor, store=None, refresher=None, **kwargs):
    store = store or FakeTokenStore({("session-1", "salesforce"): TokenPair("A", "R")})
    return OAuth2Connector(
        config_resolver=FakeResolver({"salesforce": CONFIG}),
        token_store=store,
        executor=executor,
        refresher=refresher or FakeRefresher(),
        **kwargs,
    )


class TestDeriveEndpointId:
    @pytest.mark.parametrize(
        "uri,path_info,expected",
        [
            ("/v1/items", "/proxy/salesforce/v1/items", "salesforce"),
            ("", "/proxy/salesforce/", "salesforce"),
            ("/v1/items", "/salesforce/v1/items", "salesforce"),
        ],
    )
    def test_strips_uri_and_proxy_segment(self, uri, path_info, expected):
        assert derive_endpoint_id(uri, path_info) == expected


class TestSessionIdFromHeader:
    def test_reads_session_header(self):
        request = make_mocked_request("GET", "/", headers={SESSION_ID_HEADER: "session-1"})
        assert session_id_from_header(request) == "session-1"

    def test_missing_header_is_none(self):
        assert session_id_from_header(make_mocked_request("GET", "/")) is None


class TestCall:
    @pytest.mark.asyncio
    async def test_derives_endpoint_from_path(self):
        executor = FakeExecutor(200)
        connector = _connector(executor)

        outcome = await connector.call(
            "/v1/items",
            RequestContext(),
            CallerRequestInfo("session-1", "/proxy/salesforce/v1/items"),
        )

        assert outcome.status_code == 200
        assert connector.config_resolver.resolved == ["salesforce"]
        assert executor.calls == [("/v1/items", "OAuth A")]

    @pytest.mark.asyncio
    async def test_token_source_overrides_path(self):
        executor = FakeExecutor(200)
        connector = _connector(executor, token_source="salesforce")

        outcome = await connector.call(
            "/v1/items", RequestContext(), CallerRequestInfo("session-1", "/proxy/other/v1/items")
        )

        assert outcome.status_code == 200
        assert connector.config_resolver.resolved == ["salesforce"]

    @pytest.mark.asyncio
    async def test_unknown_endpoint_returns_err_config(self):
        executor = FakeExecutor()
        connector = _connector(executor)

        outcome = await connector.call(
            "/v1/items", RequestContext(), CallerRequestInfo("session-1", "/proxy/nope/v1/items")
        )

        assert outcome.error.kind == ErrorKind.ERR_CONFIG
        assert outcome.status_code == 500
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_refresh_flow_through_connector(self):
        store = FakeTokenStore({("session-1", "salesforce"): TokenPair("A", "R")})
        executor = FakeExecutor(401, 200)
        connector = _connector(executor, store=store, refresher=FakeRefresher(new_token="B"))

        outcome = await connector.call(
            "/v1/items", RequestContext(), CallerRequestInfo("session-1", "/proxy/salesforce/v1/items")
        )

        assert outcome.status_code == 200
        assert outcome.refreshed
        assert store.saves == [("session-1", "salesforce", TokenPair("B", "R"))]

    @pytest.mark.asyncio
    async def test_log_context_is_restored(self):
        connector = _connector(FakeExecutor(200))

        await connector.call(
            "/v1/items", RequestContext(), CallerRequestInfo("session-1", "/proxy/salesforce/v1/items")
        )

        assert get_log_context()["endpoint_id"] == ""
        assert get_log_context()["session_id"] == ""


class TestHandle:
    @pytest.mark.asyncio
    async def test_relays_final_response(self):
        executor = FakeExecutor(200)
        connector = _connector(executor)
        request = make_mocked_request(
            "GET",
            "/proxy/salesforce/v1/items",
            headers={SESSION_ID_HEADER: "session-1", "Authorization": "Basic caller"},
            payload=EmptyStreamReader(),
        )

        response = await connector.handle(request, "/v1/items")

        assert response.status == 200
        assert executor.calls == [("/v1/items", "OAuth A")]

    @pytest.mark.asyncio
    async def test_caller_cookie_and_session_id_are_not_forwarded(self):
        executor = FakeExecutor(200)
        connector = _connector(executor)
        request = make_mocked_request(
            "GET",
            "/proxy/salesforce/v1/items",
            headers={
                SESSION_ID_HEADER: "session-1",
                "Cookie": "JSESSIONID=abc",
                "Accept": "application/json",
            },
            payload=EmptyStreamReader(),
        )

        response = await connector.handle(request, "/v1/items")

        assert response.status == 200
        forwarded = executor.contexts[0].headers
        assert forwarded == {"Accept": "application/json"}

    @pytest.mark.asyncio
    async def test_missing_session_writes_no_token(self):
        executor = FakeExecutor()
        connector = _connector(executor)
        request = make_mocked_request(
            "GET", "/proxy/salesforce/v1/items", payload=EmptyStreamReader()
        )

        response = await connector.handle(request, "/v1/items")

        assert response.status == 401
        assert json.loads(response.text)["error"]["id"] == "NO_TOKEN"
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_custom_session_getter(self):
        executor = FakeExecutor(204)
        connector = _connector(executor, session_id_getter=lambda request: "session-1")
        request = make_mocked_request(
            "DELETE", "/proxy/salesforce/v1/items", payload=EmptyStreamReader()
        )

        response = await connector.handle(request, "/v1/items")

        assert response.status == 204


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_builds_resolver_and_token_source(self):
        settings = ConnectorSettings(
            client_id="client-1",
            token_url="https://auth.example.com/token",
            token_source="salesforce",
            endpoints={"salesforce": EndpointDescriptor("salesforce", "https://api.example.com")},
        )
        executor = FakeExecutor(200)
        store = FakeTokenStore({("session-1", "salesforce"): TokenPair("A", "R")})

        connector = OAuth2Connector.from_settings(
            settings, store, executor=executor, refresher=FakeRefresher()
        )
        outcome = await connector.call(
            "/v1/items", RequestContext(), CallerRequestInfo("session-1", "/anything")
        )

        assert connector.token_source == "salesforce"
        assert outcome.status_code == 200
        assert executor.calls == [("https://api.example.com/v1/items", "OAuth A")]

    @pytest.mark.asyncio
    async def test_incomplete_endpoint_config_returns_err_config(self):
        settings = ConnectorSettings(endpoints={"salesforce": EndpointDescriptor("salesforce")})
        executor = FakeExecutor()

        connector = OAuth2Connector.from_settings(
            settings, FakeTokenStore(), executor=executor, refresher=FakeRefresher()
        )
        outcome = await connector.call(
            "/v1/items",
            RequestContext(),
            CallerRequestInfo("session-1", "/proxy/salesforce/v1/items"),
        )

        assert outcome.error.kind == ErrorKind.ERR_CONFIG
        assert isinstance(outcome.error.cause, InvalidConfigurationError)
        assert executor.calls == []


class TestClose:
    @pytest.mark.asyncio
    async def test_closes_executor_and_refresher(self):
        executor = MagicMock()
        executor.close = AsyncMock()
        refresher = MagicMock()
        refresher.close = AsyncMock()
        connector = _connector(executor, refresher=refresher)

        await connector.close()

        executor.close.assert_awaited_once()
        refresher.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_errors_are_logged_not_raised(self):
        executor = MagicMock()
        executor.close = AsyncMock(side_effect=RuntimeError("already closed"))
        refresher = MagicMock()
        refresher.close = AsyncMock()
        connector = _connector(executor, refresher=refresher)

        await connector.close()

        refresher.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fakes_without_close_are_skipped(self):
        connector = _connector(FakeExecutor())
        await connector.close()
