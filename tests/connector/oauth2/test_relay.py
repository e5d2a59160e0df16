"""Tests for relaying call outcomes onto aiohttp responses."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request
from multidict import CIMultiDict

from connector.errors.exceptions import ResponseCopyError
from connector.oauth2.models import CallOutcome, CallResult, StructuredError
from connector.oauth2.relay import (
    MSG_COPY_RESPONSE,
    copy_response,
    error_response,
    relay_outcome,
    relayable_headers,
)
from connector.types import ErrorKind


class TestRelayableHeaders:
    def test_drops_hop_by_hop_length_and_encoding(self):
        headers = {
            "Content-Type": "application/json",
            "Content-Length": "10",
            "Content-Encoding": "gzip",
            "Transfer-Encoding": "chunked",
            "Connection": "close",
            "X-Request-Id": "abc",
        }
        assert relayable_headers(headers) == [
            ("Content-Type", "application/json"),
            ("X-Request-Id", "abc"),
        ]


class TestCopyResponse:
    @pytest.mark.asyncio
    async def test_copies_status_headers_and_body(self):
        request = make_mocked_request("GET", "/proxy/salesforce/v1/items")
        result = CallResult(
            status_code=404,
            headers={"Content-Type": "application/json", "X-Request-Id": "abc"},
            body=b'{"missing": true}',
        )

        response = await copy_response(result, request)

        assert response.status == 404
        assert response.headers["X-Request-Id"] == "abc"
        assert response.content_length == len(result.body)
        assert response.prepared

    @pytest.mark.asyncio
    async def test_repeated_headers_are_all_copied(self):
        request = make_mocked_request("GET", "/proxy/salesforce/v1/items")
        result = CallResult(
            status_code=200,
            headers=CIMultiDict(
                [("Set-Cookie", "a=1; Path=/"), ("Set-Cookie", "b=2; Path=/"), ("Vary", "Accept")]
            ),
            body=b"ok",
        )

        response = await copy_response(result, request)

        assert response.headers.getall("Set-Cookie") == ["a=1; Path=/", "b=2; Path=/"]
        assert response.headers["Vary"] == "Accept"

    @pytest.mark.asyncio
    async def test_write_failure_raises_copy_error(self):
        response = MagicMock()
        response.headers = {}
        response.prepare = AsyncMock(side_effect=ConnectionResetError("peer gone"))

        with pytest.raises(ResponseCopyError) as exc_info:
            await copy_response(CallResult(status_code=200, body=b"x"), MagicMock(), response)

        assert exc_info.value.kind == ErrorKind.ERR_COPY_RESPONSE
        assert isinstance(exc_info.value.cause, ConnectionResetError)


class TestErrorResponse:
    def test_no_token_is_401_json(self):
        response = error_response(StructuredError(ErrorKind.NO_TOKEN, "No access token is present"))

        assert response.status == 401
        assert response.content_type == "application/json"
        assert json.loads(response.text)["error"]["id"] == "NO_TOKEN"

    def test_other_kinds_are_500(self):
        response = error_response(StructuredError(ErrorKind.ERR_REFRESH_TOKEN, "refresh failed"))
        assert response.status == 500


class TestRelayOutcome:
    @pytest.mark.asyncio
    async def test_error_outcome_writes_error_payload(self):
        request = make_mocked_request("GET", "/proxy/salesforce/v1/items")
        outcome = CallOutcome(error=StructuredError(ErrorKind.ERR_CONFIG, "unknown endpoint"))

        response = await relay_outcome(outcome, request)

        assert isinstance(response, web.Response)
        assert response.status == 500
        assert json.loads(response.text)["error"]["id"] == "ERR_CONFIG"

    @pytest.mark.asyncio
    async def test_result_outcome_is_copied(self):
        request = make_mocked_request("GET", "/proxy/salesforce/v1/items")
        outcome = CallOutcome(result=CallResult(status_code=200, body=b"ok"), attempts=1)

        response = await relay_outcome(outcome, request)

        assert response.status == 200
        assert response.prepared

    @pytest.mark.asyncio
    async def test_copy_failure_before_headers_falls_back_to_error(self):
        request = make_mocked_request("GET", "/proxy/salesforce/v1/items")
        outcome = CallOutcome(result=CallResult(status_code=200, body=b"ok"), attempts=1)

        with patch(
            "connector.oauth2.relay.copy_response",
            AsyncMock(side_effect=ResponseCopyError(MSG_COPY_RESPONSE)),
        ):
            response = await relay_outcome(outcome, request)

        assert response.status == 500
        payload = json.loads(response.text)["error"]
        assert payload["id"] == "ERR_COPY_RESPONSE"
        assert payload["message"] == MSG_COPY_RESPONSE

    @pytest.mark.asyncio
    async def test_outcome_without_result_or_error_raises_value_error(self):
        request = make_mocked_request("GET", "/proxy/salesforce/v1/items")

        with pytest.raises(ValueError, match="neither a result nor an error"):
            await relay_outcome(CallOutcome(), request)
