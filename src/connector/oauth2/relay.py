"""
Relay of call outcomes onto the caller-facing aiohttp response.

Only the orchestrator's final choice is written here; earlier attempts live
in memory and are discarded, so nothing partial is sent before the retry
decision is made.
"""

import logging
from collections.abc import Mapping

from aiohttp import web

from connector.errors.exceptions import ResponseCopyError, wrap_exception
from connector.oauth2.executor import HOP_BY_HOP_HEADERS
from connector.oauth2.models import CallOutcome, CallResult, StructuredError
from connector.types import ErrorKind

logger = logging.getLogger(__name__)

MSG_COPY_RESPONSE = "Error encountered copying outputstream"

# aiohttp decodes compressed bodies, so the upstream encoding no longer applies
EXCLUDED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}


def relayable_headers(headers: Mapping[str, str]) -> list[tuple[str, str]]:
    """Response headers that may be copied to the caller, repeats included."""
    return [
        (name, value)
        for name, value in headers.items()
        if name.lower() not in EXCLUDED_RESPONSE_HEADERS
    ]


async def copy_response(
    result: CallResult,
    request: web.BaseRequest,
    response: web.StreamResponse | None = None,
) -> web.StreamResponse:
    """
    Copy a materialised result onto a caller-facing streaming response.

    Args:
        result: Final result chosen by the orchestrator
        request: Incoming aiohttp request the response belongs to
        response: Response to write to (created if None)

    Returns:
        The prepared and completed response

    Raises:
        ResponseCopyError: If writing status, headers or body fails
    """
    response = response or web.StreamResponse()
    try:
        response.set_status(result.status_code)
        for name, value in relayable_headers(result.headers):
            response.headers.add(name, value)
        response.content_length = len(result.body)
        await response.prepare(request)
        await response.write(result.body)
        await response.write_eof()
    except (OSError, RuntimeError, ValueError) as e:
        raise wrap_exception(e, ResponseCopyError, MSG_COPY_RESPONSE) from e
    return response


def error_response(error: StructuredError) -> web.Response:
    """Build a JSON error response carrying the structured error payload."""
    return web.Response(
        status=error.status_code,
        text=error.to_json(),
        content_type="application/json",
    )


async def relay_outcome(outcome: CallOutcome, request: web.BaseRequest) -> web.StreamResponse:
    """
    Write a call outcome to the caller.

    Relayed results are copied verbatim; structured errors become JSON error
    responses. A copy failure before anything was sent is reported as
    ERR_COPY_RESPONSE; once headers are out the connection is left to fail.
    """
    if outcome.error is not None:
        return error_response(outcome.error)

    if outcome.result is None:
        raise ValueError("CallOutcome has neither a result nor an error")
    response = web.StreamResponse()
    try:
        return await copy_response(outcome.result, request, response)
    except ResponseCopyError as e:
        logger.error(
            f"{MSG_COPY_RESPONSE}: {e}",
            extra={"error_code": ErrorKind.ERR_COPY_RESPONSE.value},
        )
        if response.prepared:
            raise
        return error_response(StructuredError.from_exception(e, MSG_COPY_RESPONSE))


__all__ = [
    "MSG_COPY_RESPONSE",
    "EXCLUDED_RESPONSE_HEADERS",
    "copy_response",
    "error_response",
    "relay_outcome",
    "relayable_headers",
]
