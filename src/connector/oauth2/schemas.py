"""
Wire schemas for the OAuth2 connector.

Contains Pydantic models for the token endpoint response consumed by the
refresher and the error payload written to callers.
"""

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """Schema for a successful refresh-token grant response.

    Only access_token is required. Providers commonly add token_type,
    expires_in and scope; those are kept but not interpreted.

    Example:
        >>> TokenResponse.model_validate_json('{"access_token": "abc"}').access_token
        'abc'
    """

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(..., description="Newly issued access token", min_length=1)
    token_type: str | None = Field(default=None, description="Token type (e.g. Bearer)")
    refresh_token: str | None = Field(
        default=None, description="Rotated refresh token, if the provider issued one"
    )


class ErrorBody(BaseModel):
    """Schema for the error object written to callers."""

    id: str = Field(..., description="Machine-readable error id (e.g. NO_TOKEN)")
    message: str = Field(..., description="Human-readable description")
    exceptionMessage: str | None = Field(
        default=None, description="Message of the underlying exception"
    )
    stackTrace: str | None = Field(
        default=None, description="Formatted traceback of the underlying exception"
    )


class ErrorPayload(BaseModel):
    """Envelope for error responses: {"error": {...}}."""

    error: ErrorBody


__all__ = ["TokenResponse", "ErrorBody", "ErrorPayload"]
