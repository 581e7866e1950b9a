"""Response bodies shared by every endpoint.

Success bodies carry `message` (plus `token` on login); every error body
is exactly `{"error": <description>}`.
"""

from typing import Any, Mapping

from pydantic import BaseModel, Field
from starlette.responses import JSONResponse


class MessageResponse(BaseModel):
    """Success body for register and activate."""

    message: str = Field(..., description="Human-readable outcome")


class LoginResponse(BaseModel):
    """Success body for login. The token is also sent in the Authorization header."""

    message: str
    token: str = Field(..., description="Signed identity token (JWT)")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str = Field(..., description="Human-readable error description")


def json_response(
    status_code: int,
    body: BaseModel,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Serialize a response model with the given status."""
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=dict(headers) if headers else None,
    )


def error_response(status_code: int, message: str, headers: Mapping[str, Any] | None = None) -> JSONResponse:
    """Create an error response."""
    return json_response(status_code, ErrorResponse(error=message), headers)


class ErrorMessages:
    """
    Client-facing error descriptions.

    Deliberately coarse: nothing here tells a caller whether an account
    exists or why a token was rejected.
    """

    INVALID_CREDENTIALS = "Invalid email or password"
    NOT_ACTIVATED = "Account not activated"
    DUPLICATE_USER = "User already exists"
    INVALID_TOKEN = "Invalid or expired token"
    USER_NOT_FOUND = "User not found"
    AUTH_REQUIRED = "Authentication required"
    INTERNAL_ERROR = "Internal server error"
