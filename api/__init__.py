"""API modules for HTTP interface."""

from api.base import (
    ErrorMessages,
    ErrorResponse,
    LoginResponse,
    MessageResponse,
    error_response,
    json_response,
)
