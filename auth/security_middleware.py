"""Security middleware for FastAPI - bearer token validation and user context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from api.base import ErrorMessages, error_response
from auth.exceptions import InvalidTokenError
from auth.identity_tokens import IdentityTokenIssuer
from utils.user_context import set_current_user_id, clear_current_user_id


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that verifies identity tokens and sets user context.

    For protected routes:
    1. Extracts the token from 'Authorization: Bearer <token>'
    2. Verifies signature and expiry via IdentityTokenIssuer
    3. Sets user_id in request.state and user context
    4. Clears context after request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = {
        "/register",
        "/login",
        "/health",
        "/docs",
        "/openapi.json",
    }
    # Only the activation route takes a path parameter
    PUBLIC_PREFIXES = ("/activate/",)

    def __init__(self, app, issuer: IdentityTokenIssuer):
        super().__init__(app)
        self._issuer = issuer

    def _is_public_path(self, path: str) -> bool:
        """Exact match on public paths, prefix match only for PUBLIC_PREFIXES."""
        return path in self.PUBLIC_PATHS or path.startswith(self.PUBLIC_PREFIXES)

    @staticmethod
    def _bearer_token(request: Request) -> str | None:
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        token = self._bearer_token(request)
        if token is None:
            return error_response(
                401,
                ErrorMessages.AUTH_REQUIRED,
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            user_id = self._issuer.verify(token)
        except InvalidTokenError:
            return error_response(
                401,
                ErrorMessages.INVALID_TOKEN,
                headers={"WWW-Authenticate": 'Bearer error="invalid_token"'},
            )

        set_current_user_id(user_id)
        request.state.user_id = user_id

        try:
            return await call_next(request)
        finally:
            # Always clear context
            clear_current_user_id()
