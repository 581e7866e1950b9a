"""HTTP routes for authentication."""

import ipaddress

from fastapi import APIRouter, Request

from api.base import (
    ErrorMessages,
    LoginResponse,
    MessageResponse,
    error_response,
    json_response,
)
from auth.exceptions import (
    DuplicateUserError,
    InternalAuthError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    UserNotActivatedError,
    UserNotFoundError,
)
from auth.service import ActivationService, LoginService, RegistrationService
from auth.types import LoginRequest, RegisterRequest
from utils.user_context import get_current_user_id


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def create_auth_router(
    registration: RegistrationService,
    activation: ActivationService,
    login_service: LoginService,
) -> APIRouter:
    """Create auth router with injected services.

    Handlers are sync: FastAPI runs them in its threadpool, so blocking
    storage calls and bcrypt never stall the event loop.
    """
    router = APIRouter(tags=["auth"])

    @router.post("/register", status_code=201, response_model=MessageResponse)
    def register(request: Request, body: RegisterRequest):
        """Register a new user. An activation email is sent on success."""
        try:
            result = registration.register(
                email=body.email,
                username=body.username,
                password=body.password,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except InvalidInputError as e:
            return error_response(400, str(e))
        except DuplicateUserError:
            return error_response(409, ErrorMessages.DUPLICATE_USER)
        except InternalAuthError:
            return error_response(500, ErrorMessages.INTERNAL_ERROR)

        message = (
            "Activation email re-sent. Please check your inbox."
            if result.reissued
            else "User registered successfully. Please check your email to activate your account."
        )
        return json_response(201, MessageResponse(message=message))

    @router.post("/login", response_model=LoginResponse)
    def login(request: Request, body: LoginRequest):
        """Log in with email and password.

        Returns the identity token in the body and in the Authorization header.
        """
        try:
            result = login_service.login(
                email=body.email,
                password=body.password,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except InvalidInputError as e:
            return error_response(400, str(e))
        except InvalidCredentialsError:
            return error_response(401, ErrorMessages.INVALID_CREDENTIALS)
        except UserNotActivatedError:
            return error_response(401, ErrorMessages.NOT_ACTIVATED)
        except InternalAuthError:
            return error_response(500, ErrorMessages.INTERNAL_ERROR)

        return json_response(
            200,
            LoginResponse(message="Login successful", token=result.token),
            headers={"Authorization": f"Bearer {result.token}"},
        )

    @router.get("/activate/{token}", response_model=MessageResponse)
    def activate(request: Request, token: str):
        """Activate the account the token was issued for."""
        try:
            activation.activate(
                token_value=token,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except InvalidTokenError:
            return error_response(400, ErrorMessages.INVALID_TOKEN)
        except UserNotFoundError:
            return error_response(404, ErrorMessages.USER_NOT_FOUND)
        except InternalAuthError:
            return error_response(500, ErrorMessages.INTERNAL_ERROR)

        return json_response(200, MessageResponse(message="Account activated successfully"))

    @router.get("/me")
    async def get_current_user():
        """Get the user id proven by the bearer token.

        Requires authentication (middleware sets user context).
        """
        try:
            user_id = get_current_user_id()
        except RuntimeError:
            return error_response(401, ErrorMessages.AUTH_REQUIRED)
        return {"user_id": str(user_id)}

    return router
