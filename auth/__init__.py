"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidInputError,
    DuplicateUserError,
    InvalidCredentialsError,
    UserNotActivatedError,
    InvalidTokenError,
    TokenNotFoundError,
    TokenExpiredError,
    TokenAlreadyConsumedError,
    MalformedTokenError,
    BadSignatureError,
    IdentityTokenExpiredError,
    UserNotFoundError,
    InternalAuthError,
    HashError,
)
from auth.types import (
    User,
    UserStatus,
    ActivationToken,
    IdentityClaims,
    RegisterRequest,
    LoginRequest,
)
from auth.config import AuthConfig, load_auth_config
from auth.directory import UserDirectory, ActivationTokenStore, NotificationSender
from auth.database import AuthDatabase
from auth.memory_store import InMemoryAuthStore
from auth.password import PasswordHasher
from auth.activation_tokens import ActivationTokenManager
from auth.identity_tokens import IdentityTokenIssuer
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import (
    RegistrationService,
    ActivationService,
    LoginService,
    RegistrationResult,
    ActivationResult,
    LoginResult,
)
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
