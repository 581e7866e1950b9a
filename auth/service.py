"""Authentication services - registration, activation and login flows."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID

from pydantic import ValidationError

from auth.activation_tokens import ActivationTokenManager
from auth.config import AuthConfig
from auth.directory import NotificationSender, UserDirectory
from auth.exceptions import (
    AuthError,
    DuplicateUserError,
    InternalAuthError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidTokenError,
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenNotFoundError,
    UserNotActivatedError,
    UserNotFoundError,
)
from auth.identity_tokens import IdentityTokenIssuer
from auth.password import PasswordHasher
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import LoginRequest, RegisterRequest, User, describe_validation_errors
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_TOKEN_FAILURE_REASONS = {
    TokenNotFoundError: "not_found",
    TokenExpiredError: "expired",
    TokenAlreadyConsumedError: "already_consumed",
}


@contextmanager
def _internal_errors(operation: str):
    """Let typed auth errors through; log anything else and raise InternalAuthError."""
    try:
        yield
    except AuthError:
        raise
    except Exception as e:
        logger.exception(f"{operation} failed")
        raise InternalAuthError(f"{operation} failed") from e


@dataclass
class RegistrationResult:
    """Result of a registration request."""

    user_id: UUID
    reissued: bool


@dataclass
class ActivationResult:
    user_id: UUID


@dataclass
class LoginResult:
    user_id: UUID
    token: str


class RegistrationService:
    """Creates PENDING accounts and mails their activation link.

    Handles:
    - Input validation before any side effect
    - Duplicate detection (email and username)
    - Re-issuing a link to a PENDING account whose first email never arrived
    """

    def __init__(
        self,
        config: AuthConfig,
        directory: UserDirectory,
        token_manager: ActivationTokenManager,
        hasher: PasswordHasher,
        notifier: NotificationSender,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._directory = directory
        self._token_manager = token_manager
        self._hasher = hasher
        self._notifier = notifier
        self._security_logger = security_logger

    def _validate(self, email: str, username: str, password: str) -> RegisterRequest:
        """Raises InvalidInputError on any malformed field."""
        try:
            request = RegisterRequest(email=email, username=username, password=password)
        except ValidationError as e:
            raise InvalidInputError(describe_validation_errors(e.errors())) from e

        if len(password) < self._config.password_min_length:
            raise InvalidInputError(
                f"password: must be at least {self._config.password_min_length} characters"
            )
        if len(password.encode("utf-8")) > PasswordHasher.MAX_PASSWORD_BYTES:
            raise InvalidInputError(
                f"password: must be at most {PasswordHasher.MAX_PASSWORD_BYTES} bytes"
            )
        return request

    def register(
        self,
        email: str,
        username: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RegistrationResult:
        """Register a new PENDING user and send the activation email.

        Flow:
        1. Validate input
        2. Existing email -> re-issue policy, existing username -> duplicate
        3. Hash password
        4. Insert PENDING user
        5. Issue activation token and send link

        Raises:
            InvalidInputError: Malformed email, blank username, bad password length.
            DuplicateUserError: Email or username already registered.
            InternalAuthError: Storage, hashing or email failure.
        """
        request = self._validate(email, username, password)
        email = request.email.lower()
        username = request.username

        with _internal_errors("Registration"):
            existing = self._directory.get_user_by_email(email)
            if existing is not None:
                return self._reissue(existing, username, password, ip_address, user_agent)

            if self._directory.get_user_by_username(username) is not None:
                self._reject(email, None, "username_taken", ip_address, user_agent)
                raise DuplicateUserError("User already exists")

            password_hash = self._hasher.hash(password)
            # DuplicateUserError here means a concurrent registration won the race
            user = self._directory.insert_user(email, username, password_hash)

            self._send_activation(user, ip_address, user_agent)

            self._security_logger.log(
                SecurityEvent.REGISTRATION_SUCCEEDED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return RegistrationResult(user_id=user.id, reissued=False)

    def _reissue(
        self,
        existing: User,
        username: str,
        password: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> RegistrationResult:
        """Send a fresh link to a PENDING account with no live token.

        Only the original registrant can trigger this: username and password
        must match what was stored. Anything else is a plain duplicate.
        """
        if existing.is_active:
            self._reject(existing.email, existing.id, "already_active", ip_address, user_agent)
            raise DuplicateUserError("User already exists")

        if existing.username != username or self._token_manager.has_live_token(existing.id):
            self._reject(existing.email, existing.id, "pending_duplicate", ip_address, user_agent)
            raise DuplicateUserError("User already exists")

        if not self._hasher.verify(password, existing.password_hash):
            self._reject(existing.email, existing.id, "pending_password_mismatch", ip_address, user_agent)
            raise DuplicateUserError("User already exists")

        self._send_activation(existing, ip_address, user_agent)

        self._security_logger.log(
            SecurityEvent.REGISTRATION_REISSUED,
            email=existing.email,
            user_id=existing.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return RegistrationResult(user_id=existing.id, reissued=True)

    def _send_activation(self, user: User, ip_address: str | None, user_agent: str | None) -> None:
        """Issue a token and email it. On failure, revoke tokens so a retry can re-issue.

        Raises:
            InternalAuthError: If issuing or sending failed.
        """
        try:
            token = self._token_manager.issue(user.id)
            self._notifier.send_activation_link(
                user.email,
                self._config.activation_link(token.token),
            )
        except Exception as e:
            logger.error(f"Activation delivery failed for user {user.id}: {type(e).__name__}: {e}")
            self._revoke_after_failure(user.id)
            self._security_logger.log(
                SecurityEvent.REGISTRATION_FAILED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": type(e).__name__},
            )
            raise InternalAuthError("Could not send activation email") from e

        self._security_logger.log(
            SecurityEvent.ACTIVATION_EMAIL_SENT,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
        )

    def _revoke_after_failure(self, user_id: UUID) -> None:
        try:
            self._token_manager.revoke_for_user(user_id)
        except Exception:
            # Retry stays blocked until the token expires
            logger.exception(f"Could not revoke activation tokens for user {user_id}")

    def _reject(
        self,
        email: str,
        user_id: UUID | None,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.REGISTRATION_REJECTED,
            email=email,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"reason": reason},
        )


class ActivationService:
    """Turns a PENDING account ACTIVE by consuming its activation token."""

    def __init__(
        self,
        directory: UserDirectory,
        token_manager: ActivationTokenManager,
        security_logger: SecurityLogger,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._directory = directory
        self._token_manager = token_manager
        self._security_logger = security_logger
        self._clock = clock

    def activate(
        self,
        token_value: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ActivationResult:
        """Consume token and activate its user.

        Token consumption and the status flip share one transaction: if
        the flip fails, the token is left unconsumed.

        Raises:
            InvalidTokenError: Unknown, expired or used token (not distinguished).
            UserNotFoundError: Token is valid but its user is gone.
            InternalAuthError: Storage failure.
        """
        user_id = None

        with _internal_errors("Activation"):
            try:
                with self._directory.transaction():
                    user_id = self._token_manager.validate(token_value)
                    if not self._directory.set_active(user_id, self._clock()):
                        raise UserNotFoundError("User not found")
            except InvalidTokenError as e:
                self._security_logger.log(
                    SecurityEvent.ACTIVATION_FAILED,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    details={"reason": _TOKEN_FAILURE_REASONS.get(type(e), "invalid")},
                )
                raise InvalidTokenError("Invalid or expired token") from e
            except UserNotFoundError:
                logger.error(f"Activation token references missing user {user_id}")
                self._security_logger.log(
                    SecurityEvent.ACTIVATION_ORPHANED_TOKEN,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                raise

            self._security_logger.log(
                SecurityEvent.USER_ACTIVATED,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return ActivationResult(user_id=user_id)


class LoginService:
    """Authenticates email/password and mints identity tokens.

    Unknown email and wrong password are indistinguishable to the caller,
    in both the error raised and the time taken (one bcrypt check each).
    """

    def __init__(
        self,
        directory: UserDirectory,
        hasher: PasswordHasher,
        issuer: IdentityTokenIssuer,
        security_logger: SecurityLogger,
    ):
        self._directory = directory
        self._hasher = hasher
        self._issuer = issuer
        self._security_logger = security_logger

    def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Verify credentials and return a signed identity token.

        Raises:
            InvalidInputError: Missing or malformed fields.
            InvalidCredentialsError: Unknown email or wrong password.
            UserNotActivatedError: Correct password, account still PENDING.
            InternalAuthError: Storage, hashing or signing failure.
        """
        try:
            request = LoginRequest(email=email, password=password)
        except ValidationError as e:
            raise InvalidInputError(describe_validation_errors(e.errors())) from e
        email = request.email.lower()

        with _internal_errors("Login"):
            user = self._directory.get_user_by_email(email)

            if user is None:
                self._hasher.verify_dummy(password)
                self._fail(email, None, "unknown_email", ip_address, user_agent)
                raise InvalidCredentialsError("Invalid email or password")

            if not self._hasher.verify(password, user.password_hash):
                self._fail(email, user.id, "wrong_password", ip_address, user_agent)
                raise InvalidCredentialsError("Invalid email or password")

            if not user.is_active:
                self._security_logger.log(
                    SecurityEvent.LOGIN_NOT_ACTIVATED,
                    email=user.email,
                    user_id=user.id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                raise UserNotActivatedError("Account not activated")

            token = self._issuer.issue(user.id)
            self._directory.update_last_login(user.id)

            if self._hasher.needs_rehash(user.password_hash):
                self._directory.update_password_hash(user.id, self._hasher.hash(password))
                logger.info(f"Rehashed password for user {user.id} with current work factor")

            self._security_logger.log(
                SecurityEvent.LOGIN_SUCCEEDED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return LoginResult(user_id=user.id, token=token)

    def _fail(
        self,
        email: str,
        user_id: UUID | None,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.LOGIN_FAILED,
            email=email,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"reason": reason},
        )
