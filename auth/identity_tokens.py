"""Identity (bearer) token issuance and verification.

Tokens are HS256 JWTs carrying only sub/iat/exp. They are never stored:
a token is valid while its signature checks out and its expiry hasn't
passed, and there is no revocation.
"""

from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

import jwt

from auth.config import AuthConfig
from auth.exceptions import (
    BadSignatureError,
    IdentityTokenExpiredError,
    MalformedTokenError,
)
from auth.types import IdentityClaims
from utils.timezone import from_timestamp, now_utc, to_utc


class IdentityTokenIssuer:
    """Creates and verifies signed identity tokens.

    Expiry is checked against the injected clock, and only after the
    signature has been verified.
    """

    ALGORITHM = "HS256"
    MIN_SECRET_LENGTH = 32
    REQUIRED_CLAIMS = ["sub", "iat", "exp"]

    def __init__(
        self,
        secret_key: str,
        token_expire_hours: int = 24,
        clock: Callable[[], datetime] = now_utc,
    ):
        if not secret_key:
            raise ValueError("JWT secret key cannot be empty")
        if len(secret_key) < self.MIN_SECRET_LENGTH:
            raise ValueError(
                f"JWT secret key must be at least {self.MIN_SECRET_LENGTH} characters"
            )

        self._secret_key = secret_key
        self._ttl = timedelta(hours=token_expire_hours)
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: AuthConfig,
        clock: Callable[[], datetime] = now_utc,
    ) -> "IdentityTokenIssuer":
        return cls(
            secret_key=config.jwt_secret,
            token_expire_hours=config.identity_token_expiry_hours,
            clock=clock,
        )

    def issue(self, user_id: UUID) -> str:
        """Sign a token for user_id, valid for the configured lifetime."""
        issued_at = int(to_utc(self._clock()).timestamp())
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + int(self._ttl.total_seconds()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.ALGORITHM)

    def decode(self, token: str) -> IdentityClaims:
        """Verify token and return its claims.

        Raises:
            BadSignatureError: Signature or algorithm doesn't match.
            MalformedTokenError: Not a JWT, or claims missing/ill-typed.
            IdentityTokenExpiredError: Signature valid, expiry passed.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.ALGORITHM],
                options={
                    # Time claims are checked below against self._clock
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": self.REQUIRED_CLAIMS,
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise BadSignatureError("Identity token signature is invalid") from e
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError(f"Malformed identity token: {e}") from e

        try:
            claims = IdentityClaims(
                subject=UUID(payload["sub"]),
                issued_at=from_timestamp(payload["iat"]),
                expires_at=from_timestamp(payload["exp"]),
            )
        except (AttributeError, TypeError, ValueError, OverflowError, OSError) as e:
            raise MalformedTokenError(f"Malformed identity token claims: {e}") from e

        if to_utc(self._clock()) >= claims.expires_at:
            raise IdentityTokenExpiredError("Identity token has expired")

        return claims

    def verify(self, token: str) -> UUID:
        """Verify token and return the subject user id."""
        return self.decode(token).subject
