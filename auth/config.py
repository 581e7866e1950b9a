"""Authentication configuration."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from clients.vault_client import get_jwt_secret

logger = logging.getLogger(__name__)


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Immutable once built. Every component receives it explicitly at
    construction; nothing reads settings from module globals.
    """

    model_config = {"frozen": True}

    # Identity (bearer) tokens
    jwt_secret: str = Field(
        ...,
        description="HMAC secret used to sign identity tokens",
        min_length=32,
        repr=False,
    )
    identity_token_expiry_hours: int = Field(
        default=24,
        description="Identity token lifetime in hours",
        ge=1,
        le=720,
    )

    # Activation tokens
    activation_token_expiry_hours: int = Field(
        default=24,
        description="How long activation links remain valid",
        ge=1,
        le=168,
    )
    activation_base_url: str = Field(
        default="http://localhost:8080/activate",
        description="Base URL the activation token is appended to",
    )
    token_cleanup_interval_minutes: int = Field(
        default=60,
        description="How often expired activation tokens are deleted",
        ge=1,
        le=1440,
    )

    # Password hashing
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt work factor (log2 of iterations)",
        ge=4,
        le=31,
    )
    hash_workers: int = Field(
        default=4,
        description="Size of the worker pool that runs bcrypt",
        ge=1,
        le=64,
    )
    hash_timeout_seconds: float = Field(
        default=10.0,
        description="Maximum wait for a hash or verify before failing",
        gt=0,
    )
    password_min_length: int = Field(
        default=8,
        description="Minimum password length at registration",
        ge=8,
        le=72,
    )

    @field_validator("activation_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("activation_base_url must be an http(s) URL")
        return value.rstrip("/")

    def activation_link(self, token: str) -> str:
        """Build the link mailed to a registrant."""
        return f"{self.activation_base_url}/{token}"


# Environment variable -> AuthConfig field, for non-secret settings
_ENV_FIELDS = {
    "ACTIVATE_BASE_URL": "activation_base_url",
    "ACTIVATION_TOKEN_EXPIRY_HOURS": "activation_token_expiry_hours",
    "IDENTITY_TOKEN_EXPIRY_HOURS": "identity_token_expiry_hours",
    "BCRYPT_ROUNDS": "bcrypt_rounds",
    "HASH_WORKERS": "hash_workers",
    "HASH_TIMEOUT_SECONDS": "hash_timeout_seconds",
    "TOKEN_CLEANUP_INTERVAL_MINUTES": "token_cleanup_interval_minutes",
}


def load_auth_config(env_file: Path | None = None) -> AuthConfig:
    """Build AuthConfig from .env / environment, with the signing secret from Vault.

    Raises:
        pydantic.ValidationError: If any setting is out of bounds.
        VaultError / PermissionError: If the signing secret can't be read.
    """
    if not load_dotenv(env_file):
        logger.info(".env file not found, using process environment")

    values = {
        field: os.environ[var]
        for var, field in _ENV_FIELDS.items()
        if os.environ.get(var)
    }
    return AuthConfig(jwt_secret=get_jwt_secret(), **values)
