"""Activation token lifecycle.

A token is Issued at registration and ends either Consumed (activation
succeeded) or Expired. The two terminal states never convert into each
other: an expired token is rejected without being consumed, and a consumed
token stays consumed after its expiry passes.
"""

import re
import secrets
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from auth.config import AuthConfig
from auth.directory import ActivationTokenStore
from auth.exceptions import TokenNotFoundError
from auth.types import ActivationToken
from utils.timezone import now_utc


class ActivationTokenManager:
    """Issues and validates single-use, time-limited activation tokens.

    Single-use under concurrency is the store's job: consumption is one
    conditional write, so of N racing validations exactly one succeeds.
    """

    # token_urlsafe(32) is 43 chars of base64url; anything else is not ours
    MAX_TOKEN_LENGTH = 256
    TOKEN_PATTERN = re.compile(rf"^[A-Za-z0-9_-]{{1,{MAX_TOKEN_LENGTH}}}\Z")

    def __init__(
        self,
        store: ActivationTokenStore,
        config: AuthConfig,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._store = store
        self._default_ttl = timedelta(hours=config.activation_token_expiry_hours)
        self._clock = clock

    def issue(self, user_id: UUID, ttl: timedelta | None = None) -> ActivationToken:
        """Generate and store a new 256-bit token for user_id."""
        now = self._clock()
        token = ActivationToken(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + (ttl if ttl is not None else self._default_ttl),
            consumed=False,
        )
        self._store.store_activation_token(token)
        return token

    def validate(self, token_value: str) -> UUID:
        """Consume token and return the owning user id.

        Raises:
            TokenNotFoundError: Unknown or structurally impossible token.
            TokenExpiredError: Past expiry (not consumed).
            TokenAlreadyConsumedError: Used before, including by a concurrent caller.
        """
        if not token_value or not self.TOKEN_PATTERN.match(token_value):
            raise TokenNotFoundError("Activation token not found")
        return self._store.consume_activation_token(token_value, self._clock())

    def has_live_token(self, user_id: UUID) -> bool:
        """True if user_id holds an unconsumed, unexpired token."""
        return self._store.has_live_activation_token(user_id, self._clock())

    def revoke_for_user(self, user_id: UUID) -> int:
        """Invalidate every outstanding token for user_id."""
        return self._store.revoke_activation_tokens(user_id)

    def cleanup_expired(self) -> int:
        """Delete tokens past their expiry. Returns count deleted."""
        return self._store.cleanup_expired_tokens(self._clock())
