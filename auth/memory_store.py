"""In-process UserDirectory and ActivationTokenStore.

For tests and single-process development. Atomicity comes from one
re-entrant lock, which only holds within a single process; production
deployments use AuthDatabase.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict
from uuid import UUID, uuid4

from auth.exceptions import (
    DuplicateUserError,
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenNotFoundError,
)
from auth.types import ActivationToken, User, UserStatus
from utils.timezone import now_utc


class InMemoryAuthStore:
    """Dict-backed auth storage with the same semantics as AuthDatabase.

    transaction() holds the lock for the whole block, and changes made
    inside a block that raises are rolled back.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._users: Dict[UUID, User] = {}
        self._tokens: Dict[str, ActivationToken] = {}

    @contextmanager
    def transaction(self):
        with self._lock:
            users = dict(self._users)
            tokens = dict(self._tokens)
            try:
                yield
            except Exception:
                self._users = users
                self._tokens = tokens
                raise

    # Users

    def insert_user(self, email: str, username: str, password_hash: str) -> User:
        email = email.strip().lower()
        with self._lock:
            for existing in self._users.values():
                if existing.email == email or existing.username == username:
                    raise DuplicateUserError("User already exists")
            user = User(
                id=uuid4(),
                email=email,
                username=username,
                password_hash=password_hash,
                status=UserStatus.PENDING,
                created_at=now_utc(),
            )
            self._users[user.id] = user
            return user

    def get_user_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        with self._lock:
            return next((u for u in self._users.values() if u.email == email), None)

    def get_user_by_username(self, username: str) -> User | None:
        with self._lock:
            return next((u for u in self._users.values() if u.username == username), None)

    def get_user_by_id(self, user_id: UUID) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def set_active(self, user_id: UUID, activated_at: datetime) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            self._users[user_id] = user.model_copy(
                update={
                    "status": UserStatus.ACTIVE,
                    "activated_at": user.activated_at or activated_at,
                }
            )
            return True

    def update_last_login(self, user_id: UUID) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                self._users[user_id] = user.model_copy(update={"last_login_at": now_utc()})

    def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                self._users[user_id] = user.model_copy(update={"password_hash": password_hash})

    # Activation tokens

    def store_activation_token(self, token: ActivationToken) -> None:
        with self._lock:
            self._tokens[token.token] = token

    def get_activation_token(self, token: str) -> ActivationToken | None:
        with self._lock:
            return self._tokens.get(token)

    def consume_activation_token(self, token: str, now: datetime) -> UUID:
        with self._lock:
            existing = self._tokens.get(token)
            if existing is None:
                raise TokenNotFoundError("Activation token not found")
            if existing.consumed:
                raise TokenAlreadyConsumedError("Activation token already used")
            if now >= existing.expires_at:
                raise TokenExpiredError("Activation token has expired")
            self._tokens[token] = existing.model_copy(update={"consumed": True})
            return existing.user_id

    def has_live_activation_token(self, user_id: UUID, now: datetime) -> bool:
        with self._lock:
            return any(
                t.user_id == user_id and not t.consumed and now < t.expires_at
                for t in self._tokens.values()
            )

    def revoke_activation_tokens(self, user_id: UUID) -> int:
        with self._lock:
            doomed = [k for k, t in self._tokens.items() if t.user_id == user_id and not t.consumed]
            for key in doomed:
                del self._tokens[key]
            return len(doomed)

    def cleanup_expired_tokens(self, now: datetime) -> int:
        with self._lock:
            doomed = [k for k, t in self._tokens.items() if t.expires_at < now]
            for key in doomed:
                del self._tokens[key]
            return len(doomed)
