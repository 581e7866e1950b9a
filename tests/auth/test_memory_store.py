"""Tests for InMemoryAuthStore."""

from datetime import timedelta
from uuid import uuid4

import pytest

from auth.exceptions import DuplicateUserError, TokenExpiredError
from auth.types import ActivationToken, UserStatus
from utils.timezone import now_utc


def make_token(user_id, value="tok", hours=24):
    now = now_utc()
    return ActivationToken(
        token=value,
        user_id=user_id,
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        consumed=False,
    )


class TestUsers:
    def test_insert_and_lookup(self, store):
        user = store.insert_user("A@B.com", "u", "hash")

        assert user.status == UserStatus.PENDING
        assert store.get_user_by_email("a@b.COM") == user
        assert store.get_user_by_username("u") == user
        assert store.get_user_by_id(user.id) == user

    @pytest.mark.parametrize("email, username", [("a@b.com", "other"), ("c@d.com", "u")])
    def test_duplicates_rejected(self, store, email, username):
        store.insert_user("a@b.com", "u", "hash")
        with pytest.raises(DuplicateUserError):
            store.insert_user(email, username, "hash")

    def test_set_active_keeps_first_activation_time(self, store):
        user = store.insert_user("a@b.com", "u", "hash")
        first = now_utc()

        assert store.set_active(user.id, first) is True
        store.set_active(user.id, first + timedelta(hours=1))

        assert store.get_user_by_id(user.id).activated_at == first

    def test_set_active_unknown_user(self, store):
        assert store.set_active(uuid4(), now_utc()) is False


class TestTransaction:
    def test_rollback_on_error(self, store):
        user = store.insert_user("a@b.com", "u", "hash")
        store.store_activation_token(make_token(user.id))

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.consume_activation_token("tok", now_utc())
                store.set_active(user.id, now_utc())
                raise RuntimeError("boom")

        assert store.get_activation_token("tok").consumed is False
        assert store.get_user_by_id(user.id).status == UserStatus.PENDING

    def test_commit_on_success(self, store):
        user = store.insert_user("a@b.com", "u", "hash")

        with store.transaction():
            store.set_active(user.id, now_utc())

        assert store.get_user_by_id(user.id).is_active


class TestTokens:
    def test_expiry_boundary_is_exclusive(self, store):
        token = make_token(uuid4())
        store.store_activation_token(token)

        with pytest.raises(TokenExpiredError):
            store.consume_activation_token("tok", token.expires_at)

    def test_cleanup_keeps_live_tokens(self, store):
        user_id = uuid4()
        store.store_activation_token(make_token(user_id, "old", hours=1))
        store.store_activation_token(make_token(user_id, "new", hours=48))

        assert store.cleanup_expired_tokens(now_utc() + timedelta(hours=2)) == 1
        assert store.get_activation_token("new") is not None
