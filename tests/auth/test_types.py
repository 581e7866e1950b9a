"""Tests for auth domain models and request validation."""

from uuid import uuid4

import pytest
from pydantic import ValidationError

from auth.types import (
    LoginRequest,
    RegisterRequest,
    User,
    UserStatus,
    describe_validation_errors,
)
from utils.timezone import now_utc


class TestUser:
    def test_is_active(self):
        user = User(
            id=uuid4(),
            email="a@b.com",
            username="u",
            password_hash="$2b$04$hash",
            status=UserStatus.ACTIVE,
            created_at=now_utc(),
        )
        assert user.is_active

    def test_hash_not_in_repr(self):
        user = User(
            id=uuid4(),
            email="a@b.com",
            username="u",
            password_hash="$2b$04$secret-hash",
            status=UserStatus.PENDING,
            created_at=now_utc(),
        )
        assert "secret-hash" not in repr(user)
        assert not user.is_active


class TestRegisterRequest:
    def test_valid(self):
        request = RegisterRequest(email="a@b.com", username=" u ", password="password1")
        assert request.username == "u"

    @pytest.mark.parametrize(
        "fields",
        [
            {"email": "nope", "username": "u", "password": "password1"},
            {"email": "a@b.com", "username": "   ", "password": "password1"},
            {"email": "a@b.com", "username": "x" * 65, "password": "password1"},
            {"email": "a@b.com", "username": "ab\x00cd", "password": "password1"},
            {"email": "a@b.com", "username": "tab\tname", "password": "password1"},
            {"email": "a@b.com", "username": "u", "password": "pass\x00word1"},
            {"email": "a@b.com", "username": "u", "password": "1234567"},
            {"email": "a@b.com", "username": "u", "password": "x" * 73},
        ],
    )
    def test_invalid(self, fields):
        with pytest.raises(ValidationError):
            RegisterRequest(**fields)


class TestLoginRequest:
    def test_short_password_allowed(self):
        assert LoginRequest(email="a@b.com", password="x").password == "x"

    def test_empty_password_rejected(self):
        with pytest.raises(ValidationError):
            LoginRequest(email="a@b.com", password="")


class TestDescribeValidationErrors:
    def test_strips_body_prefix(self):
        errors = [{"loc": ("body", "password"), "msg": "too short", "input": "secret"}]
        assert describe_validation_errors(errors) == "password: too short"

    def test_joins_errors_without_input(self):
        errors = [
            {"loc": ("email",), "msg": "bad email", "input": "x"},
            {"loc": (), "msg": "bad body"},
        ]
        assert describe_validation_errors(errors) == "email: bad email; bad body"

    def test_empty(self):
        assert describe_validation_errors([]) == "Invalid input"
