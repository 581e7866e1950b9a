"""Tests for SecurityLogger - auth event audit trail."""

from unittest.mock import Mock
from uuid import uuid4

import pytest
from psycopg2.extras import Json

from auth.security_logger import SecurityEvent, SecurityLogger
from clients.postgres_client import PostgresClient


@pytest.fixture
def db():
    return Mock(spec=PostgresClient)


@pytest.fixture
def security_logger(db):
    return SecurityLogger(db)


class TestLogEvent:
    """Test event logging."""

    def test_inserts_event(self, security_logger, db):
        user_id = uuid4()
        security_logger.log(
            SecurityEvent.LOGIN_FAILED,
            email="a@b.com",
            user_id=user_id,
            ip_address="192.168.1.1",
            details={"reason": "wrong_password"},
        )

        query, params = db.execute_returning.call_args.args
        assert "INSERT INTO security_events" in query
        assert params[:5] == ("login_failed", "a@b.com", str(user_id), "192.168.1.1", None)
        assert isinstance(params[5], Json)

    def test_optional_fields_are_null(self, security_logger, db):
        security_logger.log(SecurityEvent.ACTIVATION_FAILED)

        params = db.execute_returning.call_args.args[1]
        assert params[1:6] == (None, None, None, None, None)

