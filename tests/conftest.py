"""Shared test fixtures for the auth service test suite."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from auth.activation_tokens import ActivationTokenManager
from auth.config import AuthConfig
from auth.identity_tokens import IdentityTokenIssuer
from auth.memory_store import InMemoryAuthStore
from auth.password import PasswordHasher
from auth.security_logger import SecurityLogger
from auth.service import ActivationService, LoginService, RegistrationService
from clients.email_client import EmailGatewayClient
from utils.user_context import clear_current_user_id


# =============================================================================
# TEST CONSTANTS
# =============================================================================

TEST_JWT_SECRET = "test-signing-secret-0123456789abcdef0123"
TEST_EMAIL = "a@b.com"
TEST_USERNAME = "u"
TEST_PASSWORD = "password1"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def clock():
    """Fake clock starting at the current real time."""
    return FakeClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def config():
    """Test config with the cheapest bcrypt cost."""
    return AuthConfig(
        jwt_secret=TEST_JWT_SECRET,
        activation_base_url="https://auth.example.com/activate/",
        bcrypt_rounds=4,
        hash_workers=2,
    )


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================


@pytest.fixture
def store():
    """In-memory directory and token store."""
    return InMemoryAuthStore()


@pytest.fixture
def hasher(config):
    hasher = PasswordHasher.from_config(config)
    yield hasher
    hasher.shutdown()


@pytest.fixture
def token_manager(store, config, clock):
    return ActivationTokenManager(store, config, clock=clock)


@pytest.fixture
def issuer(config, clock):
    return IdentityTokenIssuer.from_config(config, clock=clock)


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    mock = Mock(spec=EmailGatewayClient)
    mock.send_activation_link.return_value = None
    return mock


@pytest.fixture
def mock_security_logger():
    """Mock security logger - audit rows are not the subject of most tests."""
    return Mock(spec=SecurityLogger)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def registration_service(config, store, token_manager, hasher, mock_email_client, mock_security_logger):
    return RegistrationService(
        config=config,
        directory=store,
        token_manager=token_manager,
        hasher=hasher,
        notifier=mock_email_client,
        security_logger=mock_security_logger,
    )


@pytest.fixture
def activation_service(store, token_manager, mock_security_logger, clock):
    return ActivationService(
        directory=store,
        token_manager=token_manager,
        security_logger=mock_security_logger,
        clock=clock,
    )


@pytest.fixture
def login_service(store, hasher, issuer, mock_security_logger):
    return LoginService(
        directory=store,
        hasher=hasher,
        issuer=issuer,
        security_logger=mock_security_logger,
    )


@pytest.fixture
def sent_token(mock_email_client):
    """Return the activation token from the most recent email sent."""

    def _latest() -> str:
        link = mock_email_client.send_activation_link.call_args.args[1]
        return link.rsplit("/", 1)[1]

    return _latest
