"""Application assembly.

`create_app` wires explicit collaborators (used by tests); run the service
with an ASGI server using the factory, e.g. `uvicorn api.app:create_app_from_env --factory`.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.activation_tokens import ActivationTokenManager
from auth.api import create_auth_router
from auth.config import AuthConfig, load_auth_config
from auth.database import AuthDatabase
from auth.directory import ActivationTokenStore, NotificationSender, UserDirectory
from auth.identity_tokens import IdentityTokenIssuer
from auth.password import PasswordHasher
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import ActivationService, LoginService, RegistrationService
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url, get_email_config

logger = logging.getLogger(__name__)


async def purge_expired_tokens(token_manager: ActivationTokenManager, interval_seconds: float) -> None:
    """Delete expired activation tokens every interval until cancelled.

    A failed pass is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await asyncio.to_thread(token_manager.cleanup_expired)
        except Exception:
            logger.exception("Expired activation token cleanup failed")
            continue
        if removed:
            logger.info(f"Deleted {removed} expired activation tokens")


def create_app(
    config: AuthConfig,
    directory: UserDirectory,
    token_store: ActivationTokenStore,
    notifier: NotificationSender,
    security_logger: SecurityLogger,
    hasher: PasswordHasher | None = None,
    issuer: IdentityTokenIssuer | None = None,
) -> FastAPI:
    """Build the FastAPI app around the given collaborators."""
    hasher = hasher or PasswordHasher.from_config(config)
    issuer = issuer or IdentityTokenIssuer.from_config(config)
    token_manager = ActivationTokenManager(token_store, config)

    registration = RegistrationService(
        config=config,
        directory=directory,
        token_manager=token_manager,
        hasher=hasher,
        notifier=notifier,
        security_logger=security_logger,
    )
    activation = ActivationService(
        directory=directory,
        token_manager=token_manager,
        security_logger=security_logger,
    )
    login = LoginService(
        directory=directory,
        hasher=hasher,
        issuer=issuer,
        security_logger=security_logger,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cleanup = asyncio.create_task(
            purge_expired_tokens(token_manager, config.token_cleanup_interval_minutes * 60)
        )
        yield
        cleanup.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup
        hasher.shutdown()

    app = FastAPI(
        title="Authentication Service API",
        version="1.0.0",
        description="API for user registration, activation and login.",
        lifespan=lifespan,
    )

    # Last added runs first: request id is assigned before auth
    app.add_middleware(AuthMiddleware, issuer=issuer)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_auth_router(registration, activation, login))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def create_app_from_env() -> FastAPI:
    """Build the production app: Postgres storage, email gateway, Vault secrets."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_auth_config()
    postgres = PostgresClient(get_database_url())
    auth_db = AuthDatabase(postgres)

    app = create_app(
        config=config,
        directory=auth_db,
        token_store=auth_db,
        notifier=EmailGatewayClient(**get_email_config()),
        security_logger=SecurityLogger(postgres),
    )
    logger.info("Authentication service configured")
    return app
