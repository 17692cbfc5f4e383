"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import StoreUnavailableError, register_error_handlers
from infrastructure.http_client import HttpClient
from infrastructure.notifier.dispatcher import NotificationDispatcher
from infrastructure.notifier.log_notifier import LogNotifier
from infrastructure.notifier.zeptomail import ZeptoMailNotifier
from infrastructure.store.memory_store import MemoryKeyValueStore
from infrastructure.store.redis_store import RedisKeyValueStore, create_redis_client
from infrastructure.user_directory.mongo import MongoUserDirectory, NullUserDirectory
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.internal_routes import router as internal_router
from services.auth_service import AuthService
from services.challenge_service import ChallengeService
from services.credential_issuer import CredentialIssuer
from services.revocation import RevocationCoordinator
from services.session_registry import SessionRegistry
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_auth_service(
    settings: AppSettings, store, directory, dispatcher: NotificationDispatcher
) -> AuthService:
    """Wire the auth components around one store handle."""
    issuer = CredentialIssuer(settings.jwt)
    registry = SessionRegistry(
        store,
        session_ttl_seconds=settings.jwt.refresh_token_ttl_seconds,
        device_id_salt=settings.session.device_id_salt,
        retry_attempts=settings.session.revoke_retry_attempts,
        retry_backoff_seconds=settings.session.revoke_retry_backoff_seconds,
    )
    challenges = ChallengeService(
        store,
        code_length=settings.otp.otp_length,
        max_attempts=settings.otp.otp_max_attempts,
    )
    revocation = RevocationCoordinator(registry, challenges, directory, dispatcher)
    return AuthService(
        issuer=issuer,
        registry=registry,
        challenges=challenges,
        revocation=revocation,
        directory=directory,
        dispatcher=dispatcher,
        otp_settings=settings.otp,
        app_name=settings.app_name,
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    setup_logging(
        settings.logging.log_level,
        settings.logging.log_format,
        env=settings.env,
        sentry_enabled=bool(settings.sentry.sentry_dsn),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        app.state.settings = settings
        app.state.internal_api_token = settings.internal.internal_api_token
        if not app.state.internal_api_token:
            log.warning("internal_routes_closed", reason="INTERNAL_API_TOKEN not set")

        redis_client = None
        if settings.redis.session_store == "redis":
            if not settings.redis.redis_uri:
                raise StoreUnavailableError("REDIS_URI is required when SESSION_STORE=redis")
            redis_client = await create_redis_client(
                settings.redis.redis_uri, settings.redis.store_timeout_seconds
            )
            store = RedisKeyValueStore(
                redis_client, timeout_seconds=settings.redis.store_timeout_seconds
            )
        else:
            log.warning("memory_session_store_in_use", env=settings.env)
            store = MemoryKeyValueStore()
        app.state.store = store

        mongo_client: Optional[AsyncMongoClient] = None
        if settings.db.mongodb_uri:
            mongo_client = AsyncMongoClient(settings.db.mongodb_uri)
            app.state.db = mongo_client[settings.db.db_name]
            directory = MongoUserDirectory(app.state.db, settings.db.users_collection)
        else:
            app.state.db = None
            directory = NullUserDirectory()

        http_client: Optional[HttpClient] = None
        if settings.email.notifier == "zeptomail":
            http_client = HttpClient(timeout=10.0)
            notifier = ZeptoMailNotifier(settings.email, http_client, settings.app_name)
        else:
            notifier = LogNotifier()
        dispatcher = NotificationDispatcher(notifier)
        app.state.dispatcher = dispatcher

        # Raises on missing or identical signing secrets
        app.state.auth_service = build_auth_service(settings, store, directory, dispatcher)
        log.info(
            "auth_service_started",
            session_store=settings.redis.session_store,
            notifier=settings.email.notifier,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await dispatcher.drain()
        if http_client is not None:
            await http_client.aclose()
        if mongo_client is not None:
            await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(internal_router)

    return app
