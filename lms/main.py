"""Main FastAPI application."""

import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from lms.api.v1 import api_router
from lms.config import Settings
from lms.core.errors import register_exception_handlers
from lms.core.logging import setup_logging
from lms.core.security import PasswordHasher, TokenIssuer
from lms.db.mongo import MongoDatabase
from lms.services.email_service import EmailSender, SMTPEmailSender
from lms.services.media_storage_service import LocalMediaStorage, MediaStorage, get_media_storage
from lms.services.upload_service import UploadService

logger = structlog.get_logger(__name__)


def init_sentry(settings: Settings) -> None:
    """Initialize Sentry for error tracking (only if DSN is properly configured)."""
    if not (settings.SENTRY_DSN and settings.SENTRY_DSN.startswith("https://")):
        logger.info("sentry_disabled")
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(
                level=None,  # Capture all logs
                event_level="ERROR",  # Only send ERROR and above as events
            ),
        ],
        release=settings.APP_VERSION,
        attach_stacktrace=True,
        send_default_pii=False,
    )


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[MongoDatabase] = None,
    media_storage: Optional[MediaStorage] = None,
    email_sender: Optional[EmailSender] = None,
) -> FastAPI:
    """
    Build the application.

    ``settings`` is read from the environment when omitted. The database,
    media storage and email sender can be supplied to replace the defaults
    built from settings.
    """
    settings = settings or Settings()
    setup_logging(settings)
    init_sentry(settings)

    database = database or MongoDatabase(settings)
    media_storage = media_storage or get_media_storage(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        await database.connect()
        yield
        await database.close()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Learning management API: users, courses and lectures",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.database = database
    app.state.password_hasher = PasswordHasher(settings)
    app.state.token_issuer = TokenIssuer(settings)
    app.state.email_sender = email_sender or SMTPEmailSender(settings)
    app.state.upload_service = UploadService(media_storage, settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    register_exception_handlers(app, debug=settings.DEBUG)

    app.include_router(api_router, prefix="/api/v1")

    if isinstance(media_storage, LocalMediaStorage):
        app.mount("/media", StaticFiles(directory=str(media_storage.root)), name="media")

    @app.get("/ping", response_class=PlainTextResponse, tags=["Health"])
    async def ping():
        return "Pong"

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": settings.APP_VERSION,
        }

    return app
