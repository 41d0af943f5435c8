"""
FastAPI application for the editorial submission portal.

Collaborators are built once in create_app and shared through app.state.
Production deployment configuration via environment variables.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from editorial import __version__
from editorial.exceptions import SubmissionError
from editorial.jobs import EmailNotificationJob, TokenCleanupJob
from editorial.notifications import EmailNotifier
from editorial.review import AdminReviewEngine
from editorial.submission import (
    InMemorySubmissionStore,
    MediaStoragePort,
    NotificationPort,
    SubmissionService,
    SubmissionStore,
    TokenService,
)
from editorial.upload import LocalMediaStorage, UploadGateway
from utils.config import Config
from utils.logging_setup import configure_logging
from web.admin_auth import seed_admins
from web.admin_routes import router as admin_router
from web.submission_routes import router as submission_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Config] = None,
    store: Optional[SubmissionStore] = None,
    notifier: Optional[NotificationPort] = None,
    media: Optional[MediaStoragePort] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Any collaborator not supplied is built from the configuration.
    """
    config = config or Config.load()
    store = store or InMemorySubmissionStore(persist_path=config.store_path)
    notifier = notifier or EmailNotifier(
        api_key=config.resend_api_key,
        sender=config.email_from,
        frontend_url=config.frontend_url,
    )
    local_media = None
    if media is None:
        local_media = LocalMediaStorage(
            storage_root=config.media_storage_dir,
            base_url=config.media_base_url,
            signing_secret=config.media_signing_secret,
        )
        media = local_media

    app = FastAPI(
        title="Editorial Submission Portal",
        description="Anonymous article submissions and editorial review",
        version=__version__,
        # Production settings: disable docs/redoc when not debugging
        docs_url="/docs" if config.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if config.debug else None,
        debug=config.debug,
    )

    # ==========================================================================
    # Healthcheck endpoints are registered first. No dependencies, no IO.
    # ==========================================================================
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        return {"status": "healthy", "version": __version__}

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.allowed_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
        )

    # ==========================================================================
    # Services
    # ==========================================================================
    tokens = TokenService(
        store,
        notifier,
        expiry_days=config.token_expiry_days,
        warning_days=config.token_warning_days,
        alert_recipients=config.admin_emails,
    )
    app.state.config = config
    app.state.store = store
    app.state.tokens = tokens
    app.state.submissions = SubmissionService(
        store, tokens, notifier, admin_emails=config.admin_emails
    )
    app.state.review = AdminReviewEngine(
        store, tokens, notifier, frontend_url=config.frontend_url
    )
    app.state.uploads = UploadGateway(
        store, tokens, media, max_attachments=config.max_attachments
    )
    app.state.cleanup_job = TokenCleanupJob(tokens, warning_days=config.token_warning_days)
    app.state.email_job = EmailNotificationJob(
        store, tokens, notifier, admin_emails=config.admin_emails
    )

    @app.exception_handler(SubmissionError)
    async def submission_error_handler(request: Request, exc: SubmissionError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.on_event("startup")
    async def on_startup():
        """Deferred startup tasks. Runs after healthcheck is ready."""
        configure_logging(config.log_level)
        admins = await seed_admins(store, config.admin_emails)
        logger.info("Editorial portal started (%d admin account(s))", len(admins))

    # Local media is served as-is; signed URLs matter for remote providers
    if local_media is not None:
        app.mount(
            "/media",
            StaticFiles(directory=Path(config.media_storage_dir), check_dir=False),
            name="media",
        )

    app.include_router(submission_router)
    app.include_router(admin_router)

    return app
