"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from estateshare.api.error_handlers import register_exception_handlers
from estateshare.api.routers import get_api_router
from estateshare.core.config import AppSettings, get_settings
from estateshare.core.database import create_schema, session_scope
from estateshare.core.logging import configure_logging
from estateshare.services.users import UserService

logger = logging.getLogger("estateshare.main")


def provision_admin(settings: AppSettings) -> None:
    """Create or promote the configured administrator, if one is configured."""

    if not settings.admin_email or not settings.admin_password:
        logger.info("admin_provisioning_skipped")
        return
    with session_scope() as session:
        UserService(session, settings=settings).ensure_admin(
            email=settings.admin_email,
            password=settings.admin_password,
            name=settings.admin_name,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: D401
    """Application lifespan context for startup/shutdown hooks."""

    settings = get_settings()
    if settings.auto_create_schema:
        create_schema()
    provision_admin(settings)

    yield


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Application factory."""

    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="EstateShare",
        version="1.0.0",
        lifespan=lifespan,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.include_router(get_api_router())

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(upload_dir)), name="uploads")
    return app


app = create_app()
