"""
hrms_api.api.app

FastAPI app factory for the HRMS service.

Responsibilities:
- Build the FastAPI application and register routers/middleware/error handlers.
- Own the lifecycle of shared infrastructure (DB engine, Redis session store).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hrms_api import __version__
from hrms_api.api.errors import install_exception_handlers
from hrms_api.api.routers.audit import router as audit_router
from hrms_api.api.routers.health import router as health_router
from hrms_api.api.routers.leave import router as leave_router
from hrms_api.api.routers.legacy_auth import router as legacy_auth_router
from hrms_api.api.routers.super_admin import router as super_admin_router
from hrms_api.api.routers.tenant import router as tenant_router
from hrms_api.auth.sessions import SessionStore
from hrms_api.db.init_db import init_db
from hrms_api.db.seed import ensure_super_admin
from hrms_api.db.session import create_engine, create_sessionmaker
from hrms_api.observability.logging import configure_logging, get_logger
from hrms_api.observability.middleware import RequestContextMiddleware
from hrms_api.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings, session_store: SessionStore | None = None) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level, env=settings.env)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)

        store = session_store or SessionStore.from_url(settings.redis_url)
        await store.connect()
        app.state.session_store = store

        try:
            if settings.env in ("dev", "test"):
                # Dev/test convenience: create tables automatically. Prod uses Alembic migrations.
                await init_db(engine)
            await ensure_super_admin(app.state.sessionmaker, settings)
            yield
        finally:
            await store.disconnect()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="HRMS API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    install_exception_handlers(app, settings)

    app.include_router(health_router, tags=["health"])
    app.include_router(legacy_auth_router)
    app.include_router(super_admin_router)
    app.include_router(tenant_router)
    app.include_router(leave_router)
    app.include_router(audit_router)

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; business logic stays in routers/services and the
# auth package.
