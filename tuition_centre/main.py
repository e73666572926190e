from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tuition_centre.api.auth import router as auth_router
from tuition_centre.api.branches import router as branches_router
from tuition_centre.api.classes import router as classes_router
from tuition_centre.api.courses import router as courses_router
from tuition_centre.api.errors import install_error_handlers
from tuition_centre.api.health import router as health_router
from tuition_centre.api.metrics_endpoint import router as metrics_router
from tuition_centre.api.users import router as users_router
from tuition_centre.container import build_container
from tuition_centre.core.config import Settings, load_settings
from tuition_centre.core.logging import setup_logging
from tuition_centre.db.unit_of_work import UnitOfWorkFactory
from tuition_centre.middleware.metrics import MetricsMiddleware
from tuition_centre.middleware.request_context import (
    RequestContextMiddleware,
    install_log_filter,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings, uow_factory: UnitOfWorkFactory | None = None
) -> FastAPI:
    """Build the ASGI app.  Everything it needs comes from the arguments."""
    container = build_container(settings, uow_factory)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "tuition-centre-api started  env=%s log_level=%s port=%d storage=%s",
            settings.app_env,
            settings.log_level,
            settings.port,
            "postgres" if container.database is not None else "memory",
        )
        try:
            yield
        finally:
            if container.database is not None:
                await container.database.dispose()

    app = FastAPI(
        title="tuition-centre-api",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware execution order: last-added runs first (outermost layer).
    # RequestContext (outermost) -> Metrics -> CORS -> route handler
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    install_error_handlers(app)

    app.include_router(metrics_router)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(branches_router)
    app.include_router(courses_router)
    app.include_router(users_router)
    app.include_router(classes_router)

    return app


def _create_default_app() -> FastAPI:
    settings = load_settings()
    # Configure logging before anything else runs.
    setup_logging(settings.log_level, json_format=settings.log_json)
    install_log_filter()
    return create_app(settings)


# uvicorn tuition_centre.main:app
app = _create_default_app()
