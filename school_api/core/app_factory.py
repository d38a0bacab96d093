"""Application factory for the FastAPI app.

Centralizes app construction (metadata, rate limiters, middleware, handlers,
routers, lifecycle) so tests can build isolated apps with their own
settings, clock and registry.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from school_api.api.routes import health_router, rate_limits_router
from school_api.core.config import Settings, settings as default_settings
from school_api.core.exception_handlers import setup_exception_handlers
from school_api.core.logging import configure_logging
from school_api.core.middleware import request_id_middleware
from school_api.core.openapi import apply_openapi_customizations
from school_api.core.rate_limit import rate_limit_middleware
from school_api.services.limiter_registry import RateLimiterRegistry, build_default_registry
from school_api.services.store_sweeper import StoreSweeper

logger = logging.getLogger(__name__)


def _build_lifespan(sweeper: StoreSweeper | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if sweeper is not None:
            sweeper.start()
        logger.info("app.started", extra={"environment": app.state.environment})
        try:
            yield
        finally:
            if sweeper is not None:
                await sweeper.stop()
            logger.info("app.stopped")

    return lifespan


def create_app(
    settings: Settings | None = None,
    *,
    registry: RateLimiterRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to use; the process-wide settings when omitted.
        registry: Pre-built limiter registry (tests inject one with a fake
            clock); built from ``settings.rate_limit`` when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.

    Raises:
        ConfigurationAppError: If a rate limit policy is invalid.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    rate_limiters: RateLimiterRegistry | None = None
    sweeper: StoreSweeper | None = None
    if cfg.rate_limit.enabled:
        rate_limiters = registry if registry is not None else build_default_registry(cfg.rate_limit)
        if cfg.rate_limit.sweep_enabled:
            sweeper = StoreSweeper(
                rate_limiters,
                interval_seconds=cfg.rate_limit.sweep_interval_seconds,
            )

    app = FastAPI(
        title=cfg.app.name,
        description=(
            "Gateway for the school portal REST API. Throttles clients per IP "
            "with fixed-window limiters (general API, login, sensitive "
            "operations, uploads) and normalizes error responses."
        ),
        version="0.1.0",
        lifespan=_build_lifespan(sweeper),
    )
    app.state.settings = cfg
    app.state.environment = cfg.app_env
    app.state.rate_limiters = rate_limiters
    app.state.sweeper = sweeper

    # Middleware: the last registered runs first, so request IDs wrap throttling
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(rate_limits_router, prefix="/api")

    apply_openapi_customizations(app)

    return app
