"""Application factory for the FastAPI app.

Builds the app (metadata, middleware, handlers, limiters, routers) in one
place so tests can create isolated instances with their own limiter state.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, FastAPI

from app.api.routes import health_router, rate_limits_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import (
    RateLimiterRegistry,
    enforce_general_rate_limit,
    install_rate_limiters,
)


def create_app(registry: RateLimiterRegistry | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        registry: Optional prebuilt limiters; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title=settings.app.title,
        description=(
            "TıpScribe backend: medical visit documentation API. Every /api "
            "route is guarded by a per-client fixed-window rate limit; AI note "
            "generation and transcription routes carry stricter limits."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)
    install_rate_limiters(app, registry)

    # Every /api route counts against the general budget
    api_router = APIRouter(dependencies=[Depends(enforce_general_rate_limit)])
    api_router.include_router(rate_limits_router)

    app.include_router(api_router, prefix="/api")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
