"""
FastAPI Application Factory.

This module provides a clean, configurable FastAPI application setup.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:app --host 0.0.0.0 --port 8080 --workers 4

    # Or use the convenience function
    from api.app import create_app
    app = create_app()
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware
from feed.pipeline import InvalidFeedRequest


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Runs on startup:
    - Initialize logging

    The orchestrator (storage clients, OpenAI clients) is built lazily on
    the first request.
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    logger.info(
        "Starting feed API",
        environment=settings.environment,
        port=settings.port,
        storage_backend=settings.storage_backend,
    )

    yield  # Application is running

    logger.info("Shutting down feed API")


async def invalid_feed_request_handler(request: Request, exc: InvalidFeedRequest) -> JSONResponse:
    logger.warning("Invalid feed request", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Vendor Feed Recommendation API",
        description="""
        Feed assembly for a multi-vendor fashion marketplace.

        ## Main Endpoints

        - `/recommend/feed` - Personalized, type-mixed home feed
        - `/recommend/vendors` - Vendor discovery feed
        - `/recommend/trending`, `/recommend/new` - Non-personalized feeds
        - `/recommend/bought-together`, `/recommend/complete-look` - Item-seeded feeds
        - `/recommend/route` - Free-text intent classification
        - `/recommendations/events` - Behavioral event tracking
        - `/recommendations/catalog` - Vendor listing import and catalog lookup

        ## Health Checks

        - `/health` - Basic health check
        - `/health/detailed` - Detailed health with dependency status
        - `/ready` - Kubernetes readiness probe
        - `/live` - Kubernetes liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Error handlers
    # =========================================================================

    app.add_exception_handler(InvalidFeedRequest, invalid_feed_request_handler)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    from api.routes.recommend import router as recommend_router
    app.include_router(recommend_router)

    from api.routes.events import router as events_router
    app.include_router(events_router)

    from api.routes.catalog import router as catalog_router
    app.include_router(catalog_router)

    return app


# Create default app instance for uvicorn
# Usage: uvicorn api.app:app
app = create_app()


# Alternative: Factory function for gunicorn
# Usage: gunicorn -k uvicorn.workers.UvicornWorker api.app:create_app()
def get_app() -> FastAPI:
    """Get the application instance (for ASGI servers)."""
    return app
