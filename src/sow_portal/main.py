"""FastAPI application factory for the SOW portal BFF.

Creates the app with logging middleware, metrics middleware, CORS, backend
error mapping, the health route, the v1 API router, and /metrics.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from src.sow_portal.api.middleware.logging import LoggingMiddleware
from src.sow_portal.api.v1 import health
from src.sow_portal.api.v1.router import router as v1_router
from src.sow_portal.clients.api import SowApiClient, StaticTokenProvider
from src.sow_portal.clients.errors import ApiError, NetworkError
from src.sow_portal.config import get_settings
from src.sow_portal.core.logging import configure_structlog
from src.sow_portal.core.monitoring import MetricsMiddleware, get_metrics_response

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and the backend client factory on startup."""
    settings = get_settings()
    configure_structlog()

    if getattr(app.state, "api_client_factory", None) is None:
        app.state.api_client_factory = lambda token: SowApiClient.from_settings(
            settings, StaticTokenProvider(token)
        )

    logger.info(
        "app.started",
        environment=settings.ENVIRONMENT.value,
        api_base_url=settings.API_BASE_URL,
    )
    yield
    logger.info("app.stopped")


async def _network_error_handler(request: Request, exc: NetworkError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": exc.message})


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code or 502, content={"detail": exc.message})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SOW Portal API",
        version="0.1.0",
        description="Backend-for-frontend for the Statement of Work generation dashboard",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins() or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(NetworkError, _network_error_handler)
    app.add_exception_handler(ApiError, _api_error_handler)

    app.include_router(health.router)
    app.include_router(v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
