"""Main FastAPI application module."""

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from depot_finder.api.v1.router import router as v1_router
from depot_finder.core.config import settings
from depot_finder.core.events import DepotServices, create_lifespan
from depot_finder.core.logging import configure_logging
from depot_finder.middleware.correlation import CorrelationMiddleware
from depot_finder.middleware.errors import register_error_handlers
from depot_finder.middleware.metrics import MetricsMiddleware


def create_app(services: DepotServices | None = None) -> FastAPI:
    """Build the application.

    Args:
        services: Prebuilt services, mainly for tests; built from settings
            at startup when omitted

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=settings.app_name,
        description="Recycling depot locations for New Brunswick",
        version=settings.version,
        default_response_class=JSONResponse,
        lifespan=create_lifespan(services),
    )
    if services is not None:
        app.state.services = services

    # Added inside -> out: metrics, correlation, CORS (outermost)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_methods,
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_error_handlers(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "healthy", "version": settings.version}

    # Same routes at the root and under the API prefix
    app.include_router(v1_router)
    app.include_router(v1_router, prefix=settings.api_prefix)
    return app


configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
app = create_app()
