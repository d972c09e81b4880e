"""Application startup and shutdown events."""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from depot_finder.core.config import Settings, settings as default_settings
from depot_finder.core.db import (
    create_engine_from_settings,
    create_session_factory,
    create_tables,
)
from depot_finder.core.geocoding import GeocodingService, LocationResolver
from depot_finder.core.logging import get_logger
from depot_finder.database.repositories import (
    DepotCacheRepository,
    GeoCacheRepository,
    PaintMerchantRepository,
)
from depot_finder.scraper import (
    ElectronicsApiScraper,
    UomaOilScraper,
    create_http_client,
)
from depot_finder.services.aggregator import DepotAggregator

logger = get_logger(__name__)

# Prometheus metrics
REQUESTS_TOTAL = Counter(
    "app_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "app_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)


@dataclass
class DepotServices:
    """Everything a request handler needs, built once per application."""

    aggregator: DepotAggregator
    engine: AsyncEngine | None = None
    session_factory: async_sessionmaker[AsyncSession] | None = None
    http_client: httpx.AsyncClient | None = None

    async def close(self) -> None:
        """Release the HTTP client and the database pool."""
        if self.http_client is not None:
            await self.http_client.aclose()
            logger.info("http_client_closed")
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("database_engine_disposed")


async def build_services(config: Settings | None = None) -> DepotServices:
    """Wire engine, repositories, upstream clients and the aggregator.

    Args:
        config: Settings to build from, defaults to module settings

    Returns:
        Ready-to-use service container
    """
    config = config or default_settings
    engine = create_engine_from_settings(config)
    if config.DB_CREATE_TABLES:
        await create_tables(engine)
        logger.info("database_tables_created")
    session_factory = create_session_factory(engine)
    http_client = create_http_client(config.UPSTREAM_TIMEOUT)

    geocoder = GeocodingService(
        timeout=config.GEOCODING_TIMEOUT,
        min_delay_seconds=config.GEOCODING_RATE_LIMIT,
        user_agent=config.GEOCODING_USER_AGENT,
        domain=config.GEOCODING_DOMAIN,
    )
    geo_cache = GeoCacheRepository(session_factory, timeout=config.STORAGE_TIMEOUT)
    resolver = LocationResolver(
        geocoder, geo_cache, region_hint=config.GEOCODING_REGION_HINT
    )

    aggregator = DepotAggregator(
        resolver=resolver,
        geocoder=geocoder,
        depot_cache=DepotCacheRepository(
            session_factory, timeout=config.STORAGE_TIMEOUT
        ),
        paint_merchants=PaintMerchantRepository(
            session_factory, timeout=config.STORAGE_TIMEOUT
        ),
        oil_source=UomaOilScraper(http_client, url=config.OIL_LISTING_URL),
        electronics_source=ElectronicsApiScraper(
            http_client,
            url=config.ELECTRONICS_API_URL,
            search_radius=config.ELECTRONICS_SEARCH_RADIUS,
            region=config.ELECTRONICS_REGION,
            country=config.ELECTRONICS_COUNTRY,
        ),
        max_concurrent_geocodes=config.GEOCODING_MAX_CONCURRENT,
        paint_radius_miles=config.PAINT_RADIUS_MILES,
    )

    return DepotServices(
        aggregator=aggregator,
        engine=engine,
        session_factory=session_factory,
        http_client=http_client,
    )


def create_start_app_handler(
    app: Any, services: DepotServices | None = None
) -> Callable[[], Awaitable[None]]:
    """Create startup event handler.

    Args:
        app: FastAPI application instance
        services: Prebuilt services; built from settings when omitted

    Returns:
        Startup handler function
    """

    async def start_app() -> None:
        app.state.services = services or await build_services()
        app.state.owns_services = services is None
        logger.info("application_started", app_name=default_settings.app_name)

    return start_app


def create_stop_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create shutdown event handler.

    Services passed in by the caller are left for the caller to close.
    """

    async def stop_app() -> None:
        services: DepotServices | None = getattr(app.state, "services", None)
        if services is not None and getattr(app.state, "owns_services", False):
            await services.close()
        logger.info("application_stopped")

    return stop_app


def create_lifespan(
    services: DepotServices | None = None,
) -> Callable[[Any], Any]:
    """Combine the startup and shutdown handlers into a lifespan."""

    @asynccontextmanager
    async def lifespan(app: Any) -> AsyncIterator[None]:
        await create_start_app_handler(app, services)()
        try:
            yield
        finally:
            await create_stop_app_handler(app)()

    return lifespan
