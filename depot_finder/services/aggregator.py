"""Depot aggregation across the electronics, oil and paint sources."""

import asyncio

from prometheus_client import Counter

from depot_finder.core.config import settings
from depot_finder.core.errors import (
    DepotLookupError,
    NotFound,
    ParseError,
    StorageError,
    UpstreamUnavailable,
)
from depot_finder.core.geocoding import Geocoder, LocationResolver
from depot_finder.core.logging import get_logger
from depot_finder.database.repositories import (
    DepotCacheRepository,
    PaintMerchantRepository,
)
from depot_finder.models.depot import (
    AggregationResult,
    Coordinate,
    DepotCategory,
    DepotRecord,
    RawListing,
)
from depot_finder.scraper.utils import DepotSearchSource, ListingSource

logger = get_logger(__name__)

AGGREGATIONS = Counter(
    "depot_aggregations_total",
    "Depot searches by category and outcome",
    ["category", "result"],
)

PAINT_ALL = "all"


def oil_geocode_query(address: str) -> str:
    """Build the geocoding query for a listed oil depot address.

    The listing appends the province and postal code; both are dropped so
    the geocoder sees only the street and town.
    """
    tokens = address.strip().replace(", ", " ").split(" ")
    return " ".join(tokens[:-2]).strip()


def number_results(records: list[DepotRecord]) -> list[DepotRecord]:
    """Assign ``result_number`` 1..N in list order."""
    return [
        record.model_copy(update={"result_number": index})
        for index, record in enumerate(records, start=1)
    ]


class DepotAggregator:
    """Runs the per-category search pipelines.

    Each pipeline resolves the search term to an origin coordinate and
    returns it together with the depots found for that category.
    """

    def __init__(
        self,
        resolver: LocationResolver,
        geocoder: Geocoder,
        depot_cache: DepotCacheRepository,
        paint_merchants: PaintMerchantRepository,
        oil_source: ListingSource,
        electronics_source: DepotSearchSource,
        max_concurrent_geocodes: int | None = None,
        paint_radius_miles: float | None = None,
    ):
        self.resolver = resolver
        self.geocoder = geocoder
        self.depot_cache = depot_cache
        self.paint_merchants = paint_merchants
        self.oil_source = oil_source
        self.electronics_source = electronics_source
        self.max_concurrent_geocodes = (
            max_concurrent_geocodes
            if max_concurrent_geocodes is not None
            else settings.GEOCODING_MAX_CONCURRENT
        )
        self.paint_radius_miles = (
            paint_radius_miles
            if paint_radius_miles is not None
            else settings.PAINT_RADIUS_MILES
        )

    async def search(
        self, category: DepotCategory, term: str, action: str | None = None
    ) -> AggregationResult:
        """Dispatch to the pipeline for ``category`` and count the outcome."""
        try:
            if category is DepotCategory.ELECTRONICS:
                result = await self.electronics(term)
            elif category is DepotCategory.OIL:
                result = await self.oil(term)
            else:
                result = await self.paint(term, action)
        except DepotLookupError as e:
            AGGREGATIONS.labels(category=category.value, result=e.kind).inc()
            raise
        AGGREGATIONS.labels(category=category.value, result="success").inc()
        return result

    async def electronics(self, term: str) -> AggregationResult:
        """Search the electronics store locator around the resolved term.

        Raises:
            NotFound: If the term cannot be resolved or the locator fails
        """
        origin = await self.resolver.resolve(term)
        try:
            records = await self.electronics_source.search(origin, term)
        except (UpstreamUnavailable, ParseError) as e:
            logger.warning("electronics_search_failed", term=term, reason=e.kind)
            raise NotFound(f"No electronics depots for '{term}'") from e
        return AggregationResult(origin=origin, locations=number_results(records))

    async def oil(self, term: str) -> AggregationResult:
        """Scrape used oil facilities and attach cached or geocoded coordinates.

        Listings are resolved concurrently; at most ``max_concurrent_geocodes``
        geocoding calls are in flight and the output keeps page order.
        """
        origin = await self.resolver.resolve(term)
        listings = await self.oil_source.fetch(term)
        semaphore = asyncio.Semaphore(max(1, self.max_concurrent_geocodes))
        records = await asyncio.gather(
            *(self._resolve_listing(listing, semaphore) for listing in listings)
        )
        logger.info("oil_depots_resolved", term=term, count=len(records))
        return AggregationResult(origin=origin, locations=number_results(records))

    async def _resolve_listing(
        self, listing: RawListing, semaphore: asyncio.Semaphore
    ) -> DepotRecord:
        record = DepotRecord(
            name=listing.name,
            address=listing.address,
            hours=listing.hours,
            products=list(listing.products),
            category=DepotCategory.OIL,
        )

        try:
            cached = await self.depot_cache.find_by_identity(
                listing.name, listing.address
            )
        except StorageError as e:
            logger.warning(
                "depot_cache_lookup_failed", name=listing.name, error=str(e)
            )
            cached = None

        if cached is not None:
            logger.debug("depot_cache_hit", name=listing.name, id=cached.id)
            return record.model_copy(
                update={"id": cached.id, "coordinate": cached.coordinate}
            )

        coordinate = await self._geocode_listing(listing, semaphore)
        record = record.model_copy(update={"coordinate": coordinate})

        try:
            stored = await self.depot_cache.insert(record)
        except StorageError as e:
            logger.error("depot_persist_failed", name=listing.name, error=str(e))
            return record
        # The stored coordinate is authoritative
        return record.model_copy(
            update={"id": stored.id, "coordinate": stored.coordinate}
        )

    async def _geocode_listing(
        self, listing: RawListing, semaphore: asyncio.Semaphore
    ) -> Coordinate | None:
        query = oil_geocode_query(listing.address)
        async with semaphore:
            try:
                return await self.geocoder.geocode(query)
            except DepotLookupError as e:
                logger.info(
                    "depot_geocode_failed",
                    name=listing.name,
                    query=query,
                    reason=e.kind,
                )
                return None

    async def paint(self, term: str, action: str | None) -> AggregationResult:
        """List paint merchants, all of them or those near the resolved term.

        Raises:
            NotFound: If ``action`` is missing or the term cannot be resolved
            StorageError: If the merchant table could not be read
        """
        if not action:
            raise NotFound("Paint search requires an action")

        origin = await self.resolver.resolve(term)
        if action == PAINT_ALL:
            records = await self.paint_merchants.get_all()
        else:
            records = await self.paint_merchants.get_within_radius(
                origin, self.paint_radius_miles
            )
        return AggregationResult(origin=origin, locations=number_results(records))
