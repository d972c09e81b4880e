"""Resolution of user search terms to coordinates."""

from typing import Protocol

from prometheus_client import Counter

from depot_finder.core.config import settings
from depot_finder.core.errors import DepotLookupError, NotFound, StorageError
from depot_finder.core.logging import get_logger
from depot_finder.models.depot import Coordinate

logger = get_logger(__name__)

POSTAL_PREFIX_LENGTH = 3

GEOCACHE_FALLBACKS = Counter(
    "geocache_fallbacks_total",
    "Postal prefix fallbacks by outcome",
    ["result"],
)


class Geocoder(Protocol):
    """Anything that geocodes a query string or raises a DepotLookupError."""

    async def geocode(self, query: str) -> Coordinate: ...


class PrefixStore(Protocol):
    """Read access to coordinates keyed by postal-code prefix."""

    async def get(self, prefix: str) -> Coordinate | None: ...


class LocationResolver:
    """Turns a place name or postal code into a coordinate.

    The external geocoder is asked first, biased towards the province. When
    it fails for any reason the first three characters of the term are
    looked up as a postal-code prefix.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        geo_cache: PrefixStore,
        region_hint: str | None = None,
    ):
        self.geocoder = geocoder
        self.geo_cache = geo_cache
        self.region_hint = (
            region_hint if region_hint is not None else settings.GEOCODING_REGION_HINT
        )

    def _biased_query(self, term: str) -> str:
        return f"{term} {self.region_hint}".strip()

    async def resolve(self, term: str) -> Coordinate:
        """Resolve a search term.

        Args:
            term: Place name or postal code typed by the user

        Returns:
            First geocoder match, or the cached prefix coordinate

        Raises:
            NotFound: If neither the geocoder nor the prefix cache knows the term
            StorageError: If the prefix cache could not be read
        """
        term = term.strip()
        if not term:
            raise NotFound("Empty search term")

        try:
            return await self.geocoder.geocode(self._biased_query(term))
        except DepotLookupError as e:
            logger.info("geocode_fallback", term=term, reason=e.kind)
            geocode_error = e

        return await self._resolve_postal_prefix(term, geocode_error)

    async def _resolve_postal_prefix(
        self, term: str, cause: DepotLookupError
    ) -> Coordinate:
        if len(term) < POSTAL_PREFIX_LENGTH:
            GEOCACHE_FALLBACKS.labels(result="too_short").inc()
            raise NotFound(
                f"'{term}' is too short for a postal prefix lookup", term=term
            ) from cause

        prefix = term[:POSTAL_PREFIX_LENGTH].lower()
        try:
            coordinate = await self.geo_cache.get(prefix)
        except StorageError:
            GEOCACHE_FALLBACKS.labels(result="error").inc()
            logger.error("geocache_lookup_failed", prefix=prefix, exc_info=True)
            raise

        if coordinate is None:
            GEOCACHE_FALLBACKS.labels(result="miss").inc()
            logger.info("geocache_miss", prefix=prefix)
            raise NotFound(f"No coordinates for '{term}'", prefix=prefix) from cause

        GEOCACHE_FALLBACKS.labels(result="hit").inc()
        logger.info(
            "geocache_fallback", prefix=prefix, lat=coordinate.lat, lon=coordinate.lon
        )
        return coordinate
