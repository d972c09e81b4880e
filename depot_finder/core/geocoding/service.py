"""Geocoding service backed by Nominatim.

This module wraps the geopy Nominatim geocoder so that:
- every call, including time queued on the rate limiter, is bounded by the
  configured timeout
- calls are spaced by a rate limiter and never retried
- failures surface as tagged errors instead of ``None``
- coordinates keep the decimal strings Nominatim returned
"""

import asyncio
from collections.abc import Callable
from typing import Any

from geopy.exc import GeocoderParseError, GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim
from geopy.location import Location
from prometheus_client import Counter

from depot_finder.core.config import settings
from depot_finder.core.errors import NotFound, ParseError, UpstreamUnavailable
from depot_finder.core.logging import get_logger
from depot_finder.models.depot import Coordinate

logger = get_logger(__name__)

GEOCODE_REQUESTS = Counter(
    "geocode_requests_total",
    "Geocoding requests by outcome",
    ["result"],
)


class GeocodingService:
    """Forward geocoding with a timeout, a rate limit and tagged failures."""

    def __init__(
        self,
        geocoder: Any | None = None,
        timeout: float | None = None,
        min_delay_seconds: float | None = None,
        user_agent: str | None = None,
        domain: str | None = None,
    ):
        """Initialize the geocoding service.

        Args:
            geocoder: Object with a geopy-style ``geocode`` method; a
                Nominatim client is built from settings when omitted
            timeout: Seconds allowed per request
            min_delay_seconds: Minimum spacing between requests
            user_agent: Nominatim user agent
            domain: Nominatim host
        """
        self.timeout = timeout if timeout is not None else settings.GEOCODING_TIMEOUT
        rate_limit = (
            min_delay_seconds
            if min_delay_seconds is not None
            else settings.GEOCODING_RATE_LIMIT
        )

        self.geocoder = geocoder or Nominatim(
            user_agent=user_agent or settings.GEOCODING_USER_AGENT,
            domain=domain or settings.GEOCODING_DOMAIN,
            timeout=self.timeout,
        )

        # One attempt per query; errors propagate so they can be classified
        self._geocode: Callable[..., Location | None] = RateLimiter(
            self.geocoder.geocode,
            min_delay_seconds=rate_limit,
            max_retries=0,
            swallow_exceptions=False,
        )

        logger.debug(
            "geocoder_initialized",
            geocoder=type(self.geocoder).__name__,
            timeout=self.timeout,
            min_delay_seconds=rate_limit,
        )

    def _geocode_with_nominatim(self, query: str) -> Location | None:
        return self._geocode(query, exactly_one=True, timeout=self.timeout)

    @staticmethod
    def _coordinate_from(location: Location) -> Coordinate | None:
        raw = location.raw if isinstance(location.raw, dict) else {}
        # Nominatim reports lat/lon as strings; prefer them over the floats
        coordinate = Coordinate.from_values(raw.get("lat"), raw.get("lon"))
        if coordinate is None:
            coordinate = Coordinate.from_values(location.latitude, location.longitude)
        return coordinate

    async def geocode(self, query: str) -> Coordinate:
        """Geocode a free-text query to its first match.

        Args:
            query: Place name, postal code or street address

        Returns:
            Coordinate of the first result

        Raises:
            NotFound: If the query is blank or matched nothing
            UpstreamUnavailable: On network errors, timeouts or error statuses
            ParseError: If the response could not be decoded
        """
        if not query or not query.strip():
            GEOCODE_REQUESTS.labels(result=NotFound.kind).inc()
            raise NotFound("Empty geocoding query")

        try:
            # Waiting on the shared rate limiter counts against the same budget
            location = await asyncio.wait_for(
                asyncio.to_thread(self._geocode_with_nominatim, query),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            GEOCODE_REQUESTS.labels(result="timeout").inc()
            logger.warning("geocode_timed_out", query=query[:100], timeout=self.timeout)
            raise UpstreamUnavailable(
                f"Geocoder timed out after {self.timeout}s for '{query}'"
            ) from e
        except GeocoderParseError as e:
            GEOCODE_REQUESTS.labels(result=ParseError.kind).inc()
            logger.warning("geocode_failed", query=query[:100], error=str(e))
            raise ParseError(f"Unreadable geocoder response for '{query}'") from e
        except GeopyError as e:
            GEOCODE_REQUESTS.labels(result=UpstreamUnavailable.kind).inc()
            logger.warning("geocode_failed", query=query[:100], error=str(e))
            raise UpstreamUnavailable(f"Geocoder unavailable for '{query}'") from e

        if location is None:
            GEOCODE_REQUESTS.labels(result=NotFound.kind).inc()
            logger.info("geocode_no_results", query=query[:100])
            raise NotFound(f"No geocoding results for '{query}'")

        coordinate = self._coordinate_from(location)
        if coordinate is None:
            GEOCODE_REQUESTS.labels(result=ParseError.kind).inc()
            raise ParseError(f"Geocoder result without coordinates for '{query}'")

        GEOCODE_REQUESTS.labels(result="success").inc()
        logger.debug(
            "geocoded", query=query[:100], lat=coordinate.lat, lon=coordinate.lon
        )
        return coordinate
