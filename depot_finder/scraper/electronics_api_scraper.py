"""Client for the electronics recycling store search API."""

from typing import Any, TypedDict

import httpx

from depot_finder.core.config import settings
from depot_finder.core.errors import ParseError
from depot_finder.core.logging import get_logger
from depot_finder.models.depot import Coordinate, DepotCategory, DepotRecord
from depot_finder.scraper.utils import get_upstream

logger = get_logger(__name__)


class StorePayload(TypedDict, total=False):
    """One store as returned by the search endpoint."""

    id: str
    store: str
    address: str
    city: str
    state: str
    zip: str
    lat: str
    lng: str
    phone: str
    hours: str
    terms: str
    description: str
    products: str


def _field(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value).strip()


def parse_store(payload: StorePayload) -> DepotRecord:
    """Convert one store payload into a depot record."""
    data: dict[str, Any] = dict(payload)
    products = [p.strip() for p in _field(data, "products").split(",")]
    return DepotRecord(
        id=_field(data, "id") or None,
        name=_field(data, "store"),
        address=_field(data, "address"),
        city=_field(data, "city"),
        state=_field(data, "state"),
        postal_code=_field(data, "zip"),
        phone=_field(data, "phone"),
        hours=_field(data, "hours"),
        terms=_field(data, "terms"),
        description=_field(data, "description"),
        products=[p for p in products if p],
        coordinate=Coordinate.from_values(data.get("lat"), data.get("lng")),
        category=DepotCategory.ELECTRONICS,
    )


def parse_stores(payload: Any) -> list[DepotRecord]:
    """Convert the decoded response body into depot records.

    Raises:
        ParseError: If the body is not a list of store objects
    """
    if not isinstance(payload, list):
        raise ParseError(
            "Store search returned a non-list body", type=type(payload).__name__
        )
    if not all(isinstance(item, dict) for item in payload):
        raise ParseError("Store search returned a non-object entry")
    return [parse_store(item) for item in payload]


class ElectronicsApiScraper:
    """Searches the store locator around a coordinate."""

    source = "electronics_api"

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str | None = None,
        search_radius: int | None = None,
        region: str | None = None,
        country: str | None = None,
    ):
        self.client = client
        self.url = url or settings.ELECTRONICS_API_URL
        self.search_radius = (
            search_radius
            if search_radius is not None
            else settings.ELECTRONICS_SEARCH_RADIUS
        )
        self.region = region or settings.ELECTRONICS_REGION
        self.country = country or settings.ELECTRONICS_COUNTRY

    def build_params(self, origin: Coordinate, term: str) -> dict[str, str | int]:
        return {
            "action": "store_search",
            "lat": origin.lat,
            "lng": origin.lon,
            "max_results": 9999,
            "search_radius": self.search_radius,
            "search": term,
            "statistics[city]": term,
            "statistics[region]": self.region,
            "statistics[country]": self.country,
        }

    async def search(self, origin: Coordinate, term: str) -> list[DepotRecord]:
        """Search stores around ``origin``.

        Raises:
            UpstreamUnavailable: If the API could not be reached
            ParseError: If the response body is not the expected JSON
        """
        response = await get_upstream(
            self.client, self.source, self.url, params=self.build_params(origin, term)
        )
        try:
            payload = response.json()
        except ValueError as e:
            logger.warning("electronics_invalid_json", error=str(e))
            raise ParseError("Store search returned invalid JSON") from e

        records = parse_stores(payload)
        logger.debug("electronics_stores_parsed", count=len(records))
        return records
