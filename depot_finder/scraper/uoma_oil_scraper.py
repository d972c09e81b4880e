"""Scraper for the used oil collection facility listing."""

import httpx
from bs4 import BeautifulSoup, Tag

from depot_finder.core.config import settings
from depot_finder.core.logging import get_logger
from depot_finder.models.depot import RawListing
from depot_finder.scraper.utils import get_upstream

logger = get_logger(__name__)

RESULTS_SELECTOR = "#collection_facility-list-results li"


def _text(item: Tag, selector: str) -> str:
    element = item.select_one(selector)
    return element.get_text() if element is not None else ""


def depot_name_from_label(label: str) -> str:
    """Strip the leading result number from a label like ``"3. Canadian Tire"``."""
    return " ".join(label.split(" ")[1:]).strip()


def parse_listings(html: str) -> list[RawListing]:
    """Extract depot listings from a facility results page.

    Args:
        html: Page HTML

    Returns:
        Listings in page order; empty when the results list is absent
    """
    soup = BeautifulSoup(html, "html.parser")
    items = soup.select(RESULTS_SELECTOR)
    if not items:
        logger.warning("oil_results_missing")
        return []

    listings: list[RawListing] = []
    for item in items:
        products = tuple(
            img["title"] for img in item.select("img[title]") if img.get("title")
        )
        listings.append(
            RawListing(
                name=depot_name_from_label(_text(item, "b")),
                address=_text(item, "a").strip(),
                hours=_text(item, "small").strip(),
                products=products,
            )
        )

    logger.debug("oil_listings_parsed", count=len(listings))
    return listings


class UomaOilScraper:
    """Fetches collection facilities near a search term."""

    source = "oil_listing"

    def __init__(self, client: httpx.AsyncClient, url: str | None = None):
        self.client = client
        self.url = url or settings.OIL_LISTING_URL

    async def fetch(self, term: str) -> list[RawListing]:
        """Fetch and parse the listing page for ``term``.

        Raises:
            UpstreamUnavailable: If the page could not be fetched
        """
        response = await get_upstream(
            self.client, self.source, self.url, params={"location": term}
        )
        return parse_listings(response.text)
