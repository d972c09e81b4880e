"""Upstream depot sources.

Public API:
- UomaOilScraper: HTML listing of used oil collection facilities
- ElectronicsApiScraper: JSON store search for electronics recycling
- get_scraper_headers: Get standard HTTP headers for scraping
- create_http_client: Build the shared upstream HTTP client
"""

from depot_finder.scraper.electronics_api_scraper import (
    ElectronicsApiScraper,
    parse_stores,
)
from depot_finder.scraper.uoma_oil_scraper import UomaOilScraper, parse_listings
from depot_finder.scraper.utils import (
    UPSTREAM_REQUESTS,
    DepotSearchSource,
    ListingSource,
    create_http_client,
    get_scraper_headers,
)

__all__ = [
    "UomaOilScraper",
    "ElectronicsApiScraper",
    "parse_listings",
    "parse_stores",
    "ListingSource",
    "DepotSearchSource",
    "create_http_client",
    "get_scraper_headers",
    "UPSTREAM_REQUESTS",
]
