"""Shared pieces for the upstream depot sources."""

from typing import Protocol

import httpx
from prometheus_client import Counter

from depot_finder.core.config import settings
from depot_finder.core.errors import UpstreamUnavailable
from depot_finder.core.logging import get_logger
from depot_finder.models.depot import Coordinate, DepotRecord, RawListing

logger = get_logger(__name__)

UPSTREAM_REQUESTS = Counter(
    "upstream_requests_total",
    "Requests to depot listing sources",
    ["source", "result"],
)


def get_scraper_headers() -> dict[str, str]:
    """Get standard headers for scraper requests.

    Returns:
        Dict with headers including a browser-like User-Agent
    """
    return {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    }


def create_http_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Build the client shared by all upstream sources of one app."""
    timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT
    return httpx.AsyncClient(
        headers=get_scraper_headers(),
        timeout=httpx.Timeout(timeout, connect=timeout),
        follow_redirects=True,
    )


class ListingSource(Protocol):
    """HTML listing page for a search term."""

    async def fetch(self, term: str) -> list[RawListing]: ...


class DepotSearchSource(Protocol):
    """Search API returning depots around a coordinate."""

    async def search(self, origin: Coordinate, term: str) -> list[DepotRecord]: ...


async def get_upstream(
    client: httpx.AsyncClient,
    source: str,
    url: str,
    params: dict[str, str | int] | None = None,
) -> httpx.Response:
    """GET an upstream page, failing on transport errors and non-200 statuses.

    Raises:
        UpstreamUnavailable: If the request fails or does not return 200
    """
    try:
        response = await client.get(url, params=params)
    except httpx.HTTPError as e:
        UPSTREAM_REQUESTS.labels(source=source, result="error").inc()
        logger.warning("upstream_request_failed", source=source, url=url, error=str(e))
        raise UpstreamUnavailable(f"{source} request failed: {e}", url=url) from e

    if response.status_code != httpx.codes.OK:
        UPSTREAM_REQUESTS.labels(source=source, result="error").inc()
        logger.warning(
            "upstream_bad_status",
            source=source,
            url=url,
            status_code=response.status_code,
        )
        raise UpstreamUnavailable(
            f"{source} returned HTTP {response.status_code}",
            url=url,
            status_code=response.status_code,
        )

    UPSTREAM_REQUESTS.labels(source=source, result="success").inc()
    return response
