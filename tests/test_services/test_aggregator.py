"""Tests for the depot aggregation pipelines."""

import asyncio
import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest

from depot_finder.core.errors import (
    NotFound,
    ParseError,
    StorageError,
    UpstreamUnavailable,
)
from depot_finder.database.repositories import CachedDepot
from depot_finder.models.depot import (
    Coordinate,
    DepotCategory,
    DepotRecord,
    RawListing,
)
from depot_finder.services.aggregator import DepotAggregator, oil_geocode_query

ORIGIN = Coordinate(lat="46.0878", lon="-64.7782")
DEPOT_COORDINATE = Coordinate(lat="46.1", lon="-64.8")

LISTINGS = [
    RawListing(
        name="Canadian Tire",
        address="100 Main St, Moncton, NB E1C 1A1",
        hours="Mon-Fri",
        products=("Oil", "Filters"),
    ),
    RawListing(name="Kent", address="5 Elm St, Dieppe, NB E1A 2B3"),
]


def paint_record(name: str) -> DepotRecord:
    return DepotRecord(
        id=name,
        name=name,
        address="",
        coordinate=DEPOT_COORDINATE,
        category=DepotCategory.PAINT,
    )


@pytest.fixture(name="resolver")
def fixture_resolver() -> MagicMock:
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=ORIGIN)
    return resolver


@pytest.fixture(name="geocoder")
def fixture_geocoder() -> MagicMock:
    geocoder = MagicMock()
    geocoder.geocode = AsyncMock(return_value=DEPOT_COORDINATE)
    return geocoder


@pytest.fixture(name="depot_cache")
def fixture_depot_cache() -> MagicMock:
    depot_cache = MagicMock()
    depot_cache.find_by_identity = AsyncMock(return_value=None)
    ids = itertools.count(1)

    async def insert(record: DepotRecord) -> CachedDepot:
        return CachedDepot(id=str(next(ids)), coordinate=record.coordinate)

    depot_cache.insert = AsyncMock(side_effect=insert)
    return depot_cache


@pytest.fixture(name="paint_merchants")
def fixture_paint_merchants() -> MagicMock:
    paint_merchants = MagicMock()
    paint_merchants.get_all = AsyncMock(
        return_value=[paint_record("a"), paint_record("b")]
    )
    paint_merchants.get_within_radius = AsyncMock(return_value=[paint_record("a")])
    return paint_merchants


@pytest.fixture(name="oil_source")
def fixture_oil_source() -> MagicMock:
    oil_source = MagicMock()
    oil_source.fetch = AsyncMock(return_value=LISTINGS)
    return oil_source


@pytest.fixture(name="electronics_source")
def fixture_electronics_source() -> MagicMock:
    electronics_source = MagicMock()
    electronics_source.search = AsyncMock(
        return_value=[
            DepotRecord(
                id="501",
                name="Moncton Depot",
                address="12 Depot Rd",
                category=DepotCategory.ELECTRONICS,
            )
        ]
    )
    return electronics_source


@pytest.fixture(name="aggregator")
def fixture_aggregator(
    resolver: MagicMock,
    geocoder: MagicMock,
    depot_cache: MagicMock,
    paint_merchants: MagicMock,
    oil_source: MagicMock,
    electronics_source: MagicMock,
) -> DepotAggregator:
    return DepotAggregator(
        resolver=resolver,
        geocoder=geocoder,
        depot_cache=depot_cache,
        paint_merchants=paint_merchants,
        oil_source=oil_source,
        electronics_source=electronics_source,
        max_concurrent_geocodes=2,
        paint_radius_miles=25.0,
    )


def test_oil_geocode_query_drops_province_and_postal_code() -> None:
    assert (
        oil_geocode_query(" 100 Main St, Moncton, NB E1C 1A1 ")
        == "100 Main St Moncton NB"
    )
    assert oil_geocode_query("Rural") == ""


class TestElectronics:
    """Tests for the electronics pipeline."""

    @pytest.mark.asyncio
    async def test_forwards_origin_and_numbers_results(
        self, aggregator: DepotAggregator, electronics_source: MagicMock
    ) -> None:
        result = await aggregator.electronics("Moncton")

        electronics_source.search.assert_awaited_once_with(ORIGIN, "Moncton")
        assert result.origin == ORIGIN
        assert [r.result_number for r in result.locations] == [1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [UpstreamUnavailable("HTTP 500"), ParseError("bad json")]
    )
    async def test_upstream_failures_become_not_found(
        self,
        aggregator: DepotAggregator,
        electronics_source: MagicMock,
        error: Exception,
    ) -> None:
        electronics_source.search.side_effect = error

        with pytest.raises(NotFound):
            await aggregator.electronics("Moncton")


class TestOil:
    """Tests for the oil pipeline."""

    @pytest.mark.asyncio
    async def test_misses_are_geocoded_and_persisted(
        self,
        aggregator: DepotAggregator,
        geocoder: MagicMock,
        depot_cache: MagicMock,
    ) -> None:
        """Each new listing is geocoded without its province and postal code."""
        result = await aggregator.oil("Moncton")

        assert result.origin == ORIGIN
        assert [r.name for r in result.locations] == ["Canadian Tire", "Kent"]
        assert [r.result_number for r in result.locations] == [1, 2]
        assert {r.id for r in result.locations} == {"1", "2"}
        assert all(r.coordinate == DEPOT_COORDINATE for r in result.locations)
        assert all(r.category is DepotCategory.OIL for r in result.locations)
        geocoded = sorted(call.args[0] for call in geocoder.geocode.await_args_list)
        assert geocoded == ["100 Main St Moncton NB", "5 Elm St Dieppe NB"]
        assert depot_cache.insert.await_count == 2

    @pytest.mark.asyncio
    async def test_cache_hits_skip_geocoding(
        self,
        aggregator: DepotAggregator,
        geocoder: MagicMock,
        depot_cache: MagicMock,
    ) -> None:
        """A second search for the same page makes no geocoding calls."""
        cached = Coordinate(lat="45.9", lon="-64.6")
        depot_cache.find_by_identity.return_value = CachedDepot(
            id="42", coordinate=cached
        )

        result = await aggregator.oil("Moncton")

        geocoder.geocode.assert_not_awaited()
        depot_cache.insert.assert_not_awaited()
        assert [r.id for r in result.locations] == ["42", "42"]
        assert all(r.coordinate == cached for r in result.locations)

    @pytest.mark.asyncio
    async def test_geocode_failure_persists_empty_coordinate(
        self,
        aggregator: DepotAggregator,
        geocoder: MagicMock,
        depot_cache: MagicMock,
    ) -> None:
        geocoder.geocode.side_effect = UpstreamUnavailable("timed out")

        result = await aggregator.oil("Moncton")

        assert all(r.coordinate is None for r in result.locations)
        assert depot_cache.insert.await_count == 2

    @pytest.mark.asyncio
    async def test_storage_failure_keeps_other_listings(
        self,
        aggregator: DepotAggregator,
        depot_cache: MagicMock,
    ) -> None:
        """A failed insert leaves that listing without an id but keeps it."""
        depot_cache.insert.side_effect = [
            StorageError("locked"),
            CachedDepot(id="2", coordinate=DEPOT_COORDINATE),
        ]

        result = await aggregator.oil("Moncton")

        assert len(result.locations) == 2
        assert sorted(r.id or "" for r in result.locations) == ["", "2"]
        assert all(r.coordinate == DEPOT_COORDINATE for r in result.locations)

    @pytest.mark.asyncio
    async def test_stored_coordinate_wins_over_fresh_geocode(
        self,
        aggregator: DepotAggregator,
        depot_cache: MagicMock,
    ) -> None:
        """A depot stored by a concurrent request keeps its stored coordinate."""
        stored = Coordinate(lat="45.9", lon="-64.6")
        depot_cache.insert.side_effect = None
        depot_cache.insert.return_value = CachedDepot(id="7", coordinate=stored)

        result = await aggregator.oil("Moncton")

        assert [r.id for r in result.locations] == ["7", "7"]
        assert all(r.coordinate == stored for r in result.locations)

    @pytest.mark.asyncio
    async def test_lookup_failure_is_treated_as_miss(
        self,
        aggregator: DepotAggregator,
        geocoder: MagicMock,
        depot_cache: MagicMock,
    ) -> None:
        depot_cache.find_by_identity.side_effect = StorageError("timed out")

        result = await aggregator.oil("Moncton")

        assert geocoder.geocode.await_count == 2
        assert {r.id for r in result.locations} == {"1", "2"}

    @pytest.mark.asyncio
    async def test_output_keeps_page_order(
        self,
        aggregator: DepotAggregator,
        geocoder: MagicMock,
    ) -> None:
        """Slow geocodes for early listings do not reorder the output."""

        async def slow_first(query: str) -> Coordinate:
            if query.startswith("100"):
                await asyncio.sleep(0.05)
            return DEPOT_COORDINATE

        geocoder.geocode.side_effect = slow_first

        result = await aggregator.oil("Moncton")

        assert [r.name for r in result.locations] == ["Canadian Tire", "Kent"]

    @pytest.mark.asyncio
    async def test_geocoding_concurrency_is_bounded(
        self,
        aggregator: DepotAggregator,
        geocoder: MagicMock,
        oil_source: MagicMock,
    ) -> None:
        """No more than max_concurrent_geocodes calls are in flight."""
        oil_source.fetch.return_value = [
            RawListing(name=f"Depot {i}", address=f"{i} Main St Moncton NB E1C 1A1")
            for i in range(6)
        ]
        in_flight = 0
        peak = 0

        async def tracked(query: str) -> Coordinate:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return DEPOT_COORDINATE

        geocoder.geocode.side_effect = tracked

        result = await aggregator.oil("Moncton")

        assert len(result.locations) == 6
        assert peak <= 2

    @pytest.mark.asyncio
    async def test_listing_page_failure_propagates(
        self, aggregator: DepotAggregator, oil_source: MagicMock
    ) -> None:
        oil_source.fetch.side_effect = UpstreamUnavailable("HTTP 503")

        with pytest.raises(UpstreamUnavailable):
            await aggregator.oil("Moncton")


class TestPaint:
    """Tests for the paint pipeline."""

    @pytest.mark.asyncio
    async def test_all_returns_every_merchant(
        self, aggregator: DepotAggregator, paint_merchants: MagicMock
    ) -> None:
        result = await aggregator.paint("Moncton", "all")

        assert [r.name for r in result.locations] == ["a", "b"]
        assert [r.result_number for r in result.locations] == [1, 2]
        paint_merchants.get_within_radius.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_actions_query_radius(
        self, aggregator: DepotAggregator, paint_merchants: MagicMock
    ) -> None:
        result = await aggregator.paint("Moncton", "near")

        paint_merchants.get_within_radius.assert_awaited_once_with(ORIGIN, 25.0)
        assert [r.name for r in result.locations] == ["a"]

    @pytest.mark.asyncio
    async def test_missing_action_is_not_found(
        self, aggregator: DepotAggregator, resolver: MagicMock
    ) -> None:
        with pytest.raises(NotFound):
            await aggregator.paint("Moncton", None)

        resolver.resolve.assert_not_awaited()


@pytest.mark.asyncio
async def test_search_dispatches_by_category(
    aggregator: DepotAggregator, paint_merchants: MagicMock
) -> None:
    result = await aggregator.search(DepotCategory.PAINT, "Moncton", "all")

    assert len(result.locations) == 2
    paint_merchants.get_all.assert_awaited_once()


@pytest.mark.asyncio
async def test_search_propagates_resolution_failure(
    aggregator: DepotAggregator, resolver: MagicMock
) -> None:
    resolver.resolve.side_effect = NotFound("unknown place")

    with pytest.raises(NotFound):
        await aggregator.search(DepotCategory.OIL, "Atlantis")
