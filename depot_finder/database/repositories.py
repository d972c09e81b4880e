"""Repository pattern for the postal, depot and paint tables."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from prometheus_client import Counter
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from depot_finder.core.config import settings
from depot_finder.core.errors import StorageError
from depot_finder.core.logging import get_logger
from depot_finder.models.depot import (
    Coordinate,
    DepotCategory,
    DepotRecord,
    depot_identity,
)
from depot_finder.services.ranking import DistanceRanker

from .geo_utils import GreatCircleQueryBuilder
from .models import DepotModel, PaintMerchantModel, PostalPrefixModel

logger = get_logger(__name__)

DEPOT_CACHE_LOOKUPS = Counter(
    "depot_cache_lookups_total",
    "Depot cache lookups by outcome",
    ["result"],
)

ModelType = TypeVar("ModelType")
T = TypeVar("T")


@dataclass(frozen=True)
class CachedDepot:
    """Id and coordinate remembered for a depot identity."""

    id: str
    coordinate: Coordinate | None


class BaseRepository(Generic[ModelType]):
    """Base repository running each call in its own bounded session."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[ModelType],
        timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.model = model
        self.timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT

    async def _run(
        self,
        action: str,
        operation: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run ``operation`` in a fresh session under the storage timeout.

        Raises:
            StorageError: If the operation fails or exceeds the timeout
        """

        async def in_session() -> T:
            async with self.session_factory() as session:
                return await operation(session)

        table = getattr(self.model, "__tablename__", str(self.model))
        try:
            return await asyncio.wait_for(in_session(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StorageError(
                f"{action} on {table} timed out after {self.timeout}s",
                table=table,
            ) from e
        except SQLAlchemyError as e:
            raise StorageError(f"{action} on {table} failed: {e}", table=table) from e

    @staticmethod
    def _dialect_name(session: AsyncSession) -> str:
        bind = session.bind
        return bind.dialect.name if bind is not None else ""


class GeoCacheRepository(BaseRepository[PostalPrefixModel]):
    """Read-only lookups of postal-code prefixes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
    ):
        super().__init__(session_factory, PostalPrefixModel, timeout)

    async def get(self, prefix: str) -> Coordinate | None:
        """Get the coordinate stored for a prefix, ignoring case.

        Args:
            prefix: First three characters of a postal code

        Returns:
            Cached coordinate, or None on a miss
        """

        async def lookup(session: AsyncSession) -> Coordinate | None:
            query = (
                select(self.model.lat, self.model.lon)
                .where(func.lower(self.model.prefix) == prefix.lower())
                .limit(1)
            )
            row = (await session.execute(query)).first()
            if row is None:
                return None
            return Coordinate.from_values(row.lat, row.lon)

        return await self._run("prefix lookup", lookup)


class DepotCacheRepository(BaseRepository[DepotModel]):
    """Persisted ids and coordinates of scraped depots."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
    ):
        super().__init__(session_factory, DepotModel, timeout)

    @staticmethod
    def _to_cached(depot: DepotModel) -> CachedDepot:
        return CachedDepot(
            id=str(depot.id),
            coordinate=Coordinate.from_values(depot.lat, depot.lon),
        )

    async def _select_by_key(
        self, session: AsyncSession, identity_key: str
    ) -> DepotModel | None:
        query = select(self.model).where(self.model.identity_key == identity_key)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def find_by_identity(self, name: str, address: str) -> CachedDepot | None:
        """Find a depot by name and address, ignoring case and whitespace.

        Args:
            name: Depot name as scraped
            address: Depot address as scraped

        Returns:
            Cached id and coordinate, or None on a miss
        """
        identity_key = depot_identity(name, address)

        async def lookup(session: AsyncSession) -> CachedDepot | None:
            depot = await self._select_by_key(session, identity_key)
            return self._to_cached(depot) if depot is not None else None

        cached = await self._run("identity lookup", lookup)
        DEPOT_CACHE_LOOKUPS.labels(result="hit" if cached else "miss").inc()
        return cached

    async def insert(self, record: DepotRecord) -> CachedDepot:
        """Persist a depot, or return the row already stored for its identity.

        The unique identity key makes this an atomic insert-or-return-existing:
        when two requests race on a new depot, the loser gets the winner's row
        and the stored coordinate is left untouched.

        Args:
            record: Depot to persist

        Returns:
            Id and coordinate of the stored row

        Raises:
            StorageError: If the row can be neither inserted nor found
        """
        identity_key = depot_identity(record.name, record.address)
        coordinate = record.coordinate

        async def upsert(session: AsyncSession) -> CachedDepot:
            existing = await self._select_by_key(session, identity_key)
            if existing is not None:
                return self._to_cached(existing)

            depot = self.model(
                identity_key=identity_key,
                depot_name=record.name.strip(),
                physical_address=record.address.strip(),
                lat=coordinate.lat if coordinate else None,
                lon=coordinate.lon if coordinate else None,
                hours=record.hours,
                products=record.products_display,
                terms=record.terms,
                description=record.description,
            )
            session.add(depot)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = await self._select_by_key(session, identity_key)
                if existing is None:
                    raise
                logger.info("depot_insert_raced", identity_key=identity_key)
                return self._to_cached(existing)
            return self._to_cached(depot)

        return await self._run("depot insert", upsert)


class PaintMerchantRepository(BaseRepository[PaintMerchantModel]):
    """Queries over merchants that accept paint."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float | None = None,
        ranker: DistanceRanker | None = None,
    ):
        super().__init__(session_factory, PaintMerchantModel, timeout)
        self.ranker = ranker or DistanceRanker()

    @staticmethod
    def _to_record(merchant: PaintMerchantModel) -> DepotRecord:
        products = [p.strip() for p in (merchant.products or "").split(", ")]
        return DepotRecord(
            id=str(merchant.id),
            name=merchant.store,
            address=merchant.address_line_1 or "",
            city=merchant.city or "",
            state=merchant.province or "",
            phone=merchant.phone or "",
            hours=merchant.hours or "",
            products=[p for p in products if p],
            coordinate=Coordinate.from_values(merchant.lat, merchant.lon),
            category=DepotCategory.PAINT,
        )

    async def get_all(self) -> list[DepotRecord]:
        """Get every merchant in storage order."""

        async def fetch(session: AsyncSession) -> list[DepotRecord]:
            result = await session.execute(select(self.model).order_by(self.model.id))
            return [self._to_record(m) for m in result.scalars().all()]

        return await self._run("merchant listing", fetch)

    async def get_within_radius(
        self, origin: Coordinate, radius_miles: float
    ) -> list[DepotRecord]:
        """Get merchants strictly closer than ``radius_miles``, nearest first.

        PostgreSQL evaluates the distance in the query; other dialects load
        all merchants and rank them with the same formula in Python.
        """

        async def fetch(session: AsyncSession) -> list[DepotRecord]:
            if not GreatCircleQueryBuilder.supports(self._dialect_name(session)):
                result = await session.execute(
                    select(self.model).order_by(self.model.id)
                )
                records = [self._to_record(m) for m in result.scalars().all()]
                return self.ranker.rank(origin, records, radius_miles)

            query = GreatCircleQueryBuilder.add_radius_filter(
                select(self.model),
                self.model.lat,
                self.model.lon,
                origin,
                radius_miles,
            ).order_by(self.model.id)
            result = await session.execute(query)
            return [self._to_record(m) for m in result.scalars().all()]

        return await self._run("merchant radius query", fetch)
