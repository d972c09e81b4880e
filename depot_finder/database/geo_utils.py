"""Great-circle distance expressions for SQL queries."""

from sqlalchemy import Float, cast, func
from sqlalchemy.sql import ColumnElement, Select

from depot_finder.models.depot import Coordinate
from depot_finder.services.ranking import EARTH_RADIUS_MILES

# Dialects with acos, radians, least and greatest as SQL functions
TRIG_DIALECTS = frozenset({"postgresql"})


class GreatCircleQueryBuilder:
    """Builder for distance filters over text lat/lon columns."""

    @staticmethod
    def supports(dialect_name: str) -> bool:
        """Whether distance can be evaluated inside the database."""
        return dialect_name in TRIG_DIALECTS

    @staticmethod
    def distance_miles(
        lat_column,
        lon_column,
        origin: Coordinate,
        earth_radius: float = EARTH_RADIUS_MILES,
    ) -> ColumnElement[float]:
        """Spherical law of cosines distance from ``origin`` to each row."""
        origin_lat, origin_lon = origin.to_floats()
        lat = func.radians(cast(lat_column, Float))
        lon = func.radians(cast(lon_column, Float))
        cosine = func.cos(func.radians(origin_lat)) * func.cos(lat) * func.cos(
            lon - func.radians(origin_lon)
        ) + func.sin(func.radians(origin_lat)) * func.sin(lat)
        # Clamp so acos never sees 1.0000000002 for the origin itself
        return earth_radius * func.acos(func.least(1.0, func.greatest(-1.0, cosine)))

    @classmethod
    def add_radius_filter(
        cls,
        query: Select,
        lat_column,
        lon_column,
        origin: Coordinate,
        radius_miles: float,
    ) -> Select:
        """Keep rows strictly closer than ``radius_miles``, nearest first."""
        distance = cls.distance_miles(lat_column, lon_column, origin)
        return query.where(distance < radius_miles).order_by(distance)
