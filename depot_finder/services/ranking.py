"""Great-circle filtering and ordering of depot records."""

import math
from collections.abc import Iterable

from depot_finder.core.logging import get_logger
from depot_finder.models.depot import Coordinate, DepotRecord

logger = get_logger(__name__)

# Mean Earth radius in miles; radii passed to the ranker use the same unit
EARTH_RADIUS_MILES = 3959.0


def great_circle_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    earth_radius: float = EARTH_RADIUS_MILES,
) -> float:
    """Distance between two points via the spherical law of cosines.

    Args:
        lat1: Latitude of the first point in degrees
        lon1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lon2: Longitude of the second point in degrees
        earth_radius: Sphere radius, sets the unit of the result

    Returns:
        Distance in the unit of ``earth_radius``
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)
    cosine = math.sin(phi1) * math.sin(phi2) + math.cos(phi1) * math.cos(
        phi2
    ) * math.cos(d_lambda)
    # Rounding can push identical points slightly past 1
    return earth_radius * math.acos(max(-1.0, min(1.0, cosine)))


class DistanceRanker:
    """Keeps the records inside a radius, nearest first."""

    def __init__(self, earth_radius: float = EARTH_RADIUS_MILES) -> None:
        self.earth_radius = earth_radius

    def distance(self, origin: Coordinate, target: Coordinate) -> float:
        lat1, lon1 = origin.to_floats()
        lat2, lon2 = target.to_floats()
        return great_circle_distance(lat1, lon1, lat2, lon2, self.earth_radius)

    def rank(
        self,
        origin: Coordinate,
        candidates: Iterable[DepotRecord],
        radius: float,
    ) -> list[DepotRecord]:
        """Filter ``candidates`` to those closer than ``radius`` and sort them.

        Records without a usable coordinate are dropped. The sort is stable,
        so records at equal distance keep their input order.

        Args:
            origin: Reference point
            candidates: Records to filter
            radius: Exclusive upper bound, in the ranker's distance unit

        Returns:
            Records with distance < radius in non-decreasing distance order
        """
        scored: list[tuple[float, DepotRecord]] = []
        for record in candidates:
            if record.coordinate is None:
                continue
            try:
                distance = self.distance(origin, record.coordinate)
            except ValueError:
                logger.warning(
                    "unrankable_coordinate",
                    depot=record.name,
                    lat=record.coordinate.lat,
                    lon=record.coordinate.lon,
                )
                continue
            if distance < radius:
                scored.append((distance, record))

        scored.sort(key=lambda item: item[0])
        return [record for _, record in scored]
