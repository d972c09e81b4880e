"""Pydantic models for depots and API responses."""

from depot_finder.models.depot import (
    AggregationResult,
    Coordinate,
    DepotCategory,
    DepotRecord,
    RawListing,
    depot_identity,
)
from depot_finder.models.response import DepotLocation, LocationEnvelope

__all__ = [
    "AggregationResult",
    "Coordinate",
    "DepotCategory",
    "DepotRecord",
    "RawListing",
    "depot_identity",
    "DepotLocation",
    "LocationEnvelope",
]
