"""Geocoding for depot searches.

This package provides:
- GeocodingService: Nominatim lookups with a timeout and tagged failures
- LocationResolver: search term resolution with a postal prefix fallback
"""

from depot_finder.core.geocoding.resolver import (
    POSTAL_PREFIX_LENGTH,
    Geocoder,
    LocationResolver,
    PrefixStore,
)
from depot_finder.core.geocoding.service import GeocodingService

__all__ = [
    "GeocodingService",
    "LocationResolver",
    "Geocoder",
    "PrefixStore",
    "POSTAL_PREFIX_LENGTH",
]
