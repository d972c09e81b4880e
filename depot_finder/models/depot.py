"""Domain models for depots and coordinates."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DepotCategory(str, Enum):
    """Material categories served by the depot finder."""

    ELECTRONICS = "electronics"
    OIL = "oil"
    PAINT = "paint"


class Coordinate(BaseModel):
    """Latitude/longitude pair kept as the decimal strings the source sent."""

    model_config = ConfigDict(frozen=True)

    lat: str = Field(..., description="Latitude in decimal degrees")
    lon: str = Field(..., description="Longitude in decimal degrees")

    @classmethod
    def from_values(cls, lat: object, lon: object) -> "Coordinate | None":
        """Build a coordinate from raw column or payload values.

        Returns None when either value is missing or blank.
        """
        if lat is None or lon is None:
            return None
        lat_text, lon_text = str(lat).strip(), str(lon).strip()
        if not lat_text or not lon_text:
            return None
        return cls(lat=lat_text, lon=lon_text)

    def to_floats(self) -> tuple[float, float]:
        """Return (latitude, longitude) as floats.

        Raises:
            ValueError: If either component is not a number
        """
        return float(self.lat), float(self.lon)


# Unit separator; whitespace, so normalization never leaves one in a part
IDENTITY_SEPARATOR = "\x1f"


def normalize_identity_part(value: str) -> str:
    """Lowercase a name or address and collapse its whitespace."""
    return " ".join(value.split()).lower()


def depot_identity(name: str, address: str) -> str:
    """Build the key under which a scraped depot is cached.

    Two listings whose names and addresses differ only in letter case or
    whitespace map to the same key.
    """
    return IDENTITY_SEPARATOR.join(
        (normalize_identity_part(name), normalize_identity_part(address))
    )


class RawListing(BaseModel):
    """One depot entry as extracted from an HTML listing page."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    hours: str = ""
    products: tuple[str, ...] = ()


class DepotRecord(BaseModel):
    """A depot normalized from any of the upstream sources."""

    id: str | None = Field(None, description="Persisted or upstream identifier")
    name: str
    address: str
    city: str = ""
    state: str = ""
    postal_code: str = ""
    phone: str = ""
    hours: str = ""
    terms: str = ""
    description: str = ""
    products: list[str] = Field(default_factory=list)
    coordinate: Coordinate | None = None
    category: DepotCategory
    result_number: int | None = None

    @property
    def products_display(self) -> str:
        """Accepted products joined for display."""
        return ", ".join(self.products)


class AggregationResult(BaseModel):
    """Search coordinate plus the depots found around it."""

    origin: Coordinate
    locations: list[DepotRecord] = Field(default_factory=list)
