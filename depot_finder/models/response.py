"""Response models returned to the front end."""

from pydantic import BaseModel, Field

from depot_finder.models.depot import AggregationResult, DepotCategory, DepotRecord


STORED_CATEGORIES = (DepotCategory.OIL, DepotCategory.PAINT)


def persisted_id(record: DepotRecord) -> int | None:
    """Row id of an oil or paint depot, reported to the front end as ``myID``."""
    if record.category not in STORED_CATEGORIES:
        return None
    if record.id is None or not record.id.isdigit():
        return None
    return int(record.id)


class DepotLocation(BaseModel):
    """Depot as serialized for the map front end."""

    id: str | None = None
    store: str
    address: str
    city: str = ""
    state: str = ""
    zip: str = ""
    lat: str = ""
    lng: str = ""
    phone: str = ""
    hours: str = ""
    terms: str = ""
    description: str = ""
    products: str = ""
    category: str
    my_id: int | None = Field(None, serialization_alias="myID")
    result_number: int | None = Field(None, serialization_alias="resultNumber")

    @classmethod
    def from_record(cls, record: DepotRecord) -> "DepotLocation":
        """Flatten a depot record into front-end field names."""
        coordinate = record.coordinate
        return cls(
            id=record.id,
            store=record.name,
            address=record.address,
            city=record.city,
            state=record.state,
            zip=record.postal_code,
            lat=coordinate.lat if coordinate else "",
            lng=coordinate.lon if coordinate else "",
            phone=record.phone,
            hours=record.hours,
            terms=record.terms,
            description=record.description,
            products=record.products_display,
            category=record.category.value,
            my_id=persisted_id(record),
            result_number=record.result_number,
        )


class LocationEnvelope(BaseModel):
    """Uniform wrapper around every category response."""

    ok: bool
    lat: str = ""
    lon: str = ""
    locations: list[DepotLocation] = Field(default_factory=list)

    @classmethod
    def success(cls, result: AggregationResult) -> "LocationEnvelope":
        return cls(
            ok=True,
            lat=result.origin.lat,
            lon=result.origin.lon,
            locations=[DepotLocation.from_record(r) for r in result.locations],
        )

    @classmethod
    def failure(cls) -> "LocationEnvelope":
        return cls(ok=False)
