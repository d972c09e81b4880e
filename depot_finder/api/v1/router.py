"""API v1 router module."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from depot_finder.core.errors import DepotLookupError
from depot_finder.core.events import DepotServices
from depot_finder.models.depot import DepotCategory
from depot_finder.models.response import LocationEnvelope

router = APIRouter(default_response_class=JSONResponse, tags=["depots"])

CityQuery = Annotated[
    str,
    Query(min_length=1, description="Place name or postal code to search around"),
]


def get_services(request: Request) -> DepotServices:
    """Get the service container built at startup.

    Raises:
        DepotLookupError: If the application has not finished starting
    """
    services: DepotServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise DepotLookupError("Depot services are not initialized")
    return services


@router.get("/electronics", response_model=LocationEnvelope)
async def electronics_depots(
    city: CityQuery,
    services: DepotServices = Depends(get_services),
) -> LocationEnvelope:
    """Electronics recycling stores near ``city``."""
    result = await services.aggregator.search(DepotCategory.ELECTRONICS, city)
    return LocationEnvelope.success(result)


@router.get("/oil", response_model=LocationEnvelope)
async def oil_depots(
    city: CityQuery,
    services: DepotServices = Depends(get_services),
) -> LocationEnvelope:
    """Used oil collection facilities listed for ``city``."""
    result = await services.aggregator.search(DepotCategory.OIL, city)
    return LocationEnvelope.success(result)


@router.get("/paint", response_model=LocationEnvelope)
async def paint_depots(
    city: CityQuery,
    action: str | None = Query(
        None, description="'all' for every merchant, anything else for nearby ones"
    ),
    services: DepotServices = Depends(get_services),
) -> LocationEnvelope:
    """Paint merchants, all of them or those near ``city``."""
    result = await services.aggregator.search(DepotCategory.PAINT, city, action)
    return LocationEnvelope.success(result)
