from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ridecore.common.exceptions import (
    BookingError,
    IllegalTransition,
    RideNotFound,
)
from ridecore.core.geo.service import (
    BaseGeocoder,
    reverse_geocode_with_fallback,
    search_with_fallback,
)
from ridecore.core.rides.orchestrator import RideOrchestrator
from ridecore.services.rides_api.dependencies import get_geocoder, get_orchestrator
from ridecore.shared.models.location_dto import Address, LocationSuggestion
from ridecore.shared.models.ride_dto import FareEstimateRequest, FareEstimates, Ride, RideRequest

router = APIRouter(tags=["Rides"])


@router.post("/fares/estimate", response_model=FareEstimates)
async def estimate_fares(
    request: FareEstimateRequest,
    orchestrator: RideOrchestrator = Depends(get_orchestrator)
):
    return await orchestrator.get_fare_estimates(request.pickup, request.dropoff)


@router.post("/rides", response_model=Ride)
async def request_ride(
    request: RideRequest,
    orchestrator: RideOrchestrator = Depends(get_orchestrator)
):
    try:
        return await orchestrator.request_ride(request)
    except BookingError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/rides", response_model=list[Ride])
async def get_ride_history(
    limit: Optional[int] = Query(default=None, ge=1),
    orchestrator: RideOrchestrator = Depends(get_orchestrator)
):
    return orchestrator.get_ride_history(limit)


@router.get("/rides/current", response_model=Ride)
async def get_current_ride(
    orchestrator: RideOrchestrator = Depends(get_orchestrator)
):
    ride = orchestrator.current_ride
    if ride is None:
        raise HTTPException(status_code=404, detail="No current ride")
    return ride


@router.get("/rides/{ride_id}", response_model=Ride)
async def get_ride(
    ride_id: str,
    orchestrator: RideOrchestrator = Depends(get_orchestrator)
):
    try:
        return orchestrator.get_ride(ride_id)
    except RideNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/rides/{ride_id}/cancel", response_model=Ride)
async def cancel_ride(
    ride_id: str,
    orchestrator: RideOrchestrator = Depends(get_orchestrator)
):
    try:
        return await orchestrator.cancel_ride(ride_id)
    except RideNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except IllegalTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/locations/search", response_model=list[LocationSuggestion])
async def search_locations(
    q: str = Query(default=""),
    geocoder: BaseGeocoder = Depends(get_geocoder)
):
    from ridecore.config import settings

    # Короткие запросы не уходят в геокодер
    if len(q) < settings.search.SEARCH_MIN_QUERY_LENGTH:
        return []
    return await search_with_fallback(geocoder, q)


@router.get("/locations/reverse", response_model=Address)
async def reverse_location(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    geocoder: BaseGeocoder = Depends(get_geocoder)
):
    label = await reverse_geocode_with_fallback(geocoder, lat, lng)
    return Address(lat=lat, lng=lng, address=label)
