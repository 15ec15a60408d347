# ridecore/shared/models/__init__.py
"""
Pydantic-модели домена поездок.
"""

from ridecore.shared.models.enums import (
    RideStatus,
    VehicleClass,
    TrackingEventType,
)
from ridecore.shared.models.location_dto import (
    Coordinate,
    Address,
    LocationSuggestion,
)
from ridecore.shared.models.ride_dto import (
    FareEstimate,
    FareEstimates,
    FareEstimateRequest,
    Driver,
    Ride,
    RideRequest,
)

__all__ = [
    # Enums
    "RideStatus",
    "VehicleClass",
    "TrackingEventType",
    # Location
    "Coordinate",
    "Address",
    "LocationSuggestion",
    # Ride
    "FareEstimate",
    "FareEstimates",
    "FareEstimateRequest",
    "Driver",
    "Ride",
    "RideRequest",
]
