from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field
from ridecore.shared.models.enums import RideStatus, VehicleClass
from ridecore.shared.models.location_dto import Address, Coordinate

class FareEstimate(BaseModel):
    """Предварительная (необязывающая) оценка стоимости и времени поездки."""
    distance_km: float = Field(ge=0)
    duration_min: int = Field(ge=0)
    total: float = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)

    class Config:
        frozen = True

class FareEstimates(BaseModel):
    """Оценки по всем классам; None — оценка недоступна."""
    bike: Optional[FareEstimate] = None
    car: Optional[FareEstimate] = None
    xl: Optional[FareEstimate] = None

    def get(self, vehicle_class: VehicleClass) -> Optional[FareEstimate]:
        return getattr(self, vehicle_class.value)

class Driver(BaseModel):
    id: str
    name: str
    vehicle_class: VehicleClass
    location: Coordinate
    rating: float = Field(ge=0, le=5)
    plate_number: str
    vehicle_model: str

class Ride(BaseModel):
    id: str
    pickup: Address
    dropoff: Address
    vehicle_class: VehicleClass
    status: RideStatus = RideStatus.REQUESTED
    fare: FareEstimate
    driver: Optional[Driver] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    estimated_arrival: Optional[datetime] = None

    class Config:
        from_attributes = True

class RideRequest(BaseModel):
    pickup: Optional[Address] = None
    dropoff: Optional[Address] = None
    vehicle_class: VehicleClass

class FareEstimateRequest(BaseModel):
    pickup: Coordinate
    dropoff: Coordinate
