# tests/shared/test_models.py
"""
Тесты для DTO и событий трекинга.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from ridecore.core.rides.repository import RideRepository
from ridecore.shared.events.ride_events import DriverMoved, StatusChanged
from ridecore.shared.models.enums import RideStatus, TrackingEventType, VehicleClass
from ridecore.shared.models.location_dto import Address, Coordinate, LocationSuggestion
from ridecore.shared.models.ride_dto import FareEstimate, FareEstimates, Ride, RideRequest


def make_ride(ride_id: str, created_at: datetime) -> Ride:
    point = Address(lat=28.6, lng=77.2, address="Janpath")
    return Ride(
        id=ride_id,
        pickup=point,
        dropoff=point,
        vehicle_class=VehicleClass.BIKE,
        fare=FareEstimate(distance_km=0, duration_min=5, total=25, currency="INR"),
        created_at=created_at,
    )


class TestCoordinate:

    @pytest.mark.parametrize("lat,lng", [(90.1, 0), (-90.1, 0), (0, 180.5), (0, -181)])
    def test_out_of_range(self, lat: float, lng: float) -> None:
        with pytest.raises(ValidationError):
            Coordinate(lat=lat, lng=lng)

    def test_frozen(self) -> None:
        coordinate = Coordinate(lat=1, lng=2)
        with pytest.raises(ValidationError):
            coordinate.lat = 3

    def test_address_coordinate(self) -> None:
        address = Address(lat=28.6, lng=77.2, address="Janpath")
        assert address.coordinate == Coordinate(lat=28.6, lng=77.2)

    def test_suggestion_to_address(self) -> None:
        suggestion = LocationSuggestion(
            display_name="India Gate, New Delhi",
            coordinate=Coordinate(lat=28.6129, lng=77.2295),
            place_id="42",
        )
        address = suggestion.to_address()
        assert address.address == "India Gate, New Delhi"
        assert address.lng == 77.2295


class TestRideModels:

    def test_ride_defaults(self) -> None:
        ride = make_ride("ride_1", datetime.now(timezone.utc))
        assert ride.status == RideStatus.REQUESTED
        assert ride.driver is None

    def test_fare_estimates_get(self) -> None:
        car = FareEstimate(distance_km=1.0, duration_min=5, total=65.0, currency="INR")
        estimates = FareEstimates(car=car)

        assert estimates.get(VehicleClass.CAR) == car
        assert estimates.get(VehicleClass.XL) is None

    def test_ride_request_without_points(self) -> None:
        request = RideRequest(vehicle_class="xl")
        assert request.pickup is None
        assert request.vehicle_class == VehicleClass.XL

    def test_invalid_currency(self) -> None:
        with pytest.raises(ValidationError):
            FareEstimate(distance_km=1.0, duration_min=5, total=65.0, currency="RUPEE")


class TestTrackingEvents:

    def test_status_changed_round_trip(self) -> None:
        event = StatusChanged(ride_id="ride_1", sequence=3, status=RideStatus.ON_TRIP)
        parsed = StatusChanged.model_validate_json(event.to_json())

        assert parsed.event_type == TrackingEventType.STATUS_CHANGED.value
        assert parsed.event_id == event.event_id
        assert parsed.status == RideStatus.ON_TRIP

    def test_driver_moved_round_trip(self) -> None:
        event = DriverMoved(ride_id="ride_1", sequence=4, location=Coordinate(lat=28.61, lng=77.21))
        parsed = DriverMoved.model_validate_json(event.to_json())

        assert parsed.event_type == TrackingEventType.DRIVER_MOVED.value
        assert parsed.location == Coordinate(lat=28.61, lng=77.21)

    def test_sequence_positive(self) -> None:
        with pytest.raises(ValidationError):
            StatusChanged(ride_id="ride_1", sequence=0, status=RideStatus.ASSIGNED)

    def test_events_immutable(self) -> None:
        event = StatusChanged(ride_id="ride_1", sequence=1, status=RideStatus.CANCELLED)
        with pytest.raises(ValidationError):
            event.status = RideStatus.COMPLETED


class TestRideRepository:

    def test_add_and_get(self) -> None:
        repository = RideRepository()
        ride = make_ride("ride_1", datetime.now(timezone.utc))
        repository.add(ride)

        assert repository.get("ride_1") is ride
        assert repository.get("ride_2") is None
        assert "ride_1" in repository
        assert len(repository) == 1

    def test_duplicate_id(self) -> None:
        repository = RideRepository()
        now = datetime.now(timezone.utc)
        repository.add(make_ride("ride_1", now))
        with pytest.raises(ValueError):
            repository.add(make_ride("ride_1", now))

    def test_list_recent(self) -> None:
        repository = RideRepository()
        now = datetime.now(timezone.utc)
        repository.add(make_ride("ride_old", now - timedelta(hours=2)))
        repository.add(make_ride("ride_new", now))
        repository.add(make_ride("ride_mid", now - timedelta(hours=1)))

        assert [r.id for r in repository.list_recent()] == ["ride_new", "ride_mid", "ride_old"]
        assert [r.id for r in repository.list_recent(limit=1)] == ["ride_new"]
