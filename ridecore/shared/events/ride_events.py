# ridecore/shared/events/ride_events.py
"""
События live-трекинга поездки.
Порядок событий одной поездки задаётся полем sequence (строго возрастает).
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from ridecore.shared.events.base import DomainEvent
from ridecore.shared.models.enums import RideStatus, TrackingEventType
from ridecore.shared.models.location_dto import Coordinate
from ridecore.shared.models.ride_dto import Driver


class TrackingEvent(DomainEvent):
    """Базовое событие трекинга, привязанное к поездке."""

    ride_id: str
    sequence: int = Field(ge=1)


class StatusChanged(TrackingEvent):
    """Событие: статус поездки изменён."""

    event_type: Literal["ride.status_changed"] = TrackingEventType.STATUS_CHANGED.value

    status: RideStatus
    # Передаётся только вместе с переходом в ASSIGNED
    driver: Driver | None = None
    estimated_arrival: datetime | None = None


class DriverMoved(TrackingEvent):
    """Событие: водитель сменил позицию."""

    event_type: Literal["ride.driver_moved"] = TrackingEventType.DRIVER_MOVED.value

    location: Coordinate

