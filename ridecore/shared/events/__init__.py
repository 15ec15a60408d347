# ridecore/shared/events/__init__.py
"""
Схемы событий трекинга поездки.

- StatusChanged: переход статуса (с водителем при назначении)
- DriverMoved: новая позиция водителя

Все события содержат ride_id и sequence для упорядочивания и дедупликации.
"""

from ridecore.shared.events.base import DomainEvent, EventMetadata
from ridecore.shared.events.ride_events import (
    TrackingEvent,
    StatusChanged,
    DriverMoved,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    # Tracking events
    "TrackingEvent",
    "StatusChanged",
    "DriverMoved",
]
