from enum import Enum

class RideStatus(str, Enum):
    """Статусы поездки."""
    REQUESTED = "requested"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    ON_TRIP = "on_trip"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

class VehicleClass(str, Enum):
    """Классы автомобилей (закрытый набор)."""
    BIKE = "bike"
    CAR = "car"
    XL = "xl"

    def __str__(self) -> str:
        return self.value

class TrackingEventType(str, Enum):
    """Типы событий трекинга."""
    STATUS_CHANGED = "ride.status_changed"
    DRIVER_MOVED = "ride.driver_moved"

    def __str__(self) -> str:
        return self.value
