"""Live-трекинг поездки: порт сессии и симулируемая реализация."""

from ridecore.core.tracking.session import (
    ScheduledStatus,
    SessionFactory,
    SimulatedTrackingSession,
    TrackingContext,
    TrackingSession,
    TrackingSubscription,
    default_schedule,
    simulated_session_factory,
)

__all__ = [
    "ScheduledStatus",
    "SessionFactory",
    "SimulatedTrackingSession",
    "TrackingContext",
    "TrackingSession",
    "TrackingSubscription",
    "default_schedule",
    "simulated_session_factory",
]
