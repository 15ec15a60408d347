"""Жизненный цикл поездки: машина состояний, хранилище, оркестратор."""

from ridecore.core.rides.repository import RideRepository
from ridecore.core.rides.state_machine import RideStateMachine

__all__ = ["RideRepository", "RideStateMachine"]
