# ridecore/core/rides/repository.py
"""
Хранилище поездок в памяти процесса.
"""

from __future__ import annotations

from typing import Optional

from ridecore.shared.models.ride_dto import Ride


class RideRepository:
    """
    Репозиторий поездок одного пассажира.

    Хранит канонические объекты Ride; наружу отдаются только копии
    (см. RideOrchestrator).
    """

    def __init__(self) -> None:
        self._rides: dict[str, Ride] = {}

    def add(self, ride: Ride) -> Ride:
        if ride.id in self._rides:
            raise ValueError(f"Поездка {ride.id} уже существует")
        self._rides[ride.id] = ride
        return ride

    def get(self, ride_id: str) -> Optional[Ride]:
        return self._rides.get(ride_id)

    def list_recent(self, limit: int | None = None) -> list[Ride]:
        """Поездки от новых к старым."""
        rides = sorted(self._rides.values(), key=lambda r: r.created_at, reverse=True)
        return rides[:limit] if limit is not None else rides

    def __len__(self) -> int:
        return len(self._rides)

    def __contains__(self, ride_id: str) -> bool:
        return ride_id in self._rides
