# ridecore/core/rides/orchestrator.py
"""
Оркестратор поездок.

Единственный владелец канонического состояния поездки:
- Оценка стоимости по всем классам (параллельно, с изоляцией ошибок)
- Заказ поездки и запуск сессии трекинга
- Применение событий трекинга через машину состояний
- Отмена поездки
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import uuid4

from ridecore.common.constants import RIDE_ID_PREFIX, TypeMsg
from ridecore.common.exceptions import (
    BookingError,
    EstimateUnavailable,
    IllegalTransition,
    RideNotFound,
)
from ridecore.common.logger import get_logger, log_info, log_warning
from ridecore.core.pricing.service import FareEngine
from ridecore.core.rides.repository import RideRepository
from ridecore.core.rides.state_machine import RideStateMachine
from ridecore.core.tracking.session import (
    RideEvent,
    SessionFactory,
    SimulatedTrackingSession,
    TrackingContext,
    TrackingSession,
    TrackingSubscription,
)
from ridecore.shared.events.ride_events import DriverMoved, StatusChanged
from ridecore.shared.models.enums import RideStatus, VehicleClass
from ridecore.shared.models.location_dto import Coordinate
from ridecore.shared.models.ride_dto import FareEstimate, FareEstimates, Ride, RideRequest

logger = get_logger("ridecore.rides")


class RideOrchestrator:
    """
    Оркестратор жизненного цикла поездки.

    Все изменения Ride идут только через этот класс (single-writer):
    наблюдатели получают копии, события трекинга применяются синхронно
    в порядке sequence.
    """

    def __init__(
        self,
        fare_engine: FareEngine | None = None,
        repository: RideRepository | None = None,
        session_factory: SessionFactory | None = None,
        estimated_arrival_minutes: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if estimated_arrival_minutes is None:
            from ridecore.config import settings
            estimated_arrival_minutes = settings.rides.ESTIMATED_ARRIVAL_MINUTES

        self.fare_engine = fare_engine or FareEngine()
        self.repository = repository or RideRepository()
        self._session_factory = session_factory or SimulatedTrackingSession
        self._estimated_arrival = timedelta(minutes=estimated_arrival_minutes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._sessions: dict[str, TrackingSession] = {}
        self._last_sequence: dict[str, int] = {}
        self._current_ride_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Оценка стоимости
    # ------------------------------------------------------------------

    async def _estimate(
        self,
        pickup: Coordinate,
        dropoff: Coordinate,
        vehicle_class: VehicleClass,
    ) -> Optional[FareEstimate]:
        """Оценка для одного класса. Ошибка не выходит за пределы ветки."""
        try:
            return self.fare_engine.estimate(pickup, dropoff, vehicle_class)
        except Exception as e:
            await log_warning(str(EstimateUnavailable(vehicle_class, e)))
            return None

    async def get_fare_estimates(self, pickup: Coordinate, dropoff: Coordinate) -> FareEstimates:
        """
        Оценки стоимости по всем классам авто.

        Классы считаются параллельно; класс, для которого оценка
        не удалась, возвращается как None.
        """
        classes = list(VehicleClass)
        results = await asyncio.gather(
            *(self._estimate(pickup, dropoff, vehicle_class) for vehicle_class in classes)
        )
        return FareEstimates(**{
            vehicle_class.value: estimate
            for vehicle_class, estimate in zip(classes, results)
        })

    # ------------------------------------------------------------------
    # Заказ и отмена
    # ------------------------------------------------------------------

    def _ensure_no_active_ride(self) -> None:
        active = self._active_ride()
        if active is not None:
            raise BookingError(f"Уже есть активная поездка {active.id} ({active.status})")

    async def request_ride(self, request: RideRequest) -> Ride:
        """
        Заказ поездки.

        Raises:
            BookingError: нет точек маршрута, есть активная поездка
                или нет оценки стоимости для выбранного класса
        """
        if request.pickup is None or request.dropoff is None:
            raise BookingError("Не заданы точки посадки и высадки")
        self._ensure_no_active_ride()

        fare = await self._estimate(
            request.pickup.coordinate,
            request.dropoff.coordinate,
            request.vehicle_class,
        )
        if fare is None:
            raise BookingError(f"Нет оценки стоимости для класса {request.vehicle_class}")
        # Пока считалась оценка, мог быть оформлен другой заказ
        self._ensure_no_active_ride()

        created_at = self._clock()
        ride = Ride(
            id=f"{RIDE_ID_PREFIX}{uuid4().hex}",
            pickup=request.pickup,
            dropoff=request.dropoff,
            vehicle_class=request.vehicle_class,
            status=RideStatus.REQUESTED,
            fare=fare,
            created_at=created_at,
            estimated_arrival=created_at + self._estimated_arrival,
        )
        self.repository.add(ride)
        self._current_ride_id = ride.id
        self._last_sequence[ride.id] = 0

        session = self._session_factory(
            ride.id,
            TrackingContext(pickup=request.pickup.coordinate, vehicle_class=request.vehicle_class),
        )
        session.add_listener(self._on_tracking_event)
        self._sessions[ride.id] = session
        await session.start()

        await log_info(
            f"Поездка {ride.id} заказана: {ride.vehicle_class}, {fare.distance_km} км, "
            f"{fare.total} {fare.currency}",
            type_msg=TypeMsg.INFO,
        )
        return self._snapshot(ride)

    async def cancel_ride(self, ride_id: str) -> Ride:
        """
        Отмена поездки (только из REQUESTED / ASSIGNED / ACCEPTED).

        Raises:
            RideNotFound: поездка не найдена
            IllegalTransition: отмена из текущего статуса запрещена
        """
        ride = self._get_record(ride_id)
        RideStateMachine.ensure_can_cancel(ride.status)

        session = self._sessions.get(ride_id)
        if session is not None and not session.closed:
            # Финальное событие CANCELLED применяется через слушателя
            await session.cancel()

        if ride.status != RideStatus.CANCELLED:
            ride.status = RideStateMachine.ensure_transition(ride.status, RideStatus.CANCELLED)
        self._release_session(ride_id)

        await log_info(f"Поездка {ride_id} отменена", type_msg=TypeMsg.INFO)
        return self._snapshot(ride)

    # ------------------------------------------------------------------
    # События трекинга
    # ------------------------------------------------------------------

    def _on_tracking_event(self, event: RideEvent) -> None:
        try:
            self.apply_event(event)
        except (IllegalTransition, RideNotFound) as e:
            logger.warning(f"Событие #{event.sequence} поездки {event.ride_id} отклонено: {e}")

    def apply_event(self, event: RideEvent) -> bool:
        """
        Применяет событие трекинга к поездке.

        Returns:
            False если событие уже применялось (sequence не больше последнего)

        Raises:
            RideNotFound: поездка не найдена
            IllegalTransition: событие нарушает машину состояний
        """
        ride = self._get_record(event.ride_id)

        if event.sequence <= self._last_sequence.get(ride.id, 0):
            logger.debug(f"Повтор события #{event.sequence} поездки {ride.id} пропущен")
            return False

        if RideStateMachine.is_terminal(ride.status):
            requested = event.status if isinstance(event, StatusChanged) else None
            raise IllegalTransition(ride.status, requested, "поездка уже завершена")

        if isinstance(event, StatusChanged):
            ride.status = RideStateMachine.ensure_transition(ride.status, event.status, event.driver)
            if event.driver is not None:
                ride.driver = event.driver.model_copy(deep=True)
            if event.estimated_arrival is not None:
                ride.estimated_arrival = event.estimated_arrival
        elif isinstance(event, DriverMoved):
            if ride.driver is None:
                raise IllegalTransition(ride.status, ride.status, "позиция водителя до назначения")
            ride.driver.location = event.location
        else:
            raise TypeError(f"Неизвестный тип события: {type(event).__name__}")

        self._last_sequence[ride.id] = event.sequence

        if RideStateMachine.is_terminal(ride.status):
            logger.info(f"Поездка {ride.id} завершена со статусом {ride.status}")
            self._release_session(ride.id)
        return True

    def _release_session(self, ride_id: str) -> None:
        session = self._sessions.pop(ride_id, None)
        if session is not None:
            session.remove_listener(self._on_tracking_event)
            session.close()

    def subscribe(self, ride_id: str) -> Optional[TrackingSubscription]:
        """
        Поток событий активной поездки.
        Для завершённой поездки возвращает None (событий больше не будет).
        """
        self._get_record(ride_id)
        session = self._sessions.get(ride_id)
        if session is None or session.closed:
            return None
        return session.subscribe()

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    @staticmethod
    def _snapshot(ride: Ride) -> Ride:
        return ride.model_copy(deep=True)

    def _get_record(self, ride_id: str) -> Ride:
        ride = self.repository.get(ride_id)
        if ride is None:
            raise RideNotFound(ride_id)
        return ride

    def _active_ride(self) -> Optional[Ride]:
        if self._current_ride_id is None:
            return None
        ride = self.repository.get(self._current_ride_id)
        if ride is None or RideStateMachine.is_terminal(ride.status):
            return None
        return ride

    def get_ride(self, ride_id: str) -> Ride:
        """Копия поездки. Raises: RideNotFound."""
        return self._snapshot(self._get_record(ride_id))

    @property
    def current_ride(self) -> Optional[Ride]:
        """Последняя заказанная поездка (в том числе завершённая)."""
        if self._current_ride_id is None:
            return None
        return self.get_ride(self._current_ride_id)

    def get_ride_history(self, limit: int | None = None) -> list[Ride]:
        """История поездок от новых к старым."""
        return [self._snapshot(ride) for ride in self.repository.list_recent(limit)]

    def has_session(self, ride_id: str) -> bool:
        """Идёт ли сейчас трекинг поездки."""
        session = self._sessions.get(ride_id)
        return session is not None and session.is_active

    async def shutdown(self) -> None:
        """Останавливает все сессии трекинга."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            session.remove_listener(self._on_tracking_event)
        await asyncio.gather(*(session.stop() for session in sessions), return_exceptions=True)
        if sessions:
            await log_info(f"Остановлено сессий трекинга: {len(sessions)}", type_msg=TypeMsg.INFO)
