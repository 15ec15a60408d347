# ridecore/core/tracking/session.py
"""
Сессия live-трекинга поездки.

TrackingSession — порт: упорядоченный поток событий одной поездки
(StatusChanged / DriverMoved) с рассылкой всем подписчикам.
SimulatedTrackingSession — реализация без бэкенда: статусы по фиксированному
расписанию и случайное смещение позиции водителя по таймеру.
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Coroutine, Iterable, NamedTuple, Union
from uuid import uuid4

from ridecore.common.constants import TypeMsg
from ridecore.common.logger import get_logger, log_info
from ridecore.core.geo.utils import distance_km
from ridecore.core.pricing.service import MINUTES_PER_KM, round_half_up
from ridecore.core.rides.state_machine import RideStateMachine
from ridecore.shared.events.ride_events import DriverMoved, StatusChanged
from ridecore.shared.models.enums import RideStatus, VehicleClass
from ridecore.shared.models.location_dto import Coordinate
from ridecore.shared.models.ride_dto import Driver

logger = get_logger("ridecore.tracking")

RideEvent = Union[StatusChanged, DriverMoved]
EventListener = Callable[[RideEvent], None]

# Маркер конца потока для подписчиков
_END = object()


@dataclass(frozen=True)
class TrackingContext:
    """Неизменяемые входные данные сессии (сама поездка сессии не принадлежит)."""
    pickup: Coordinate
    vehicle_class: VehicleClass


class TrackingSubscription:
    """
    Подписка одного наблюдателя на поток событий поездки.

    Асинхронный итератор: отдаёт события в порядке эмиссии
    и завершается при закрытии сессии или самой подписки.
    """

    def __init__(self, session: "TrackingSession") -> None:
        self._session = session
        self._queue: asyncio.Queue = asyncio.Queue()
        self._finished = False
        self._exhausted = False

    @property
    def ride_id(self) -> str:
        return self._session.ride_id

    def _push(self, event: RideEvent) -> None:
        if not self._finished:
            self._queue.put_nowait(event)

    def _finish(self) -> None:
        if not self._finished:
            self._finished = True
            self._queue.put_nowait(_END)

    def close(self) -> None:
        """Отписаться. Последний ушедший подписчик завершает сессию."""
        self._finish()
        self._session._detach(self)

    def __aiter__(self) -> "TrackingSubscription":
        return self

    async def __anext__(self) -> RideEvent:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "TrackingSubscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class TrackingSession(ABC):
    """
    Базовая сессия трекинга одной поездки.

    Гарантии:
    - События одной поездки строго упорядочены (sequence растёт на 1)
    - Все слушатели и подписчики получают одну и ту же последовательность
    - После teardown не эмитится ни одного события, все таймеры отменены
    """

    def __init__(self, ride_id: str) -> None:
        self.ride_id = ride_id
        self._sequence = 0
        self._listeners: list[EventListener] = []
        self._subscriptions: list[TrackingSubscription] = []
        self._tasks: set[asyncio.Task] = set()
        self._started = False
        self._closed = False
        self._emitting = False
        self._close_requested = False

    @property
    def closed(self) -> bool:
        return self._closed or self._close_requested

    @property
    def is_active(self) -> bool:
        return self._started and not self.closed

    @property
    def last_sequence(self) -> int:
        return self._sequence

    @property
    def pending_timers(self) -> int:
        """Количество ещё не завершённых задач-таймеров."""
        return sum(1 for task in self._tasks if not task.done())

    # ------------------------------------------------------------------
    # Жизненный цикл
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Запускает поток событий (повторный вызов игнорируется)."""
        if self._started or self.closed:
            return
        self._started = True
        await self._on_start()
        await log_info(f"Трекинг поездки {self.ride_id} запущен", type_msg=TypeMsg.DEBUG)

    @abstractmethod
    async def _on_start(self) -> None:
        """Планирует источники событий (через _spawn)."""

    def close(self) -> None:
        """
        Синхронный teardown: отменяет таймеры и завершает потоки подписчиков.
        Вызов во время рассылки откладывается до её окончания.
        """
        if self._closed:
            return
        if self._emitting:
            self._close_requested = True
            return
        self._teardown()

    async def stop(self) -> None:
        """Teardown с ожиданием завершения всех задач."""
        self.close()
        current = _current_task()
        pending = [task for task in self._tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def cancel(self) -> None:
        """
        Отмена поездки: финальное событие CANCELLED для всех наблюдателей,
        затем teardown.
        """
        if self.closed:
            return
        self._emit_status(RideStatus.CANCELLED)
        await self.stop()

    def _teardown(self) -> None:
        self._closed = True
        current = _current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        for subscription in list(self._subscriptions):
            subscription._finish()
        self._subscriptions.clear()
        self._listeners.clear()
        logger.debug(f"Трекинг поездки {self.ride_id} остановлен (последнее событие #{self._sequence})")

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Подписки
    # ------------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        """Синхронный слушатель; вызывается до рассылки подписчикам."""
        if not self.closed:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        self._release_if_unobserved()

    def subscribe(self) -> TrackingSubscription:
        """Новый наблюдатель. Для закрытой сессии поток сразу пуст."""
        subscription = TrackingSubscription(self)
        if self.closed:
            subscription._finish()
        else:
            self._subscriptions.append(subscription)
        return subscription

    def _detach(self, subscription: TrackingSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        self._release_if_unobserved()

    def _release_if_unobserved(self) -> None:
        if self._started and not self._listeners and not self._subscriptions:
            self.close()

    # ------------------------------------------------------------------
    # Эмиссия
    # ------------------------------------------------------------------

    def _emit(self, event: RideEvent) -> bool:
        if self.closed:
            return False

        self._emitting = True
        try:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception(f"Ошибка слушателя трекинга поездки {self.ride_id}")
            for subscription in list(self._subscriptions):
                subscription._push(event)
        finally:
            self._emitting = False

        if isinstance(event, StatusChanged) and RideStateMachine.is_terminal(event.status):
            self._close_requested = True
        if self._close_requested:
            self._teardown()
        return True

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _emit_status(
        self,
        status: RideStatus,
        driver: Driver | None = None,
        estimated_arrival: datetime | None = None,
    ) -> bool:
        if self.closed:
            return False
        return self._emit(StatusChanged(
            ride_id=self.ride_id,
            sequence=self._next_sequence(),
            status=status,
            driver=driver,
            estimated_arrival=estimated_arrival,
        ))

    def _emit_position(self, location: Coordinate) -> bool:
        if self.closed:
            return False
        return self._emit(DriverMoved(
            ride_id=self.ride_id,
            sequence=self._next_sequence(),
            location=location,
        ))


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


# =============================================================================
# СИМУЛЯЦИЯ
# =============================================================================

class ScheduledStatus(NamedTuple):
    """Переход статуса через offset секунд от старта сессии."""
    offset: float
    status: RideStatus


# Данные симулируемого водителя
SIMULATED_DRIVER_NAME = "Ravi Sharma"
SIMULATED_DRIVER_RATING = 4.7
SIMULATED_PLATE_NUMBER = "DL08XY9876"
VEHICLE_MODELS: dict[VehicleClass, str] = {
    VehicleClass.BIKE: "Honda Activa",
    VehicleClass.CAR: "Maruti Swift",
    VehicleClass.XL: "Toyota Innova",
}


def default_schedule(tracking=None) -> list[ScheduledStatus]:
    """Расписание статусов из настроек трекинга."""
    if tracking is None:
        from ridecore.config import settings
        tracking = settings.tracking

    schedule = [
        ScheduledStatus(tracking.ASSIGN_DELAY, RideStatus.ASSIGNED),
        ScheduledStatus(tracking.ACCEPT_DELAY, RideStatus.ACCEPTED),
        ScheduledStatus(tracking.TRIP_START_DELAY, RideStatus.ON_TRIP),
    ]
    if tracking.TRIP_COMPLETE_DELAY > 0:
        schedule.append(ScheduledStatus(tracking.TRIP_COMPLETE_DELAY, RideStatus.COMPLETED))
    return schedule


class SimulatedTrackingSession(TrackingSession):
    """
    Симуляция live-канала в отсутствие реального бэкенда.

    - Статусы эмитятся по фиксированному расписанию от момента старта
    - При ASSIGNED создаётся водитель рядом с точкой посадки
    - Пока водитель назначен, каждые position_interval секунд
      позиция смещается на U(-jitter, jitter) по широте и долготе
    """

    def __init__(
        self,
        ride_id: str,
        context: TrackingContext,
        schedule: Iterable[ScheduledStatus] | None = None,
        position_interval: float | None = None,
        position_jitter: float | None = None,
        spawn_jitter: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(ride_id)
        from ridecore.config import settings
        tracking = settings.tracking

        self._context = context
        self._schedule = list(schedule) if schedule is not None else default_schedule(tracking)
        self._position_interval = position_interval or tracking.POSITION_UPDATE_INTERVAL
        self._position_jitter = tracking.POSITION_JITTER_DEG if position_jitter is None else position_jitter
        self._spawn_jitter = tracking.DRIVER_SPAWN_JITTER_DEG if spawn_jitter is None else spawn_jitter
        self._rng = rng or random.Random()
        self._driver_location: Coordinate | None = None
        self._validate_schedule()

    def _validate_schedule(self) -> None:
        offsets = [item.offset for item in self._schedule]
        if offsets != sorted(offsets) or any(offset < 0 for offset in offsets):
            raise ValueError("Смещения расписания должны быть неотрицательны и не убывать")

        status = RideStatus.REQUESTED
        for item in self._schedule:
            if not RideStateMachine.can_transition(status, item.status):
                raise ValueError(f"Расписание содержит недопустимый переход {status} -> {item.status}")
            status = item.status

    async def _on_start(self) -> None:
        loop = asyncio.get_running_loop()
        started_at = loop.time()
        self._spawn(self._run_schedule(started_at))
        self._spawn(self._run_positions())

    async def _run_schedule(self, started_at: float) -> None:
        loop = asyncio.get_running_loop()
        for offset, status in self._schedule:
            delay = started_at + offset - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if self.closed:
                return

            if status == RideStatus.ASSIGNED:
                driver = self._spawn_driver()
                self._driver_location = driver.location
                self._emit_status(status, driver=driver, estimated_arrival=self._eta(driver.location))
            else:
                self._emit_status(status)

    async def _run_positions(self) -> None:
        while not self.closed:
            await asyncio.sleep(self._position_interval)
            if self.closed:
                return
            if self._driver_location is None:
                continue
            self._driver_location = self._jitter(self._driver_location, self._position_jitter)
            self._emit_position(self._driver_location)

    def _uniform(self, spread: float) -> float:
        return self._rng.uniform(-spread, spread)

    def _jitter(self, location: Coordinate, spread: float) -> Coordinate:
        lat = min(90.0, max(-90.0, location.lat + self._uniform(spread)))
        lng = location.lng + self._uniform(spread)
        if lng > 180.0 or lng < -180.0:
            lng = (lng + 180.0) % 360.0 - 180.0
        return Coordinate(lat=lat, lng=lng)

    def _spawn_driver(self) -> Driver:
        vehicle_class = self._context.vehicle_class
        return Driver(
            id=f"driver_{uuid4().hex[:8]}",
            name=SIMULATED_DRIVER_NAME,
            vehicle_class=vehicle_class,
            location=self._jitter(self._context.pickup, self._spawn_jitter),
            rating=SIMULATED_DRIVER_RATING,
            plate_number=SIMULATED_PLATE_NUMBER,
            vehicle_model=VEHICLE_MODELS[vehicle_class],
        )

    def _eta(self, driver_location: Coordinate) -> datetime:
        minutes = max(1, round_half_up(distance_km(driver_location, self._context.pickup) * MINUTES_PER_KM))
        return datetime.now(timezone.utc) + timedelta(minutes=minutes)


SessionFactory = Callable[[str, TrackingContext], TrackingSession]


def simulated_session_factory(**options) -> SessionFactory:
    """Фабрика симулируемых сессий с общими параметрами (расписание, интервалы, rng)."""
    def factory(ride_id: str, context: TrackingContext) -> TrackingSession:
        return SimulatedTrackingSession(ride_id, context, **options)
    return factory
