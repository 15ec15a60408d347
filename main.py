#!/usr/bin/env python3
# main.py
"""
Главная точка входа ridecore.

Режимы:
- api  — HTTP/WebSocket API поездок (uvicorn)
- demo — консольная симуляция одной поездки от заказа до завершения
"""

from __future__ import annotations

import asyncio
import signal
import sys

from ridecore.config import settings
from ridecore.common.constants import TypeMsg
from ridecore.common.exceptions import IllegalTransition
from ridecore.common.logger import log_error, log_info, setup_logging
from ridecore.core.rides.orchestrator import RideOrchestrator
from ridecore.core.tracking.session import ScheduledStatus, simulated_session_factory
from ridecore.shared.events.ride_events import DriverMoved, StatusChanged
from ridecore.shared.models.enums import RideStatus, VehicleClass
from ridecore.shared.models.location_dto import Address
from ridecore.shared.models.ride_dto import Ride, RideRequest


# Маршрут демо-поездки: Connaught Place -> Noida Sector 18
DEMO_PICKUP = Address(lat=28.6139, lng=77.2090, address="Connaught Place, New Delhi")
DEMO_DROPOFF = Address(lat=28.5355, lng=77.3910, address="Sector 18, Noida")

_shutdown_event: asyncio.Event | None = None


def setup_signal_handlers() -> None:
    """Настраивает обработчики SIGINT и SIGTERM для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def run_api() -> None:
    """Запуск API поездок."""
    import uvicorn

    await log_info(
        f"Запуск Rides API на порту {settings.deployment.RIDES_API_PORT}",
        type_msg=TypeMsg.INFO,
    )
    config = uvicorn.Config(
        "ridecore.services.rides_api.app:app",
        host=settings.deployment.RIDES_API_HOST,
        port=settings.deployment.RIDES_API_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    await uvicorn.Server(config).serve()


async def stop_demo_ride(orchestrator: RideOrchestrator, ride_id: str) -> Ride:
    """
    Остановка демо по сигналу: отмена, пока статус её допускает.
    Начатую поездку отменить нельзя, она просто перестаёт отслеживаться.
    """
    try:
        final = await orchestrator.cancel_ride(ride_id)
    except IllegalTransition:
        ride = orchestrator.get_ride(ride_id)
        print(f"Поездка в статусе {ride.status} не может быть отменена, трекинг остановлен")
        return ride
    print(f"Поездка отменена: {final.status}")
    return final


async def run_demo(speedup: float = 10.0) -> None:
    """
    Симуляция поездки в ускоренном времени.
    Печатает оценки стоимости и поток событий до терминального статуса.
    """
    setup_signal_handlers()
    tracking = settings.tracking
    schedule = [
        ScheduledStatus(tracking.ASSIGN_DELAY / speedup, RideStatus.ASSIGNED),
        ScheduledStatus(tracking.ACCEPT_DELAY / speedup, RideStatus.ACCEPTED),
        ScheduledStatus(tracking.TRIP_START_DELAY / speedup, RideStatus.ON_TRIP),
        ScheduledStatus((tracking.TRIP_COMPLETE_DELAY or 60.0) / speedup, RideStatus.COMPLETED),
    ]
    orchestrator = RideOrchestrator(
        session_factory=simulated_session_factory(
            schedule=schedule,
            position_interval=tracking.POSITION_UPDATE_INTERVAL / speedup,
        )
    )

    estimates = await orchestrator.get_fare_estimates(DEMO_PICKUP.coordinate, DEMO_DROPOFF.coordinate)
    for vehicle_class in VehicleClass:
        estimate = estimates.get(vehicle_class)
        if estimate is None:
            print(f"  {vehicle_class:<4}  недоступно")
        else:
            print(f"  {vehicle_class:<4}  {estimate.total:>8.2f} {estimate.currency}  "
                  f"{estimate.distance_km} км  ~{estimate.duration_min} мин")

    ride = await orchestrator.request_ride(
        RideRequest(pickup=DEMO_PICKUP, dropoff=DEMO_DROPOFF, vehicle_class=VehicleClass.CAR)
    )
    print(f"Поездка {ride.id}: {ride.status}")

    subscription = orchestrator.subscribe(ride.id)

    async def consume() -> None:
        async for event in subscription:
            if isinstance(event, StatusChanged):
                driver = f" ({event.driver.name}, {event.driver.vehicle_model})" if event.driver else ""
                print(f"  #{event.sequence} статус: {event.status}{driver}")
            elif isinstance(event, DriverMoved):
                print(f"  #{event.sequence} водитель: {event.location.lat:.5f}, {event.location.lng:.5f}")

    consumer = asyncio.create_task(consume())
    stopper = asyncio.create_task(_shutdown_event.wait())
    try:
        await asyncio.wait({consumer, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if not consumer.done():
            await stop_demo_ride(orchestrator, ride.id)
    finally:
        stopper.cancel()
        await orchestrator.shutdown()
        await asyncio.gather(consumer, stopper, return_exceptions=True)

    print(f"Итог: {orchestrator.get_ride(ride.id).status}")


def print_usage() -> None:
    print("Использование: python main.py [api|demo]")


async def main(mode: str) -> None:
    setup_logging()
    try:
        match mode:
            case "api":
                await run_api()
            case "demo":
                await run_demo()
            case _:
                print_usage()
    except Exception as e:
        await log_error(f"Критическая ошибка в режиме {mode}: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    arg = sys.argv[1].lower() if len(sys.argv) > 1 else "api"
    if arg in ("-h", "--help", "help"):
        print_usage()
        sys.exit(0)
    asyncio.run(main(arg))
