# ridecore/services/rides_api/app.py
"""
FastAPI приложение API поездок.

REST endpoints (/api/v1):
- POST /fares/estimate — оценка стоимости по всем классам
- POST /rides, GET /rides, GET /rides/current, GET /rides/{ride_id}
- POST /rides/{ride_id}/cancel — отмена
- GET /locations/search, GET /locations/reverse — геокодер

WebSocket endpoints:
- /ws/rides/{ride_id} — снимок поездки и live-поток событий
- /ws/search — поиск адреса с debounce
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ridecore import __version__
from ridecore.common.constants import TypeMsg
from ridecore.common.exceptions import RideNotFound
from ridecore.common.logger import log_info, setup_logging
from ridecore.core.geo.service import BaseGeocoder, NominatimGeocoder
from ridecore.core.rides.orchestrator import RideOrchestrator
from ridecore.core.search.controller import LocationSearchController
from ridecore.services.rides_api.dependencies import get_geocoder, get_orchestrator
from ridecore.services.rides_api.routes import router
from ridecore.shared.models.location_dto import Coordinate

# Код закрытия WebSocket для неизвестной поездки
WS_CLOSE_RIDE_NOT_FOUND = 4404


def _search_state(controller: LocationSearchController) -> dict[str, Any]:
    return {
        "type": "state",
        "query": controller.query,
        "state": controller.state.value,
        "loading": controller.loading,
        "suggestions": [s.model_dump(mode="json") for s in controller.suggestions],
    }


async def _forward(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """Единственный отправитель в сокет: сообщения уходят в порядке постановки."""
    while True:
        message = await outbox.get()
        await websocket.send_json(message)


async def _handle_search_message(
    controller: LocationSearchController,
    outbox: asyncio.Queue,
    data: dict[str, Any],
) -> None:
    """Обработать сообщение клиента поиска."""
    action = data.get("action")

    if action == "query":
        controller.set_query(str(data.get("text", "")))

    elif action == "select":
        suggestion = controller.find_suggestion(str(data.get("place_id")))
        if suggestion is None:
            outbox.put_nowait({"type": "error", "detail": "Unknown place_id"})
            return
        address = controller.accept(suggestion)
        outbox.put_nowait({"type": "selected", "address": address.model_dump(mode="json")})

    elif action == "current_position":
        try:
            coordinate = Coordinate(lat=data.get("lat"), lng=data.get("lng"))
        except ValidationError as e:
            outbox.put_nowait({"type": "error", "detail": str(e)})
            return
        address = await controller.use_current_position(coordinate)
        outbox.put_nowait({"type": "position", "address": address.model_dump(mode="json")})

    elif action == "ping":
        outbox.put_nowait({"type": "pong"})

    else:
        outbox.put_nowait({"type": "error", "detail": f"Unknown action: {action}"})


def create_app(
    orchestrator: Optional[RideOrchestrator] = None,
    geocoder: Optional[BaseGeocoder] = None,
    search_debounce_seconds: Optional[float] = None,
) -> FastAPI:
    """
    Создаёт приложение.

    Args:
        orchestrator: Готовый оркестратор (по умолчанию создаётся при старте)
        geocoder: Готовый геокодер (по умолчанию Nominatim)
        search_debounce_seconds: Пауза ввода для /ws/search (по умолчанию из конфига)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        app.state.orchestrator = orchestrator or RideOrchestrator()
        app.state.geocoder = geocoder or NominatimGeocoder()
        app.state.search_debounce_seconds = search_debounce_seconds
        await log_info("API поездок запущен", type_msg=TypeMsg.INFO)

        yield

        await app.state.orchestrator.shutdown()
        await app.state.geocoder.close()
        await log_info("API поездок остановлен", type_msg=TypeMsg.INFO)

    app = FastAPI(
        title="Rides API",
        description="Заказ поездок, оценка стоимости и live-трекинг.",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "ok", "service": "rides_api", "version": __version__}

    @app.websocket("/ws/rides/{ride_id}")
    async def websocket_ride(
        websocket: WebSocket,
        ride_id: str,
        orchestrator: RideOrchestrator = Depends(get_orchestrator),
    ) -> None:
        """
        Live-трекинг поездки.

        Исходящие сообщения:
        - {"type": "snapshot", "ride": {...}} — текущее состояние
        - {"type": "event", "event": {...}} — StatusChanged / DriverMoved

        Сокет закрывается после терминального статуса.
        """
        await websocket.accept()

        try:
            ride = orchestrator.get_ride(ride_id)
        except RideNotFound:
            await websocket.close(code=WS_CLOSE_RIDE_NOT_FOUND)
            return

        subscription = orchestrator.subscribe(ride_id)
        await websocket.send_json({"type": "snapshot", "ride": ride.model_dump(mode="json")})
        if subscription is None:
            await websocket.close()
            return

        try:
            async with subscription:
                async for event in subscription:
                    await websocket.send_json({"type": "event", "event": event.model_dump(mode="json")})
        except WebSocketDisconnect:
            return
        await websocket.close()

    @app.websocket("/ws/search")
    async def websocket_search(
        websocket: WebSocket,
        geocoder: BaseGeocoder = Depends(get_geocoder),
    ) -> None:
        """
        Поиск адреса для одного поля ввода.

        Входящие сообщения:
        - {"action": "query", "text": "..."}
        - {"action": "select", "place_id": "..."}
        - {"action": "current_position", "lat": 28.61, "lng": 77.20}
        - {"action": "ping"}
        """
        await websocket.accept()

        outbox: asyncio.Queue = asyncio.Queue()
        controller = LocationSearchController(
            geocoder,
            debounce_seconds=websocket.app.state.search_debounce_seconds,
            on_change=lambda c: outbox.put_nowait(_search_state(c)),
        )
        sender = asyncio.create_task(_forward(websocket, outbox))

        try:
            while True:
                data = await websocket.receive_json()
                await _handle_search_message(controller, outbox, data)
        except WebSocketDisconnect:
            pass
        finally:
            await controller.close()
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    return app


app = create_app()
