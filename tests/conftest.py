# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Any

import pytest

from ridecore.core.geo.service import BaseGeocoder
from ridecore.core.pricing.service import FareEngine
from ridecore.core.rides.orchestrator import RideOrchestrator
from ridecore.core.tracking.session import ScheduledStatus, simulated_session_factory
from ridecore.shared.models.enums import RideStatus, VehicleClass
from ridecore.shared.models.location_dto import Address, Coordinate, LocationSuggestion
from ridecore.shared.models.ride_dto import RideRequest


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "ridecore_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_FORMAT": "json",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "RIDES_API_PORT": 9000,
        "GEOCODER_BASE_URL": "https://geo.example.com/",
        "SEARCH_DEBOUNCE_MS": 150,
        "CURRENCY": "usd",
        "ASSIGN_DELAY": 1,
        "TRIP_COMPLETE_DELAY": 0,
        "_comment_tracking": "секция трекинга",
    }


# =============================================================================
# ДАННЫЕ МАРШРУТА
# =============================================================================

@pytest.fixture
def pickup() -> Address:
    """Connaught Place, New Delhi."""
    return Address(lat=28.6139, lng=77.2090, address="Connaught Place, New Delhi")


@pytest.fixture
def dropoff() -> Address:
    """Sector 18, Noida."""
    return Address(lat=28.5355, lng=77.3910, address="Sector 18, Noida")


@pytest.fixture
def ride_request(pickup: Address, dropoff: Address) -> RideRequest:
    return RideRequest(pickup=pickup, dropoff=dropoff, vehicle_class=VehicleClass.CAR)


# =============================================================================
# ГЕОКОДЕР
# =============================================================================

def make_suggestion(name: str, lat: float = 28.6, lng: float = 77.2) -> LocationSuggestion:
    return LocationSuggestion(
        display_name=name,
        coordinate=Coordinate(lat=lat, lng=lng),
        place_id=f"place_{name.lower().replace(' ', '_')}",
    )


class FakeGeocoder(BaseGeocoder):
    """
    Геокодер для тестов.

    - results: ответы поиска по тексту запроса (по умолчанию одна подсказка)
    - delays: задержка ответа по тексту запроса
    - reverse_label: подпись обратного геокодирования (None — ошибка)
    """

    def __init__(
        self,
        results: dict[str, list[LocationSuggestion]] | None = None,
        delays: dict[str, float] | None = None,
        reverse_label: str | None = "Janpath, New Delhi",
        fail_search: bool = False,
    ) -> None:
        self.results = results or {}
        self.delays = delays or {}
        self.reverse_label = reverse_label
        self.fail_search = fail_search
        self.queries: list[str] = []
        self.closed = False

    async def search(self, query: str) -> list[LocationSuggestion]:
        self.queries.append(query)
        delay = self.delays.get(query, 0)
        if delay:
            await asyncio.sleep(delay)
        if self.fail_search:
            raise RuntimeError("search failed")
        return self.results.get(query, [make_suggestion(f"{query} result")])

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        if self.reverse_label is None:
            raise RuntimeError("reverse failed")
        return self.reverse_label

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_geocoder() -> FakeGeocoder:
    return FakeGeocoder()


# =============================================================================
# ТРЕКИНГ И ОРКЕСТРАТОР
# =============================================================================

# Ускоренное расписание: весь цикл поездки укладывается в доли секунды
FAST_SCHEDULE = [
    ScheduledStatus(0.02, RideStatus.ASSIGNED),
    ScheduledStatus(0.04, RideStatus.ACCEPTED),
    ScheduledStatus(0.06, RideStatus.ON_TRIP),
    ScheduledStatus(0.08, RideStatus.COMPLETED),
]

# Расписание без автоматического завершения и с большими паузами
SLOW_SCHEDULE = [
    ScheduledStatus(5, RideStatus.ASSIGNED),
    ScheduledStatus(10, RideStatus.ACCEPTED),
    ScheduledStatus(15, RideStatus.ON_TRIP),
]


@pytest.fixture
def fast_factory():
    """Фабрика быстрых сессий без движения водителя."""
    return simulated_session_factory(
        schedule=FAST_SCHEDULE,
        position_interval=60,
        rng=random.Random(42),
    )


@pytest.fixture
def slow_factory():
    """Фабрика сессий, в которых ничего не происходит за время теста."""
    return simulated_session_factory(
        schedule=SLOW_SCHEDULE,
        position_interval=60,
        rng=random.Random(42),
    )


@pytest.fixture
def fare_engine() -> FareEngine:
    return FareEngine(currency="INR")


@pytest.fixture
def make_orchestrator(fare_engine: FareEngine):
    """Создаёт оркестратор с заданной фабрикой сессий."""
    def factory(session_factory) -> RideOrchestrator:
        return RideOrchestrator(
            fare_engine=fare_engine,
            session_factory=session_factory,
            estimated_arrival_minutes=8,
        )
    return factory
