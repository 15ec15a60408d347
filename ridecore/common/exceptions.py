# ridecore/common/exceptions.py
"""
Иерархия исключений ядра поездок.

- IllegalTransition — недопустимый переход статуса (всегда пробрасывается вызывающему)
- GeocoderUnavailable — геокодер не ответил (обрабатывается локально, с fallback)
- EstimateUnavailable — не удалось рассчитать тариф для одного класса авто
- StaleResponseDiscarded — устаревший ответ поиска отброшен (внутреннее)
- RideNotFound — поездка с таким ID не существует
- BookingError — заказ невозможен (нет точек маршрута или оценки стоимости)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ridecore.shared.models.enums import RideStatus, VehicleClass


class RideError(Exception):
    """Базовое исключение домена поездок."""


class IllegalTransition(RideError):
    """Машина состояний отклонила переход статуса."""

    def __init__(
        self,
        current: "RideStatus | None",
        requested: "RideStatus | None",
        reason: str | None = None,
    ) -> None:
        self.current = current
        self.requested = requested
        self.reason = reason
        message = f"Недопустимый переход: {current} -> {requested}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class GeocoderUnavailable(RideError):
    """Ошибка прямого или обратного геокодирования."""


class EstimateUnavailable(RideError):
    """Оценка стоимости для класса авто недоступна."""

    def __init__(self, vehicle_class: "VehicleClass", cause: Exception | None = None) -> None:
        self.vehicle_class = vehicle_class
        self.cause = cause
        super().__init__(f"Оценка стоимости недоступна для класса {vehicle_class}: {cause}")


class StaleResponseDiscarded(RideError):
    """Ответ на устаревший поисковый запрос отброшен."""

    def __init__(self, query: str, current_query: str) -> None:
        self.query = query
        self.current_query = current_query
        super().__init__(f"Ответ для '{query}' устарел (текущий запрос: '{current_query}')")


class RideNotFound(RideError):
    """Поездка не найдена."""

    def __init__(self, ride_id: str) -> None:
        self.ride_id = ride_id
        super().__init__(f"Поездка не найдена: {ride_id}")


class BookingError(RideError):
    """Заказ поездки невозможен."""
