import math
from typing import NamedTuple
from ridecore.core.geo.utils import distance_km
from ridecore.shared.models.enums import VehicleClass
from ridecore.shared.models.location_dto import Coordinate
from ridecore.shared.models.ride_dto import FareEstimate

class Rate(NamedTuple):
    base: float
    per_km: float

# Ставки фиксированы: набор классов закрыт
RATE_TABLE: dict[VehicleClass, Rate] = {
    VehicleClass.BIKE: Rate(base=25.0, per_km=8.0),
    VehicleClass.CAR: Rate(base=50.0, per_km=15.0),
    VehicleClass.XL: Rate(base=75.0, per_km=20.0),
}

# Заглушка модели скорости (~24 км/ч), а не реальный ETA маршрутизатора
MINUTES_PER_KM = 2.5
MIN_DURATION_MINUTES = 5


def round_half_up(value: float) -> int:
    """Округление к ближайшему целому, половины — вверх."""
    return int(math.floor(value + 0.5))


class FareEngine:
    def __init__(self, currency: str | None = None):
        if currency is None:
            from ridecore.config import settings
            currency = settings.fares.CURRENCY
        self.currency = currency

    def estimate(
        self,
        pickup: Coordinate,
        dropoff: Coordinate,
        vehicle_class: VehicleClass,
    ) -> FareEstimate:
        """
        Оценка стоимости поездки.

        Логика:
        - Дистанция: Haversine, округление до 0.1 км
        - Время: distance * 2.5 мин, но не меньше 5 минут
        - Стоимость: base + distance * per_km, округление до копеек
        Все величины считаются от округлённой дистанции, чтобы цена совпадала
        с показанным пользователю километражем.
        """
        rate = RATE_TABLE[VehicleClass(vehicle_class)]

        distance = round(distance_km(pickup, dropoff), 1)
        duration = max(MIN_DURATION_MINUTES, round_half_up(distance * MINUTES_PER_KM))
        total = round(rate.base + distance * rate.per_km, 2)

        return FareEstimate(
            distance_km=distance,
            duration_min=duration,
            total=total,
            currency=self.currency,
        )
