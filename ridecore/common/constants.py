# ridecore/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Радиус Земли в км (формула Haversine)
EARTH_RADIUS_KM = 6371.0

# Префикс идентификатора поездки
RIDE_ID_PREFIX = "ride_"
