# ridecore/core/geo/__init__.py
"""
Гео-модуль: расстояния и контракт геокодера.
"""

from ridecore.core.geo.utils import calculate_distance, distance_km
from ridecore.core.geo.service import (
    BaseGeocoder,
    NominatimGeocoder,
    format_coordinate,
    reverse_geocode_with_fallback,
)

__all__ = [
    "calculate_distance",
    "distance_km",
    "BaseGeocoder",
    "NominatimGeocoder",
    "format_coordinate",
    "reverse_geocode_with_fallback",
]
