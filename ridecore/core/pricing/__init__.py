# ridecore/core/pricing/__init__.py
"""
Расчёт предварительной стоимости поездки.
"""

from ridecore.core.pricing.service import FareEngine, Rate, RATE_TABLE

__all__ = ["FareEngine", "Rate", "RATE_TABLE"]
