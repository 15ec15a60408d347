# ridecore/__init__.py
"""
Ядро сервиса заказа поездок.
Жизненный цикл поездки, расчёт стоимости и live-трекинг водителя.
"""

__version__ = "0.1.0"
