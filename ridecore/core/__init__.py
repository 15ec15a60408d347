# ridecore/core/__init__.py
"""
Доменный слой (Core Domain).
Машина состояний поездки, тарифы, поиск адресов, трекинг и оркестрация.
"""
