# ridecore/shared/__init__.py
"""
Общие модели и события, используемые ядром и API.
"""
