# ridecore/common/__init__.py
"""
Общие утилиты: логирование, константы, исключения.
"""
