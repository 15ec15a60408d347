"""Сервисы поверх ядра поездок."""
