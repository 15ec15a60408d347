# ridecore/core/geo/service.py
"""
Контракт геокодера и его реализация поверх OpenStreetMap Nominatim.
Прямой поиск адресов (подсказки) и обратное геокодирование.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import ValidationError

from ridecore.common.constants import TypeMsg
from ridecore.common.exceptions import GeocoderUnavailable
from ridecore.common.logger import log_info, log_warning
from ridecore.shared.models.location_dto import Coordinate, LocationSuggestion


def format_coordinate(lat: float, lng: float) -> str:
    """Подпись-заглушка для точки без адреса: '28.6139, 77.2090'."""
    return f"{lat:.4f}, {lng:.4f}"


class BaseGeocoder(ABC):
    """
    Внешний геокодер, от которого зависит ядро.

    Контракт:
    - search: ранжированный список (небольшой, ограниченный); пустой список — не ошибка
    - reverse_geocode: человекочитаемая подпись или GeocoderUnavailable
    """

    @abstractmethod
    async def search(self, query: str) -> list[LocationSuggestion]:
        """Прямой поиск по тексту."""

    @abstractmethod
    async def reverse_geocode(self, lat: float, lng: float) -> str:
        """Обратное геокодирование: координаты -> адрес."""

    async def close(self) -> None:
        """Освобождает ресурсы клиента."""


async def reverse_geocode_with_fallback(geocoder: BaseGeocoder, lat: float, lng: float) -> str:
    """
    Обратное геокодирование с деградацией до отформатированной координаты.
    Никогда не бросает исключение вызывающему.
    """
    try:
        label = await geocoder.reverse_geocode(lat, lng)
    except Exception as e:
        await log_warning(f"Обратное геокодирование недоступно ({lat}, {lng}): {e}")
        return format_coordinate(lat, lng)
    return label or format_coordinate(lat, lng)


async def search_with_fallback(geocoder: BaseGeocoder, query: str) -> list[LocationSuggestion]:
    """Прямой поиск; при недоступном геокодере возвращает пустой список."""
    try:
        return await geocoder.search(query)
    except Exception as e:
        await log_warning(f"Поиск адреса '{query}' не удался: {e}")
        return []


class NominatimGeocoder(BaseGeocoder):
    """
    Геокодер на базе Nominatim API.

    Реализует:
    - Поиск адресов (search, limit=5)
    - Обратное геокодирование (reverse)
    """

    SEARCH_PATH = "/search"
    REVERSE_PATH = "/reverse"

    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        language: str | None = None,
        limit: int | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Инициализация геокодера.

        Args:
            base_url: Базовый URL Nominatim (берётся из конфига если None)
            user_agent: User-Agent (обязателен по правилам Nominatim)
            language: Язык ответов
            limit: Максимум результатов поиска
            timeout: Таймаут HTTP запроса
            client: Готовый HTTP клиент (для тестов)
        """
        from ridecore.config import settings
        geo = settings.geocoder

        self._base_url = (base_url or geo.GEOCODER_BASE_URL).rstrip("/")
        self._language = language or geo.GEOCODING_LANGUAGE
        self._limit = limit or geo.GEOCODER_RESULT_LIMIT
        self._client = client or httpx.AsyncClient(
            timeout=timeout or geo.GEOCODER_TIMEOUT,
            headers={"User-Agent": user_agent or geo.GEOCODER_USER_AGENT},
        )

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        try:
            response = await self._client.get(f"{self._base_url}{path}", params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocoderUnavailable(f"Nominatim {path}: {e}") from e

    async def search(self, query: str) -> list[LocationSuggestion]:
        """
        Поиск адресов по тексту.

        Args:
            query: Поисковый запрос

        Returns:
            Список подсказок (не больше limit)

        Raises:
            GeocoderUnavailable: сеть или ответ недоступны
        """
        if not query.strip():
            return []

        data = await self._get_json(
            self.SEARCH_PATH,
            params={
                "format": "json",
                "q": query,
                "limit": self._limit,
                "addressdetails": 1,
                "accept-language": self._language,
            },
        )

        if not isinstance(data, list):
            raise GeocoderUnavailable(f"Неожиданный ответ поиска: {type(data).__name__}")

        suggestions: list[LocationSuggestion] = []
        for item in data[: self._limit]:
            try:
                suggestions.append(LocationSuggestion(
                    display_name=item["display_name"],
                    coordinate=Coordinate(lat=float(item["lat"]), lng=float(item["lon"])),
                    place_id=str(item["place_id"]),
                ))
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                await log_info(f"Пропущен некорректный результат поиска: {e}", type_msg=TypeMsg.DEBUG)

        return suggestions

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        """
        Обратное геокодирование: координаты -> адрес.

        Raises:
            GeocoderUnavailable: сеть недоступна или адрес не найден
        """
        data = await self._get_json(
            self.REVERSE_PATH,
            params={
                "format": "json",
                "lat": lat,
                "lon": lng,
                "addressdetails": 1,
                "accept-language": self._language,
            },
        )

        label = data.get("display_name") if isinstance(data, dict) else None
        if not label:
            raise GeocoderUnavailable(f"Адрес не найден для ({lat}, {lng})")
        return label
