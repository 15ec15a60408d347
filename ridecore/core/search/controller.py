# ridecore/core/search/controller.py
"""
Контроллер поиска адреса для одного поля ввода (посадка или высадка).

Debounce ввода, порог минимальной длины, отбрасывание устаревших ответов,
определение адреса по текущей позиции.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Optional

from ridecore.common.constants import TypeMsg
from ridecore.common.exceptions import StaleResponseDiscarded
from ridecore.common.logger import get_logger, log_info
from ridecore.core.geo.service import (
    BaseGeocoder,
    reverse_geocode_with_fallback,
    search_with_fallback,
)
from ridecore.shared.models.location_dto import Address, Coordinate, LocationSuggestion

logger = get_logger("ridecore.search")


class SearchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    SEARCHING = "searching"

    def __str__(self) -> str:
        return self.value


ChangeListener = Callable[["LocationSearchController"], None]


class LocationSearchController:
    """
    Состояние поиска одного поля ввода.

    Правила:
    - Запрос отправляется только после паузы ввода debounce_seconds
    - Запросы короче min_query_length не отправляются, подсказки очищаются
    - Применяется ответ только на самый свежий запрос; уже отправленный
      запрос не отменяется, его ответ просто отбрасывается
    """

    def __init__(
        self,
        geocoder: BaseGeocoder,
        debounce_seconds: float | None = None,
        min_query_length: int | None = None,
        max_results: int | None = None,
        on_change: ChangeListener | None = None,
    ) -> None:
        from ridecore.config import settings

        self._geocoder = geocoder
        self._debounce_seconds = (
            settings.search.SEARCH_DEBOUNCE_MS / 1000 if debounce_seconds is None else debounce_seconds
        )
        self._min_query_length = min_query_length or settings.search.SEARCH_MIN_QUERY_LENGTH
        self._max_results = max_results or settings.geocoder.GEOCODER_RESULT_LIMIT
        self._on_change = on_change

        self._query = ""
        self._suggestions: list[LocationSuggestion] = []
        self._state = SearchState.IDLE
        self._selected: Optional[Address] = None
        self._generation = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._closed = False

        self.requests_sent = 0
        self.responses_discarded = 0

    # ------------------------------------------------------------------
    # Состояние
    # ------------------------------------------------------------------

    @property
    def query(self) -> str:
        return self._query

    @property
    def suggestions(self) -> list[LocationSuggestion]:
        return list(self._suggestions)

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state == SearchState.SEARCHING

    @property
    def selected(self) -> Optional[Address]:
        return self._selected

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self)
        except Exception:
            logger.exception("Ошибка обработчика изменения состояния поиска")

    # ------------------------------------------------------------------
    # Ввод
    # ------------------------------------------------------------------

    def set_query(self, text: str) -> None:
        """
        Обработка изменения текста (на каждое нажатие клавиши).
        Должна вызываться внутри работающего event loop.
        """
        if self._closed:
            return

        self._query = text
        self._generation += 1
        self._cancel_debounce()

        if len(text) < self._min_query_length:
            self._suggestions = []
            self._state = SearchState.IDLE
            self._notify()
            return

        self._state = SearchState.DEBOUNCING
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._debounce(self._generation, text)
        )
        self._notify()

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    async def _debounce(self, generation: int, query: str) -> None:
        await asyncio.sleep(self._debounce_seconds)
        if generation != self._generation or self._closed:
            return

        self._debounce_task = None
        self._state = SearchState.SEARCHING
        self.requests_sent += 1
        task = asyncio.get_running_loop().create_task(self._search(generation, query))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        self._notify()

    def _is_current(self, generation: int, query: str) -> bool:
        return not self._closed and generation == self._generation and query == self._query

    async def _search(self, generation: int, query: str) -> None:
        results = await search_with_fallback(self._geocoder, query.strip())

        if not self._is_current(generation, query):
            self.responses_discarded += 1
            await log_info(str(StaleResponseDiscarded(query, self._query)), type_msg=TypeMsg.DEBUG)
            return

        self._suggestions = list(results[: self._max_results])
        self._state = SearchState.IDLE
        self._notify()

    # ------------------------------------------------------------------
    # Выбор адреса
    # ------------------------------------------------------------------

    def accept(self, suggestion: LocationSuggestion) -> Address:
        """Выбор подсказки: адрес фиксируется, новый поиск не запускается."""
        address = suggestion.to_address()
        self._generation += 1
        self._cancel_debounce()
        self._query = address.address
        self._suggestions = []
        self._state = SearchState.IDLE
        self._selected = address
        self._notify()
        return address

    def find_suggestion(self, place_id: str) -> Optional[LocationSuggestion]:
        for suggestion in self._suggestions:
            if suggestion.place_id == place_id:
                return suggestion
        return None

    async def use_current_position(self, coordinate: Coordinate) -> Address:
        """
        Адрес для текущей позиции пользователя.
        При недоступном геокодере подписью служит сама координата.
        Состояние текстового поиска не меняется.
        """
        label = await reverse_geocode_with_fallback(self._geocoder, coordinate.lat, coordinate.lng)
        address = Address(lat=coordinate.lat, lng=coordinate.lng, address=label)
        self._selected = address
        self._notify()
        return address

    async def close(self) -> None:
        """Отменяет debounce и ожидающие ответы."""
        self._closed = True
        self._cancel_debounce()
        pending = list(self._inflight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
