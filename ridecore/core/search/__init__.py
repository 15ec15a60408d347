"""Поиск адресов с debounce и отбрасыванием устаревших ответов."""

from ridecore.core.search.controller import LocationSearchController, SearchState

__all__ = ["LocationSearchController", "SearchState"]
