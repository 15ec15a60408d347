# tests/core/test_geo_service.py
"""
Тесты для геокодера Nominatim.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from ridecore.common.exceptions import GeocoderUnavailable
from ridecore.core.geo.service import (
    BaseGeocoder,
    NominatimGeocoder,
    format_coordinate,
    reverse_geocode_with_fallback,
    search_with_fallback,
)

BASE_URL = "https://nominatim.test"


def make_response(payload, status_code: int = 200, path: str = "/search") -> httpx.Response:
    """Ответ httpx с привязанным запросом (нужен для raise_for_status)."""
    return httpx.Response(
        status_code,
        json=payload,
        request=httpx.Request("GET", f"{BASE_URL}{path}"),
    )


def nominatim_item(name: str, lat: str = "28.6139", lon: str = "77.2090", place_id: int = 1) -> dict:
    return {"display_name": name, "lat": lat, "lon": lon, "place_id": place_id}


@pytest.fixture
def geocoder() -> NominatimGeocoder:
    return NominatimGeocoder(base_url=BASE_URL, user_agent="ridecore-tests", language="en", limit=5)


def test_format_coordinate() -> None:
    """Заглушка подписи: 4 знака после запятой."""
    assert format_coordinate(28.6139, 77.209) == "28.6139, 77.2090"
    assert format_coordinate(-33.86882, 151.20929) == "-33.8688, 151.2093"


class TestSearch:
    """Тесты прямого поиска."""

    @pytest.mark.asyncio
    async def test_search_parses_results(self, geocoder: NominatimGeocoder) -> None:
        payload = [
            nominatim_item("Connaught Place, New Delhi", place_id=101),
            nominatim_item("Connaught Circus, New Delhi", lat="28.6315", lon="77.2167", place_id=102),
        ]
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response(payload)
            results = await geocoder.search("Connaught")

        assert [r.display_name for r in results] == [
            "Connaught Place, New Delhi",
            "Connaught Circus, New Delhi",
        ]
        assert results[1].coordinate.lat == pytest.approx(28.6315)
        assert results[1].coordinate.lng == pytest.approx(77.2167)
        assert results[0].place_id == "101"

        url = mock_get.call_args[0][0]
        params = mock_get.call_args[1]["params"]
        assert url == f"{BASE_URL}/search"
        assert params["q"] == "Connaught"
        assert params["limit"] == 5
        assert params["format"] == "json"
        assert params["accept-language"] == "en"

    @pytest.mark.asyncio
    async def test_search_respects_limit(self) -> None:
        geocoder = NominatimGeocoder(base_url=BASE_URL, limit=2)
        payload = [nominatim_item(f"Place {i}", place_id=i) for i in range(5)]
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response(payload)
            results = await geocoder.search("Place")

        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_search_skips_malformed_items(self, geocoder: NominatimGeocoder) -> None:
        payload = [
            {"display_name": "No coordinates", "place_id": 1},
            nominatim_item("Bad latitude", lat="abc", place_id=2),
            nominatim_item("Out of range", lat="123.0", place_id=3),
            nominatim_item("Valid", place_id=4),
        ]
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response(payload)
            results = await geocoder.search("Valid")

        assert [r.display_name for r in results] == ["Valid"]

    @pytest.mark.asyncio
    async def test_empty_result_is_not_error(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response([])
            assert await geocoder.search("zzzzzz") == []

    @pytest.mark.asyncio
    async def test_blank_query_skips_request(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            assert await geocoder.search("   ") == []
            mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response({"error": "boom"}, status_code=500)
            with pytest.raises(GeocoderUnavailable):
                await geocoder.search("Delhi")

    @pytest.mark.asyncio
    async def test_network_error(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = httpx.ConnectError("connection refused")
            with pytest.raises(GeocoderUnavailable):
                await geocoder.search("Delhi")

    @pytest.mark.asyncio
    async def test_unexpected_payload(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response({"not": "a list"})
            with pytest.raises(GeocoderUnavailable):
                await geocoder.search("Delhi")


class TestReverseGeocode:
    """Тесты обратного геокодирования."""

    @pytest.mark.asyncio
    async def test_reverse(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response({"display_name": "Janpath, New Delhi"}, path="/reverse")
            label = await geocoder.reverse_geocode(28.6139, 77.2090)

        assert label == "Janpath, New Delhi"
        params = mock_get.call_args[1]["params"]
        assert mock_get.call_args[0][0] == f"{BASE_URL}/reverse"
        assert params["lat"] == 28.6139
        assert params["lon"] == 77.2090

    @pytest.mark.asyncio
    async def test_reverse_not_found(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = make_response({"error": "Unable to geocode"}, path="/reverse")
            with pytest.raises(GeocoderUnavailable):
                await geocoder.reverse_geocode(0.0, 0.0)

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self, geocoder: NominatimGeocoder) -> None:
        """Недоступный геокодер: подписью становится координата."""
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = httpx.ReadTimeout("timeout")
            label = await reverse_geocode_with_fallback(geocoder, 28.6139, 77.2090)

        assert label == "28.6139, 77.2090"

    @pytest.mark.asyncio
    async def test_fallback_passes_label(self) -> None:
        geocoder = AsyncMock(spec=BaseGeocoder)
        geocoder.reverse_geocode.return_value = "India Gate"

        assert await reverse_geocode_with_fallback(geocoder, 28.6129, 77.2295) == "India Gate"

    @pytest.mark.asyncio
    async def test_fallback_on_empty_label(self) -> None:
        geocoder = AsyncMock(spec=BaseGeocoder)
        geocoder.reverse_geocode.return_value = ""

        assert await reverse_geocode_with_fallback(geocoder, 1.5, 2.25) == "1.5000, 2.2500"


class TestSearchFallback:
    """Прямой поиск без жёстких отказов."""

    @pytest.mark.asyncio
    async def test_unavailable_returns_empty(self, geocoder: NominatimGeocoder) -> None:
        with patch.object(geocoder._client, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = httpx.ConnectError("refused")
            results = await search_with_fallback(geocoder, "Connaught Place")

        assert results == []

    @pytest.mark.asyncio
    async def test_passes_results(self) -> None:
        geocoder = AsyncMock(spec=BaseGeocoder)
        geocoder.search.return_value = ["suggestion"]

        assert await search_with_fallback(geocoder, "Delhi") == ["suggestion"]
        geocoder.search.assert_awaited_once_with("Delhi")


@pytest.mark.asyncio
async def test_close_releases_client(geocoder: NominatimGeocoder) -> None:
    with patch.object(geocoder._client, "aclose", new_callable=AsyncMock) as mock_close:
        await geocoder.close()
        mock_close.assert_awaited_once()


def test_defaults_from_settings() -> None:
    """Параметры по умолчанию берутся из конфигурации."""
    from ridecore.config import settings

    geocoder = NominatimGeocoder()
    assert geocoder._base_url == settings.geocoder.GEOCODER_BASE_URL
    assert geocoder._limit == settings.geocoder.GEOCODER_RESULT_LIMIT
    assert geocoder._client.headers["User-Agent"] == settings.geocoder.GEOCODER_USER_AGENT
