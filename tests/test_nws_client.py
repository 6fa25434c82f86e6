"""Tests for the NWS client and its text formatting."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from weather_gate.config import WeatherSettings
from weather_gate.weather.formatters import format_alert, format_coordinate, format_period
from weather_gate.weather.nws_client import (
    ALERTS_FAILED,
    FORECAST_FAILED,
    FORECAST_URL_MISSING,
    NO_PERIODS,
    NWSClient,
)

from conftest import RecordingTransport, json_response

FORECAST_URL = "https://api.weather.test/gridpoints/OKX/33,35/forecast"

PERIODS = [
    {
        "name": "Tonight",
        "temperature": 48,
        "temperatureUnit": "F",
        "windSpeed": "5 to 10 mph",
        "windDirection": "NW",
        "shortForecast": "Mostly Clear",
    },
    {
        "name": "Saturday",
        "temperature": 61,
        "temperatureUnit": "F",
        "windSpeed": "10 mph",
        "windDirection": "W",
        "shortForecast": "Sunny",
    },
]


def _client(settings: WeatherSettings, transport: httpx.MockTransport) -> NWSClient:
    return NWSClient(settings, transport=transport)


class TestGetAlerts:
    def test_no_features_returns_no_alerts_message(self, weather_settings: WeatherSettings) -> None:
        transport = RecordingTransport(lambda request: json_response({"features": []}))

        text = asyncio.run(_client(weather_settings, transport).get_alerts("ca"))

        assert text == "No active alerts for CA"
        assert len(transport.requests) == 1

    def test_request_shape(self, weather_settings: WeatherSettings) -> None:
        transport = RecordingTransport(lambda request: json_response({"features": []}))

        asyncio.run(_client(weather_settings, transport).get_alerts("ny"))

        request = transport.requests[0]
        assert request.url.path == "/alerts"
        assert request.url.params["area"] == "NY"
        assert request.headers["User-Agent"] == "weather-app/1.0"
        assert request.headers["Accept"] == "application/geo+json"

    def test_missing_fields_use_placeholders(self, weather_settings: WeatherSettings) -> None:
        payload = {"features": [{"properties": {"event": "Tornado Warning"}}]}
        transport = RecordingTransport(lambda request: json_response(payload))

        text = asyncio.run(_client(weather_settings, transport).get_alerts("OK"))

        assert text.startswith("Active alerts for OK:\n\n")
        assert "Event: Tornado Warning" in text
        assert "Area: Unknown" in text
        assert "Severity: Unknown" in text
        assert "Status: Unknown" in text
        assert "Headline: No headline" in text

    def test_multiple_alerts_are_separated(self, weather_settings: WeatherSettings) -> None:
        payload = {
            "features": [
                {"properties": {"event": "Flood Watch", "areaDesc": "Kings", "severity": "Moderate"}},
                {"properties": {"event": "Heat Advisory", "headline": "Hot"}},
            ]
        }
        transport = RecordingTransport(lambda request: json_response(payload))

        text = asyncio.run(_client(weather_settings, transport).get_alerts("ny"))

        assert text.count("---") == 2
        assert text.index("Flood Watch") < text.index("Heat Advisory")

    def test_http_error_returns_failure_message(self, weather_settings: WeatherSettings) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(500))
        assert asyncio.run(_client(weather_settings, transport).get_alerts("CA")) == ALERTS_FAILED

    def test_invalid_json_returns_failure_message(self, weather_settings: WeatherSettings) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))
        assert asyncio.run(_client(weather_settings, transport).get_alerts("CA")) == ALERTS_FAILED

    def test_transport_error_returns_failure_message(self, weather_settings: WeatherSettings) -> None:
        def _fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        transport = RecordingTransport(_fail)
        assert asyncio.run(_client(weather_settings, transport).get_alerts("CA")) == ALERTS_FAILED

    @pytest.mark.parametrize("payload", [
        {"features": [None]},
        {"features": ["Tornado Warning"]},
        {"features": {"properties": {"event": "Flood Watch"}}},
    ])
    def test_malformed_features_return_failure_message(
        self, weather_settings: WeatherSettings, payload: dict
    ) -> None:
        transport = RecordingTransport(lambda request: json_response(payload))
        assert asyncio.run(_client(weather_settings, transport).get_alerts("CA")) == ALERTS_FAILED

    def test_non_object_properties_use_placeholders(self, weather_settings: WeatherSettings) -> None:
        transport = RecordingTransport(lambda request: json_response({"features": [{"properties": "x"}]}))

        text = asyncio.run(_client(weather_settings, transport).get_alerts("CA"))

        assert "Event: Unknown" in text
        assert "Headline: No headline" in text


class TestGetForecast:
    def _routes(self, points: httpx.Response, forecast: httpx.Response) -> RecordingTransport:
        def _handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/points/"):
                return points
            return forecast

        return RecordingTransport(_handler)

    def test_two_step_lookup(self, weather_settings: WeatherSettings) -> None:
        transport = self._routes(
            json_response({"properties": {"forecast": FORECAST_URL}}),
            json_response({"properties": {"periods": PERIODS}}),
        )

        text = asyncio.run(_client(weather_settings, transport).get_forecast(40.7128, -74.006))

        assert [r.url.path for r in transport.requests] == [
            "/points/40.7128,-74.0060",
            "/gridpoints/OKX/33,35/forecast",
        ]
        assert text.startswith("Forecast for 40.7128, -74.006:\n\n")
        assert "Tonight:\nTemperature: 48°F\nWind: 5 to 10 mph NW\nMostly Clear\n---" in text
        assert text.index("Tonight") < text.index("Saturday")

    def test_coordinates_rounded_to_four_places(self, weather_settings: WeatherSettings) -> None:
        transport = self._routes(
            json_response({"properties": {}}),
            json_response({}),
        )

        asyncio.run(_client(weather_settings, transport).get_forecast(38.123456, -77.00001))

        assert transport.requests[0].url.path == "/points/38.1235,-77.0000"

    def test_grid_lookup_failure(self, weather_settings: WeatherSettings) -> None:
        transport = self._routes(httpx.Response(404), json_response({}))

        text = asyncio.run(_client(weather_settings, transport).get_forecast(51.5, -0.12))

        assert text.startswith("Failed to retrieve grid point data for coordinates: 51.5, -0.12.")
        assert "only US locations are supported" in text
        assert len(transport.requests) == 1

    def test_missing_forecast_url_makes_no_second_call(self, weather_settings: WeatherSettings) -> None:
        transport = self._routes(
            json_response({"properties": {"gridId": "OKX"}}),
            json_response({"properties": {"periods": PERIODS}}),
        )

        text = asyncio.run(_client(weather_settings, transport).get_forecast(40.0, -74.0))

        assert text == FORECAST_URL_MISSING
        assert len(transport.requests) == 1

    def test_forecast_fetch_failure(self, weather_settings: WeatherSettings) -> None:
        transport = self._routes(
            json_response({"properties": {"forecast": FORECAST_URL}}),
            httpx.Response(502),
        )
        assert asyncio.run(_client(weather_settings, transport).get_forecast(40.0, -74.0)) == FORECAST_FAILED

    def test_zero_periods(self, weather_settings: WeatherSettings) -> None:
        transport = self._routes(
            json_response({"properties": {"forecast": FORECAST_URL}}),
            json_response({"properties": {"periods": []}}),
        )
        assert asyncio.run(_client(weather_settings, transport).get_forecast(40.0, -74.0)) == NO_PERIODS

    @pytest.mark.parametrize("points", [
        {"properties": "x"},
        {"properties": {"forecast": 123}},
        {"properties": {"forecast": ""}},
    ])
    def test_malformed_grid_point_makes_no_second_call(
        self, weather_settings: WeatherSettings, points: dict
    ) -> None:
        transport = self._routes(json_response(points), json_response({"properties": {"periods": PERIODS}}))

        text = asyncio.run(_client(weather_settings, transport).get_forecast(40.0, -74.0))

        assert text == FORECAST_URL_MISSING
        assert len(transport.requests) == 1

    @pytest.mark.parametrize("forecast", [
        {"properties": "x"},
        {"properties": {"periods": "Tonight"}},
        {"properties": {"periods": [None]}},
    ])
    def test_malformed_periods_return_failure_message(
        self, weather_settings: WeatherSettings, forecast: dict
    ) -> None:
        transport = self._routes(
            json_response({"properties": {"forecast": FORECAST_URL}}),
            json_response(forecast),
        )
        assert asyncio.run(_client(weather_settings, transport).get_forecast(40.0, -74.0)) == FORECAST_FAILED

    def test_integral_coordinates_shown_without_decimal(self, weather_settings: WeatherSettings) -> None:
        transport = self._routes(
            json_response({"properties": {"forecast": FORECAST_URL}}),
            json_response({"properties": {"periods": PERIODS}}),
        )

        text = asyncio.run(_client(weather_settings, transport).get_forecast(40, -105))

        assert text.startswith("Forecast for 40, -105:\n\n")
        assert transport.requests[0].url.path == "/points/40.0000,-105.0000"

    def test_grid_failure_shows_integral_coordinates_without_decimal(
        self, weather_settings: WeatherSettings
    ) -> None:
        transport = self._routes(httpx.Response(404), json_response({}))

        text = asyncio.run(_client(weather_settings, transport).get_forecast(40.0, -105.0))

        assert text.startswith("Failed to retrieve grid point data for coordinates: 40, -105.")


class TestFormatters:
    def test_alert_block_layout(self) -> None:
        block = format_alert({"properties": {
            "event": "Winter Storm Warning",
            "areaDesc": "Erie",
            "severity": "Severe",
            "status": "Actual",
            "headline": "Heavy snow expected",
        }})
        assert block == (
            "Event: Winter Storm Warning\n"
            "Area: Erie\n"
            "Severity: Severe\n"
            "Status: Actual\n"
            "Headline: Heavy snow expected\n"
            "---"
        )

    def test_period_placeholders(self) -> None:
        assert format_period({}) == (
            "Unknown:\n"
            "Temperature: Unknown°F\n"
            "Wind: Unknown \n"
            "No forecast available\n"
            "---"
        )

    def test_zero_temperature_is_shown(self) -> None:
        assert "Temperature: 0°C" in format_period({"temperature": 0, "temperatureUnit": "C"})

    @pytest.mark.parametrize("value, expected", [
        (40, "40"),
        (-105.0, "-105"),
        (0.0, "0"),
        (40.7128, "40.7128"),
        (-0.12, "-0.12"),
    ])
    def test_format_coordinate(self, value: float, expected: str) -> None:
        assert format_coordinate(value) == expected
