"""National Weather Service API client.

The NWS API is public and unauthenticated; access to these calls is gated by
the session gate, not by this client.  Every public method returns text: a
failed request becomes a human-readable message, never an exception.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from weather_gate.config import WeatherSettings
from weather_gate.weather.formatters import format_alerts, format_coordinate, format_forecast

logger = logging.getLogger(__name__)

ALERTS_FAILED = "Failed to retrieve alerts data"
FORECAST_URL_MISSING = "Failed to get forecast URL from grid point data"
FORECAST_FAILED = "Failed to retrieve forecast data"
NO_PERIODS = "No forecast periods available"


class UpstreamUnavailable(Exception):
    """Raised when the NWS API cannot be reached or returns an unusable response."""


class NWSClient:
    """Fetches alerts and forecasts from ``api.weather.gov``."""

    def __init__(
        self,
        settings: WeatherSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def get_alerts(self, state: str) -> str:
        """Return the active alerts for a two-letter US *state* code."""
        state_code = state.upper()
        try:
            data = await self._request(f"{self._base}/alerts", params={"area": state_code})
        except UpstreamUnavailable as exc:
            logger.error("Alerts lookup for %s failed: %s", state_code, exc)
            return ALERTS_FAILED

        features = data.get("features") or []
        if not isinstance(features, list) or not all(isinstance(f, dict) for f in features):
            logger.error("Alerts payload for %s has malformed features", state_code)
            return ALERTS_FAILED
        if not features:
            return f"No active alerts for {state_code}"
        return format_alerts(state_code, features)

    async def get_forecast(self, latitude: float, longitude: float) -> str:
        """Return the forecast for a location.

        Two requests: the grid point for the coordinates, then the forecast
        resource it links to.
        """
        points_url = f"{self._base}/points/{latitude:.4f},{longitude:.4f}"
        try:
            points = await self._request(points_url)
        except UpstreamUnavailable as exc:
            logger.error("Grid point lookup for %s,%s failed: %s", latitude, longitude, exc)
            return (
                "Failed to retrieve grid point data for coordinates: "
                f"{format_coordinate(latitude)}, {format_coordinate(longitude)}. "
                "This location may not be supported by the NWS API (only US locations are supported)."
            )

        properties = points.get("properties")
        forecast_url = properties.get("forecast") if isinstance(properties, dict) else None
        if not isinstance(forecast_url, str) or not forecast_url:
            return FORECAST_URL_MISSING

        try:
            forecast = await self._request(forecast_url)
        except UpstreamUnavailable as exc:
            logger.error("Forecast fetch from %s failed: %s", forecast_url, exc)
            return FORECAST_FAILED

        properties = forecast.get("properties") or {}
        periods = (properties.get("periods") or []) if isinstance(properties, dict) else None
        if not isinstance(periods, list) or not all(isinstance(p, dict) for p in periods):
            logger.error("Forecast payload from %s has malformed periods", forecast_url)
            return FORECAST_FAILED
        if not periods:
            return NO_PERIODS
        return format_forecast(latitude, longitude, periods)

    # -- private helpers -----------------------------------------------------

    @property
    def _base(self) -> str:
        return self._settings.api_base.rstrip("/")

    async def _request(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        headers = {"User-Agent": self._settings.user_agent, "Accept": "application/geo+json"}
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                follow_redirects=True,
                timeout=self._settings.timeout_seconds,
            ) as client:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise UpstreamUnavailable(f"Invalid JSON from {url}") from exc

        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"Unexpected payload from {url}")
        return data
