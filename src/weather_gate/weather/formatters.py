"""Formatting helpers that turn NWS JSON into display-ready text.

Absent fields render as fixed placeholders.  A present-but-falsy value such
as a temperature of ``0`` is shown as-is.
"""

from __future__ import annotations

from typing import Any

SEPARATOR = "---"


def _or(value: Any, placeholder: str) -> Any:
    return placeholder if value is None or value == "" else value


def format_coordinate(value: float) -> str:
    """Render a coordinate without a trailing ``.0`` when it is integral."""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def format_alert(feature: dict[str, Any]) -> str:
    """Format one alert feature into an ``Event/Area/...`` block."""
    props = feature.get("properties")
    if not isinstance(props, dict):
        props = {}
    return "\n".join([
        f"Event: {_or(props.get('event'), 'Unknown')}",
        f"Area: {_or(props.get('areaDesc'), 'Unknown')}",
        f"Severity: {_or(props.get('severity'), 'Unknown')}",
        f"Status: {_or(props.get('status'), 'Unknown')}",
        f"Headline: {_or(props.get('headline'), 'No headline')}",
        SEPARATOR,
    ])


def format_alerts(state: str, features: list[dict[str, Any]]) -> str:
    blocks = "\n".join(format_alert(feature) for feature in features)
    return f"Active alerts for {state}:\n\n{blocks}"


def format_period(period: dict[str, Any]) -> str:
    """Format one forecast period into a readable block."""
    return "\n".join([
        f"{_or(period.get('name'), 'Unknown')}:",
        f"Temperature: {_or(period.get('temperature'), 'Unknown')}°{_or(period.get('temperatureUnit'), 'F')}",
        f"Wind: {_or(period.get('windSpeed'), 'Unknown')} {_or(period.get('windDirection'), '')}",
        f"{_or(period.get('shortForecast'), 'No forecast available')}",
        SEPARATOR,
    ])


def format_forecast(latitude: float, longitude: float, periods: list[dict[str, Any]]) -> str:
    blocks = "\n".join(format_period(period) for period in periods)
    return f"Forecast for {format_coordinate(latitude)}, {format_coordinate(longitude)}:\n\n{blocks}"
