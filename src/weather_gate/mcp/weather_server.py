"""MCP server exposing NWS weather tools behind GitHub authentication.

Tools:
  - ``authenticate``: verify a GitHub personal access token directly.
  - ``get_alerts``:   active alerts for a US state (protected).
  - ``get_forecast``: forecast for a coordinate pair (protected).

Protected tools ask the ``SessionGate`` first and answer with a fixed
"authentication required" message when it cannot establish a session.
"""

from __future__ import annotations

import logging

from mcp.types import TextContent
from pydantic import BaseModel, ConfigDict, Field

from weather_gate.auth.gate import SessionGate
from weather_gate.auth.github_verifier import InvalidCredential
from weather_gate.config import Settings
from weather_gate.mcp.base_server import BaseMCPServer, text_result
from weather_gate.weather.nws_client import NWSClient

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = (
    "Authentication required. Please use the 'authenticate' tool with your "
    "GitHub personal access token first."
)


class AuthenticateInput(BaseModel):
    model_config = ConfigDict(strict=True)

    token: str = Field(description="GitHub personal access token")


class GetAlertsInput(BaseModel):
    model_config = ConfigDict(strict=True)

    state: str = Field(
        min_length=2,
        max_length=2,
        description="Two-letter state code (e.g. CA, NY)",
    )


class GetForecastInput(BaseModel):
    model_config = ConfigDict(strict=True)

    latitude: float = Field(ge=-90, le=90, description="Latitude of the location")
    longitude: float = Field(ge=-180, le=180, description="Longitude of the location")


class WeatherMCPServer(BaseMCPServer):
    """Weather tools gated by a GitHub-verified session."""

    def __init__(self, gate: SessionGate, weather: NWSClient) -> None:
        super().__init__("weather")
        self._gate = gate
        self._weather = weather
        self._register_all_tools()

    @classmethod
    def from_settings(cls, settings: Settings) -> WeatherMCPServer:
        logger.info("Using auth strategy %s", settings.auth.strategy)
        return cls(
            gate=SessionGate.from_settings(settings),
            weather=NWSClient(settings.weather),
        )

    def _register_all_tools(self) -> None:
        self._register_tool(
            name="authenticate",
            description="Authenticate with GitHub using a personal access token",
            input_model=AuthenticateInput,
            handler=self._authenticate,
        )
        self._register_tool(
            name="get_alerts",
            description="Get weather alerts for a state",
            input_model=GetAlertsInput,
            handler=self._get_alerts,
        )
        self._register_tool(
            name="get_forecast",
            description="Get weather forecast for a location",
            input_model=GetForecastInput,
            handler=self._get_forecast,
        )

    # -- tool handlers --------------------------------------------------------

    async def _authenticate(self, args: AuthenticateInput) -> list[TextContent]:
        try:
            identity = await self._gate.authenticate_with_token(args.token)
        except InvalidCredential as exc:
            return text_result(
                f"Authentication failed: {exc}. Please provide a valid GitHub personal access token."
            )
        return text_result(
            f"Successfully authenticated as {identity.login}. You can now use weather tools."
        )

    async def _get_alerts(self, args: GetAlertsInput) -> list[TextContent]:
        if not await self._gate.ensure_authenticated():
            return text_result(AUTH_REQUIRED_MESSAGE)
        return text_result(await self._weather.get_alerts(args.state))

    async def _get_forecast(self, args: GetForecastInput) -> list[TextContent]:
        if not await self._gate.ensure_authenticated():
            return text_result(AUTH_REQUIRED_MESSAGE)
        return text_result(await self._weather.get_forecast(args.latitude, args.longitude))


# Entry point when run as a subprocess by the MCP stdio transport.
if __name__ == "__main__":
    from weather_gate.main import main

    main()
