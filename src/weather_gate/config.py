"""Runtime settings for the weather-gate MCP server.

Pattern: Layered Configuration
-------------------------------
Non-secret settings live in ``config/settings.yaml`` and are loaded once at
startup into frozen dataclasses.  Secrets (the GitHub OAuth app's client ID and
client secret) are read from the environment only, so the YAML file can be
committed.  A handful of environment variables override individual YAML keys
for ad-hoc runs.

Every key has a default, so the server can start with no settings file at all.
"""

from __future__ import annotations

import dataclasses
import os
import pathlib
from typing import Any

import yaml

STRATEGY_PROMPT_ONLY = "prompt_only"
STRATEGY_CACHED_THEN_INTERACTIVE = "cached_then_interactive"
STRATEGIES = (STRATEGY_PROMPT_ONLY, STRATEGY_CACHED_THEN_INTERACTIVE)

DEFAULT_SETTINGS_PATH = pathlib.Path(__file__).resolve().parents[2] / "config" / "settings.yaml"
DEFAULT_CREDENTIALS_PATH = pathlib.Path("~/.config/weather-gate/credentials.json")


class ConfigError(Exception):
    """Raised when the settings file is malformed."""


@dataclasses.dataclass(frozen=True)
class AuthSettings:
    """How the session gate obtains a verified identity.

    Attributes:
        strategy:         ``prompt_only`` or ``cached_then_interactive``.
        credentials_path: Location of the persisted credential document.
    """

    strategy: str = STRATEGY_CACHED_THEN_INTERACTIVE
    credentials_path: pathlib.Path = DEFAULT_CREDENTIALS_PATH


@dataclasses.dataclass(frozen=True)
class GitHubSettings:
    """GitHub endpoints and the OAuth app used for interactive login.

    ``client_id`` and ``client_secret`` come from the environment; when either
    is empty, interactive acquisition is disabled.
    """

    api_base: str = "https://api.github.com"
    oauth_base: str = "https://github.com"
    scope: str = "read:user"
    client_id: str = ""
    client_secret: str = ""
    callback_host: str = "127.0.0.1"
    callback_port: int = 8765
    callback_timeout_seconds: float = 300.0
    callback_shutdown_delay_seconds: float = 0.5
    user_agent: str = "weather-app/1.0"
    timeout_seconds: float = 10.0

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclasses.dataclass(frozen=True)
class WeatherSettings:
    api_base: str = "https://api.weather.gov"
    user_agent: str = "weather-app/1.0"
    timeout_seconds: float = 30.0


@dataclasses.dataclass(frozen=True)
class Settings:
    auth: AuthSettings = dataclasses.field(default_factory=AuthSettings)
    github: GitHubSettings = dataclasses.field(default_factory=GitHubSettings)
    weather: WeatherSettings = dataclasses.field(default_factory=WeatherSettings)


def load_settings(
    path: str | pathlib.Path | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Load settings from *path* (YAML) and overlay environment values.

    With ``path=None`` only defaults and the environment are used.  Raises
    ``ConfigError`` if the file is missing or malformed.
    """
    env = os.environ if environ is None else environ
    data = _read_yaml(pathlib.Path(path)) if path is not None else {}

    auth_raw = _section(data, "auth")
    github_raw = _section(data, "github")
    weather_raw = _section(data, "weather")

    strategy = env.get("WEATHER_GATE_AUTH_STRATEGY") or auth_raw.get(
        "strategy", STRATEGY_CACHED_THEN_INTERACTIVE
    )
    if strategy not in STRATEGIES:
        raise ConfigError(
            f"Unknown auth strategy '{strategy}' (expected one of {', '.join(STRATEGIES)})"
        )
    credentials_path = env.get("WEATHER_GATE_CREDENTIALS_PATH") or auth_raw.get(
        "credentials_path", str(DEFAULT_CREDENTIALS_PATH)
    )

    auth = AuthSettings(
        strategy=strategy,
        credentials_path=pathlib.Path(credentials_path).expanduser(),
    )
    github = GitHubSettings(
        **_known_fields(GitHubSettings, github_raw, exclude={"client_id", "client_secret"}),
        client_id=env.get("GITHUB_CLIENT_ID", ""),
        client_secret=env.get("GITHUB_CLIENT_SECRET", ""),
    )
    weather = WeatherSettings(**_known_fields(WeatherSettings, weather_raw))
    return Settings(auth=auth, github=github, weather=weather)


def with_strategy(settings: Settings, strategy: str) -> Settings:
    """Return a copy of *settings* using a different auth strategy."""
    if strategy not in STRATEGIES:
        raise ConfigError(f"Unknown auth strategy '{strategy}'")
    return dataclasses.replace(settings, auth=dataclasses.replace(settings.auth, strategy=strategy))


# -- private helpers ---------------------------------------------------------


def _read_yaml(path: pathlib.Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")
    with open(path) as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Settings file must contain a YAML mapping")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    block = data.get(name) or {}
    if not isinstance(block, dict):
        raise ConfigError(f"Settings section '{name}' must be a mapping")
    return block


def _known_fields(cls: type, raw: dict[str, Any], exclude: set[str] | None = None) -> dict[str, Any]:
    names = {f.name for f in dataclasses.fields(cls)} - (exclude or set())
    return {key: value for key, value in raw.items() if key in names}
