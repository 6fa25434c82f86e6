"""Shared fixtures for tests."""

from __future__ import annotations

import asyncio
import json
import pathlib
from typing import Any, Callable

import httpx
import pytest

from weather_gate.auth.credential_store import CredentialStore
from weather_gate.auth.github_verifier import InvalidCredential
from weather_gate.auth.session import Identity
from weather_gate.config import GitHubSettings, WeatherSettings


class FakeVerifier:
    """Accepts the tokens in *valid* (token -> login) and rejects the rest."""

    def __init__(self, valid: dict[str, str] | None = None) -> None:
        self.valid = dict(valid or {})
        self.calls: list[str] = []

    async def verify(self, token: str) -> Identity:
        self.calls.append(token)
        if token in self.valid:
            return Identity(login=self.valid[token])
        raise InvalidCredential("Bad credentials")


class FakeAcquirer:
    """Returns *token* from ``acquire()`` (or raises *error*), counting calls."""

    def __init__(self, token: str | None = None, error: Exception | None = None, delay: float = 0) -> None:
        self.token = token
        self.error = error
        self.delay = delay
        self.calls = 0

    async def acquire(self) -> str | None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.token


class RecordingTransport(httpx.MockTransport):
    """``httpx.MockTransport`` that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"})


@pytest.fixture
def store(tmp_path: pathlib.Path) -> CredentialStore:
    return CredentialStore(tmp_path / "weather-gate" / "credentials.json")


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier({"ghp_good": "octocat"})


@pytest.fixture
def github_settings() -> GitHubSettings:
    return GitHubSettings(
        api_base="https://api.github.test",
        oauth_base="https://github.test",
        client_id="Iv1.client",
        client_secret="shh",
        callback_port=0,
        callback_timeout_seconds=5,
        callback_shutdown_delay_seconds=0,
    )


@pytest.fixture
def weather_settings() -> WeatherSettings:
    return WeatherSettings(api_base="https://api.weather.test")
