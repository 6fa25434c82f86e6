"""Identity verification against GitHub.

Pattern: Provider as Identity Oracle
-------------------------------------
GitHub is the single source of truth for *who the caller is*.  A bearer token
is considered valid exactly when GitHub's authenticated self-lookup
(``GET /user``) accepts it, and the identity is the ``login`` it reports.
Nothing about the token's format is checked locally.

One attempt, no retries: a flaky network surfaces as ``InvalidCredential`` and
the caller decides what to do next.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from weather_gate.auth.session import Identity
from weather_gate.config import GitHubSettings

logger = logging.getLogger(__name__)


class InvalidCredential(Exception):
    """Raised when GitHub rejects a token or the lookup cannot be completed."""


class GitHubVerifier:
    """Verifies GitHub bearer tokens and resolves them to an ``Identity``."""

    def __init__(
        self,
        settings: GitHubSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def verify(self, token: str) -> Identity:
        """Return the identity behind *token*.

        Raises ``InvalidCredential`` on an empty token, transport failure,
        non-2xx response, or a payload without a ``login``.
        """
        if not token or not token.strip():
            raise InvalidCredential("Token must not be empty")

        url = f"{self._settings.api_base.rstrip('/')}/user"
        headers = {
            "Authorization": f"Bearer {token.strip()}",
            "Accept": "application/vnd.github+json",
            "User-Agent": self._settings.user_agent,
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._settings.timeout_seconds,
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("GitHub identity lookup failed: %s", exc)
            raise InvalidCredential(f"GitHub request failed: {exc}") from exc

        payload = _json_or_none(response)
        if not response.is_success:
            message = None
            if isinstance(payload, dict):
                message = payload.get("message")
            logger.info("GitHub rejected token: status=%s", response.status_code)
            raise InvalidCredential(message or f"HTTP {response.status_code}")

        login = payload.get("login") if isinstance(payload, dict) else None
        if not isinstance(login, str) or not login:
            raise InvalidCredential("GitHub response did not include a login")

        logger.info("Verified GitHub identity %s", login)
        return Identity(login=login)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
