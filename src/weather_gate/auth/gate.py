"""Session gate: the authentication state machine in front of every protected tool.

Pattern: Pluggable Acquisition Strategy
----------------------------------------
The gate answers one question, "is this session authenticated?", and tries
progressively more expensive ways to make the answer yes:

  1. In-memory state (no I/O once authenticated).
  2. Restore the cached credential and re-verify it with GitHub.  A token
     that no longer verifies is cleared from the store.
  3. Interactive browser login; the new token is verified and cached.

Which of steps 2 and 3 are available is decided by the strategy chosen in
configuration:

  - ``prompt_only``: neither.  Only the ``authenticate`` tool can establish
    a session (the caller supplies a personal access token).
  - ``cached_then_interactive``: both.

The gate object is created once and handed to the tool server, so there is no
module-level session state.  Resolution runs under a lock: concurrent callers
wait for the first resolution rather than starting a second browser login.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from weather_gate.auth.credential_store import CredentialStore, CredentialStoreError
from weather_gate.auth.github_verifier import GitHubVerifier, InvalidCredential
from weather_gate.auth.oauth_flow import AcquisitionFailed, OAuthFlow
from weather_gate.auth.session import (
    Authenticated,
    Identity,
    SessionState,
    Unauthenticated,
    authenticated_now,
)
from weather_gate.config import STRATEGY_CACHED_THEN_INTERACTIVE, Settings

logger = logging.getLogger(__name__)


class Verifier(Protocol):
    async def verify(self, token: str) -> Identity: ...


class Acquirer(Protocol):
    async def acquire(self) -> str | None: ...


class SessionGate:
    """Holds the session state and resolves it on demand."""

    def __init__(
        self,
        verifier: Verifier,
        store: CredentialStore | None = None,
        acquirer: Acquirer | None = None,
    ) -> None:
        self._verifier = verifier
        self._store = store
        self._acquirer = acquirer
        self._state: SessionState = Unauthenticated()
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionGate:
        """Build a gate for the strategy named in *settings*."""
        verifier = GitHubVerifier(settings.github)
        if settings.auth.strategy == STRATEGY_CACHED_THEN_INTERACTIVE:
            return cls(
                verifier=verifier,
                store=CredentialStore(settings.auth.credentials_path),
                acquirer=OAuthFlow(settings.github),
            )
        return cls(verifier=verifier)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    async def ensure_authenticated(self) -> bool:
        """Return ``True`` once a verified identity is established."""
        if isinstance(self._state, Authenticated):
            return True

        async with self._lock:
            # Another caller may have finished while we waited.
            if isinstance(self._state, Authenticated):
                return True
            if await self._restore_from_store():
                return True
            if await self._acquire_interactively():
                return True

        logger.info("Session remains unauthenticated")
        return False

    async def authenticate_with_token(self, token: str) -> Identity:
        """Verify a caller-supplied *token* and make it the session credential.

        Bypasses interactive login.  Raises ``InvalidCredential`` if GitHub
        rejects the token; the current state is left unchanged in that case.
        """
        identity = await self._verifier.verify(token)
        # Not under self._lock: a pending browser login must not block this path.
        await self._cache(token, identity)
        self._state = authenticated_now(identity, source="token")
        logger.info("Session authenticated as %s via supplied token", identity.login)
        return identity

    # -- private helpers -----------------------------------------------------

    async def _restore_from_store(self) -> bool:
        if self._store is None:
            return False
        cached = await self._store.load()
        if cached is None:
            return False

        try:
            identity = await self._verifier.verify(cached.token)
        except InvalidCredential as exc:
            logger.warning("Cached credential for %s is no longer valid: %s", cached.identity_name, exc)
            try:
                await self._store.clear()
            except CredentialStoreError as clear_exc:
                logger.error("%s", clear_exc)
            return False

        self._state = authenticated_now(identity, source="cache")
        logger.info("Session restored from cache as %s", identity.login)
        return True

    async def _acquire_interactively(self) -> bool:
        if self._acquirer is None:
            return False
        try:
            token = await self._acquirer.acquire()
        except AcquisitionFailed as exc:
            logger.error("Interactive login failed: %s", exc)
            return False
        if token is None:
            return False

        try:
            identity = await self._verifier.verify(token)
        except InvalidCredential as exc:
            logger.error("Token from interactive login did not verify: %s", exc)
            return False

        await self._cache(token, identity)
        self._state = authenticated_now(identity, source="interactive")
        logger.info("Session authenticated as %s via browser login", identity.login)
        return True

    async def _cache(self, token: str, identity: Identity) -> None:
        """Persist a verified token; the session stays valid even if this fails."""
        if self._store is None:
            return
        try:
            await self._store.save(token, identity.login)
        except CredentialStoreError as exc:
            logger.error("Credential for %s not cached: %s", identity.login, exc)
