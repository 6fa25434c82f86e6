"""Durable storage for the one cached credential and its identity name.

The store is a small JSON document owned by this application.  It holds two
keys, ``credential`` and ``identity-name``, and is read as a unit: a document
with only one of them is treated as empty.  A document that cannot be decoded
is discarded; a file that cannot be read at all is treated as empty.  Failed
writes and removals raise ``CredentialStoreError``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import os
import pathlib
from typing import Any

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "credential"
IDENTITY_KEY = "identity-name"


class CredentialStoreError(Exception):
    """The credential file could not be written or removed."""


@dataclasses.dataclass(frozen=True)
class StoredCredential:
    token: str
    identity_name: str

    def __repr__(self) -> str:
        return f"StoredCredential(token=<redacted>, identity_name={self.identity_name!r})"


class CredentialStore:
    """JSON-file backed key-value namespace for the cached credential."""

    def __init__(self, path: str | pathlib.Path) -> None:
        self.path = pathlib.Path(path).expanduser()
        self._lock = asyncio.Lock()

    async def load(self) -> StoredCredential | None:
        """Return the cached credential, or ``None`` if absent or incomplete."""
        async with self._lock:
            data = await self._read()
        token = data.get(CREDENTIAL_KEY)
        identity_name = data.get(IDENTITY_KEY)
        if not _non_empty_str(token) or not _non_empty_str(identity_name):
            return None
        return StoredCredential(token=token, identity_name=identity_name)

    async def save(self, token: str, identity_name: str) -> None:
        """Persist *token* and *identity_name*; the write is durable on return."""
        async with self._lock:
            try:
                await self._write({CREDENTIAL_KEY: token, IDENTITY_KEY: identity_name})
            except OSError as exc:
                raise CredentialStoreError(f"Could not write credential file {self.path}: {exc}") from exc
        logger.info("Cached credential for %s at %s", identity_name, self.path)

    async def clear(self) -> None:
        """Remove all persisted state for this application."""
        async with self._lock:
            try:
                await asyncio.to_thread(self._unlink)
            except OSError as exc:
                raise CredentialStoreError(f"Could not remove credential file {self.path}: {exc}") from exc
        logger.info("Cleared cached credential at %s", self.path)

    # -- private helpers -----------------------------------------------------

    async def _read(self) -> dict[str, Any]:
        def _load() -> Any:
            with self.path.open("r", encoding="utf-8") as handle:
                return json.load(handle)

        try:
            data = await asyncio.to_thread(_load)
        except FileNotFoundError:
            return {}
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors.
            logger.warning("Discarding unreadable credential file %s: %s", self.path, exc)
            await self._discard()
            return {}
        except OSError as exc:
            logger.warning("Could not read credential file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Discarding credential file %s: not a JSON object", self.path)
            await self._discard()
            return {}
        return data

    async def _write(self, data: dict[str, Any]) -> None:
        def _dump() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            tmp_path.replace(self.path)

        await asyncio.to_thread(_dump)

    async def _discard(self) -> None:
        try:
            await asyncio.to_thread(self._unlink)
        except OSError as exc:
            logger.warning("Could not remove credential file %s: %s", self.path, exc)

    def _unlink(self) -> None:
        self.path.unlink(missing_ok=True)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)
