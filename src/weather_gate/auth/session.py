"""Session state for the single logical session this server runs.

Pattern: Two-State Session
---------------------------
The process is either *unauthenticated* or *authenticated as one GitHub
identity*.  Rather than a pair of nullable globals, each state is its own
immutable type and the ``SessionGate`` holds exactly one of them.  Code that
needs the identity must first narrow to ``Authenticated``, so "authenticated
but no identity" cannot be represented.

The bearer token is deliberately absent from ``Authenticated``: it is only
needed at verification time and in the credential store.
"""

from __future__ import annotations

import dataclasses
import datetime


@dataclasses.dataclass(frozen=True)
class Identity:
    """A verified GitHub identity.

    Attributes:
        login: The account's canonical handle as reported by ``GET /user``.
    """

    login: str

    def __str__(self) -> str:
        return self.login


@dataclasses.dataclass(frozen=True)
class Unauthenticated:
    """No identity has been verified in this process."""

    @property
    def is_authenticated(self) -> bool:
        return False

    def __str__(self) -> str:
        return "Unauthenticated"


@dataclasses.dataclass(frozen=True)
class Authenticated:
    """An identity was verified in this process's lifetime.

    Attributes:
        identity:         The verified GitHub identity.
        authenticated_at: UTC timestamp of the verification.
        source:           How the identity was established (``token``,
                          ``cache`` or ``interactive``).
    """

    identity: Identity
    authenticated_at: datetime.datetime
    source: str

    @property
    def is_authenticated(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"Authenticated(login={self.identity.login}, source={self.source})"


SessionState = Unauthenticated | Authenticated


def authenticated_now(identity: Identity, source: str) -> Authenticated:
    return Authenticated(
        identity=identity,
        authenticated_at=datetime.datetime.now(datetime.UTC),
        source=source,
    )
