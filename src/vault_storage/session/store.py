"""Session-lifetime credential storage."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Credential:
    """Bearer token for the Drive API with an explicit expiry.

    Attributes:
        access_token: OAuth access token sent as ``Authorization: Bearer``.
        expires_at_epoch_ms: Last millisecond at which the token may be used.
            Already reduced by the safety margin when the token was stored.
    """

    access_token: str
    expires_at_epoch_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at_epoch_ms


class SessionStore:
    """In-memory credential slot that lives as long as the process session.

    Nothing is written to disk. Only the SessionManager writes here; every
    other component reads through SessionManager.load_token().
    """

    def __init__(self) -> None:
        self._credential: Credential | None = None

    def get(self) -> Credential | None:
        return self._credential

    def put(self, credential: Credential) -> None:
        self._credential = credential

    def clear(self) -> None:
        self._credential = None
