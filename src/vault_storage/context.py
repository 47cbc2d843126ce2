"""Owned, injectable session context shared by the storage components."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from vault_storage.session.store import SessionStore

ContainerKey = tuple[str, str | None]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StorageContext:
    """Mutable state that outlives a single request.

    Attributes:
        credentials: Credential slot. Written only by SessionManager.
        containers: Folder ids keyed by ``(name, parent_id)``. Written only by
            ContainerResolver; cleared by SessionManager on sign-out.
        clock: Returns the current epoch time in milliseconds. Substituted in
            tests to drive token expiry deterministically.
    """

    credentials: SessionStore = field(default_factory=SessionStore)
    containers: dict[ContainerKey, str] = field(default_factory=dict)
    clock: Callable[[], int] = _now_ms

    def now_ms(self) -> int:
        return self.clock()

    def reset(self) -> None:
        """Drop the credential and every cached container id."""
        self.credentials.clear()
        self.containers.clear()
