"""Data models for the legacy-to-Drive migration job."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from vault_storage.drive.models import AssetDescriptor, AssetSource


class InventoryKind(StrEnum):
    """Inventories swept by the engine, in processing order."""

    ASSETS = "assets"
    AVATARS = "avatars"
    COVERS = "covers"


class ItemState(StrEnum):
    PENDING = "pending"
    SKIPPED = "skipped"
    MIGRATED = "migrated"
    FAILED = "failed"


class LogStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class InventoryItem:
    """One row supplied by the caller's data layer.

    Attributes:
        id: Row id in the caller's store.
        display_name: Human-readable name (asset title, planner name, ...).
        current_reference: URL currently stored on the row.
        secondary_reference: Separately stored URL, e.g. a thumbnail.
        owner_present: Whether the row belongs to a user.
        source: Backend tag stored on the row, when the row carries one.
    """

    id: str
    display_name: str
    current_reference: str | None
    secondary_reference: str | None = None
    owner_present: bool = True
    source: AssetSource | str | None = None


@dataclass(frozen=True)
class MigrationStats:
    total: int = 0
    migrated: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.migrated + self.failed + self.skipped


@dataclass(frozen=True)
class MigrationLogEntry:
    id: str
    name: str
    status: LogStatus
    message: str | None = None


@dataclass(frozen=True)
class MigrationSnapshot:
    """Immutable view of a job after a state transition.

    Attributes:
        stats: Counters so far.
        log: Most recent entries, newest first, capped by the engine.
        done: True only on the terminal snapshot.
    """

    stats: MigrationStats
    log: tuple[MigrationLogEntry, ...] = field(default_factory=tuple)
    done: bool = False


class InventorySource(Protocol):
    """Caller-owned data layer feeding and persisting the migration."""

    def fetch(self, kind: InventoryKind) -> list[InventoryItem]:
        """Return the ordered inventory for ``kind``."""
        ...

    def set_reference(self, kind: InventoryKind, item_id: str, descriptor: AssetDescriptor) -> None:
        """Persist ``descriptor`` over the item's current reference. Must be idempotent."""
        ...

    def set_secondary_reference(
        self, kind: InventoryKind, item_id: str, descriptor: AssetDescriptor
    ) -> None:
        """Persist ``descriptor`` over the item's secondary reference."""
        ...
