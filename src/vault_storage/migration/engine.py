"""Sequential migration of legacy storage references onto Google Drive."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, TypeVar

from vault_storage.drive.models import AssetSource
from vault_storage.errors import ProviderError, TransferError
from vault_storage.migration.models import (
    InventoryItem,
    InventoryKind,
    InventorySource,
    ItemState,
    LogStatus,
    MigrationLogEntry,
    MigrationSnapshot,
    MigrationStats,
)
from vault_storage.urls import is_drive_url, is_legacy_url

if TYPE_CHECKING:
    from vault_storage.config import AppConfig
    from vault_storage.drive.models import AssetDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAY_SECONDS = 0.3
DEFAULT_LOG_LIMIT = 200

GLOBAL_LOG_ID = "global"

MigrateFn = Callable[[str, str, bool], "AssetDescriptor"]
PublicnessRule = Callable[[InventoryKind, InventoryItem], bool]


def default_publicness(kind: InventoryKind, item: InventoryItem) -> bool:
    """Assets without an owning user are public; avatars and covers are private."""
    return kind == InventoryKind.ASSETS and not item.owner_present


def upload_name(kind: InventoryKind, item: InventoryItem) -> str:
    if kind == InventoryKind.AVATARS:
        return f"avatar-{item.id}"
    if kind == InventoryKind.COVERS:
        return f"cover-{item.display_name}"
    return item.display_name


def log_name(kind: InventoryKind, item: InventoryItem) -> str:
    if kind == InventoryKind.AVATARS:
        return "Avatar"
    if kind == InventoryKind.COVERS:
        return f"Cover: {item.display_name}"
    return item.display_name


@dataclass(frozen=True)
class RetryPolicy:
    """How many times one item's transfer is attempted before it fails.

    Only transient errors are retried: network failures, rate limiting (429)
    and provider-side 5xx responses. ``max_attempts=1`` disables retry.
    """

    max_attempts: int = 1
    backoff_seconds: float = 0.0

    def should_retry(self, exc: Exception) -> bool:
        if isinstance(exc, TransferError):
            return True
        if isinstance(exc, ProviderError):
            return exc.status_code == 429 or exc.status_code >= 500
        return False

    def call(self, operation: Callable[[], T], sleep: Callable[[float], None] = time.sleep) -> T:
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.should_retry(exc):
                    raise
                logger.info("[retry] transient failure; attempt:%d;error:%s", attempt, exc)
                if self.backoff_seconds > 0:
                    sleep(self.backoff_seconds)
                attempt += 1


def _advance(stats: MigrationStats, state: ItemState) -> MigrationStats:
    if state == ItemState.MIGRATED:
        return replace(stats, migrated=stats.migrated + 1)
    if state == ItemState.FAILED:
        return replace(stats, failed=stats.failed + 1)
    return replace(stats, skipped=stats.skipped + 1)


class MigrationEngine:
    """Walks the caller's inventories and re-hosts every legacy object on Drive.

    Items are processed strictly one after another, with a fixed pause
    between them. A failing item is recorded and the sweep moves on; only a
    failure while fetching the inventories aborts the job. Whether an item is
    skipped is decided from its current reference when it is visited, so
    re-running after a partial run retries only what failed.
    """

    def __init__(
        self,
        inventory: InventorySource,
        migrate: MigrateFn,
        publicness: PublicnessRule = default_publicness,
        retry: RetryPolicy | None = None,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        log_limit: int = DEFAULT_LOG_LIMIT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialise the engine.

        Args:
            inventory: Caller data layer supplying items and persisting rewrites.
            migrate: ``(url, name, make_public) -> AssetDescriptor``; downloads a
                legacy object and uploads it to Drive.
            publicness: Decides the Drive visibility of each migrated item.
            retry: Retry policy applied to ``migrate``. Defaults to no retry.
            delay_seconds: Pause inserted between consecutive items.
            log_limit: Maximum number of log entries carried in a snapshot.
            sleep: Sleep function, substituted in tests.
        """
        self._inventory = inventory
        self._migrate = migrate
        self._publicness = publicness
        self._retry = retry or RetryPolicy()
        self._delay_seconds = delay_seconds
        self._log_limit = log_limit
        self._sleep = sleep

    def run(self) -> Iterator[MigrationSnapshot]:
        """Run the migration, yielding a snapshot after every item.

        The first snapshot carries the inventory total, the last one has
        ``done=True``. The generator is single-use.
        """
        try:
            batches = [(kind, self._inventory.fetch(kind)) for kind in InventoryKind]
        except Exception as exc:
            logger.error("[run] inventory fetch failed; error:%s", exc)
            entry = MigrationLogEntry(
                id=GLOBAL_LOG_ID, name="Migration", status=LogStatus.ERROR, message=str(exc)
            )
            yield MigrationSnapshot(stats=MigrationStats(), log=(entry,), done=True)
            return

        stats = MigrationStats(total=sum(len(items) for _, items in batches))
        log: tuple[MigrationLogEntry, ...] = ()
        logger.info("[run] starting migration; total:%d", stats.total)
        yield MigrationSnapshot(stats=stats, log=log)

        first = True
        for kind, items in batches:
            for item in items:
                if not first and self._delay_seconds > 0:
                    self._sleep(self._delay_seconds)
                first = False
                state, entry = self._process(kind, item)
                stats = _advance(stats, state)
                log = ((entry,) + log)[: self._log_limit]
                yield MigrationSnapshot(stats=stats, log=log)

        logger.info(
            "[run] migration complete; total:%d;migrated:%d;failed:%d;skipped:%d",
            stats.total,
            stats.migrated,
            stats.failed,
            stats.skipped,
        )
        yield MigrationSnapshot(stats=stats, log=log, done=True)

    def run_to_completion(
        self, on_snapshot: Callable[[MigrationSnapshot], None] | None = None
    ) -> MigrationSnapshot:
        """Drain ``run()`` and return the terminal snapshot."""
        last = MigrationSnapshot(stats=MigrationStats())
        for snapshot in self.run():
            if on_snapshot is not None:
                on_snapshot(snapshot)
            last = snapshot
        return last

    def _skip_reason(self, item: InventoryItem) -> str | None:
        reference = item.current_reference
        if item.source == AssetSource.GOOGLE_DRIVE or (reference and is_drive_url(reference)):
            return "Already migrated"
        if not is_legacy_url(reference):
            return "Not a legacy storage reference"
        return None

    def _process(
        self, kind: InventoryKind, item: InventoryItem
    ) -> tuple[ItemState, MigrationLogEntry]:
        name = log_name(kind, item)
        reason = self._skip_reason(item)
        if reason is not None:
            logger.info("[run] skipped; kind:%s;id:%s;reason:%s", kind, item.id, reason)
            return ItemState.SKIPPED, MigrationLogEntry(
                id=item.id, name=name, status=LogStatus.SKIPPED, message=reason
            )

        reference = str(item.current_reference)
        is_public = self._publicness(kind, item)
        try:
            descriptor = self._retry.call(
                lambda: self._migrate(reference, upload_name(kind, item), is_public),
                self._sleep,
            )
            self._inventory.set_reference(kind, item.id, descriptor)
        except Exception as exc:
            logger.error("[run] item failed; kind:%s;id:%s;error:%s", kind, item.id, exc)
            return ItemState.FAILED, MigrationLogEntry(
                id=item.id, name=name, status=LogStatus.ERROR, message=str(exc)
            )

        if kind == InventoryKind.ASSETS and is_legacy_url(item.secondary_reference):
            self._migrate_secondary(kind, item, is_public)

        logger.info(
            "[run] migrated; kind:%s;id:%s;external_id:%s", kind, item.id, descriptor.external_id
        )
        return ItemState.MIGRATED, MigrationLogEntry(
            id=item.id, name=name, status=LogStatus.OK, message=f"→ {descriptor.external_id}"
        )

    def _migrate_secondary(self, kind: InventoryKind, item: InventoryItem, is_public: bool) -> None:
        """Move a separately stored thumbnail. Failures never affect the item."""
        try:
            descriptor = self._migrate(
                str(item.secondary_reference), f"thumb-{item.display_name}", is_public
            )
            self._inventory.set_secondary_reference(kind, item.id, descriptor)
        except Exception:
            logger.warning(
                "[run] secondary reference migration failed; kind:%s;id:%s",
                kind,
                item.id,
                exc_info=True,
            )


def retry_policy_from_config(config: AppConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.migration_max_attempts,
        backoff_seconds=config.migration_backoff_seconds,
    )


def migration_engine_from_config(
    inventory: InventorySource,
    migrate: MigrateFn,
    config: AppConfig,
    publicness: PublicnessRule | None = None,
) -> MigrationEngine:
    """Construct a MigrationEngine from application configuration.

    Args:
        inventory: Caller data layer.
        migrate: Single-object migration function.
        config: Application configuration instance.
        publicness: Optional override of the default publicness rule.

    Returns:
        Configured MigrationEngine instance.
    """
    return MigrationEngine(
        inventory=inventory,
        migrate=migrate,
        publicness=publicness or default_publicness,
        retry=retry_policy_from_config(config),
        delay_seconds=config.migration_delay_seconds,
        log_limit=config.migration_log_limit,
    )
