"""Caller-facing entry points over the Drive storage components."""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Iterator
from pathlib import Path
from typing import IO, TYPE_CHECKING

from vault_storage.context import StorageContext
from vault_storage.drive.client import drive_client_from_config
from vault_storage.drive.files import UploadPipeline
from vault_storage.drive.folders import container_resolver_from_config
from vault_storage.drive.models import DEFAULT_MIME_TYPE, AssetDescriptor
from vault_storage.drive.picker import (
    PickerBridge,
    PickerLauncher,
    PickerOptions,
    picker_bridge_from_config,
)
from vault_storage.legacy import LegacyStorageClient
from vault_storage.migration.engine import (
    MigrationEngine,
    PublicnessRule,
    migration_engine_from_config,
)
from vault_storage.session.manager import SessionManager, session_manager_from_config

if TYPE_CHECKING:
    from vault_storage.config import AppConfig
    from vault_storage.drive.client import ProgressCallback
    from vault_storage.migration.models import InventorySource, MigrationSnapshot

logger = logging.getLogger(__name__)

UploadSource = bytes | str | Path | IO[bytes]


class StorageService:
    """One object per application session, exposing every storage operation.

    Methods that talk to Drive may perform interactive auth: when no valid
    credential is cached they run ``connect()`` first.
    """

    def __init__(
        self,
        context: StorageContext,
        session: SessionManager,
        uploads: UploadPipeline,
        picker: PickerBridge,
        legacy: LegacyStorageClient,
        config: AppConfig,
    ) -> None:
        self.context = context
        self._session = session
        self._uploads = uploads
        self._picker = picker
        self._legacy = legacy
        self._config = config

    def connect(self) -> None:
        """Sign in interactively unless a valid credential is cached.

        Raises:
            AuthError: If consent is refused or fails; the caller may retry.
        """
        self._session.sign_in()

    def disconnect(self) -> None:
        self._session.sign_out()

    def is_connected(self) -> bool:
        return self._session.is_signed_in()

    def _ensure_connected(self) -> None:
        if not self._session.is_signed_in():
            self.connect()

    def upload(
        self,
        file: UploadSource,
        name: str | None = None,
        make_public: bool = False,
        on_progress: ProgressCallback | None = None,
        subfolder: str | None = None,
    ) -> AssetDescriptor:
        """Upload a file to the app folder. May perform interactive auth.

        Args:
            file: Raw bytes, a filesystem path, or a binary file object.
            name: Target name; defaults to the path's name or ``file-<epoch ms>``.
            make_public: Grant anyone-with-link read access.
            on_progress: Optional percentage callback.
            subfolder: Optional folder name under the app root.
        """
        self._ensure_connected()
        content, inferred_name = self._read(file)
        file_name = name or inferred_name or f"file-{self.context.now_ms()}"
        mime_type = mimetypes.guess_type(file_name)[0] or DEFAULT_MIME_TYPE
        return self._uploads.upload(
            content, file_name, mime_type, make_public, on_progress, subfolder
        )

    def pick(self, options: PickerOptions | None = None) -> list[AssetDescriptor]:
        """Let the user choose existing Drive files. May perform interactive auth."""
        self._ensure_connected()
        return self._picker.pick(options)

    def make_public(self, file_id: str) -> None:
        self._ensure_connected()
        self._uploads.set_public(file_id)

    def make_private(self, file_id: str) -> None:
        self._ensure_connected()
        self._uploads.set_private(file_id)

    def delete(self, file_id: str) -> None:
        self._ensure_connected()
        self._uploads.delete(file_id)

    def list_files(self) -> list[AssetDescriptor]:
        self._ensure_connected()
        return self._uploads.list_files()

    def migrate(self, url: str, name: str, make_public: bool = False) -> AssetDescriptor:
        """Copy one legacy object to Drive. May perform interactive auth.

        Errors propagate unchanged.
        """
        self._ensure_connected()
        legacy = self._legacy.download(url)
        return self._uploads.upload(legacy.content, name, legacy.mime_type, make_public)

    def migration_engine(
        self,
        inventory: InventorySource,
        publicness: PublicnessRule | None = None,
    ) -> MigrationEngine:
        return migration_engine_from_config(inventory, self.migrate, self._config, publicness)

    def run_migration(
        self,
        inventory: InventorySource,
        publicness: PublicnessRule | None = None,
    ) -> Iterator[MigrationSnapshot]:
        """Connect, then return the lazy snapshot stream of a full migration.

        May perform interactive auth before the first snapshot is produced.
        """
        self._ensure_connected()
        return self.migration_engine(inventory, publicness).run()

    @staticmethod
    def _read(file: UploadSource) -> tuple[bytes, str | None]:
        if isinstance(file, bytes):
            return file, None
        if isinstance(file, (str, Path)):
            path = Path(file)
            return path.read_bytes(), path.name
        name = getattr(file, "name", None)
        return file.read(), Path(name).name if isinstance(name, str) else None


def storage_service_from_config(
    config: AppConfig,
    context: StorageContext | None = None,
    picker_launcher: PickerLauncher | None = None,
) -> StorageService:
    """Construct a fully wired StorageService from application configuration.

    Args:
        config: Application configuration instance.
        context: Optional pre-built context (e.g. with a fixed clock).
        picker_launcher: Optional chooser launcher; defaults to the browser one.

    Returns:
        Configured StorageService instance.
    """
    context = context or StorageContext()
    session = session_manager_from_config(context, config)
    drive = drive_client_from_config(session, config)
    folders = container_resolver_from_config(context, drive, config)
    return StorageService(
        context=context,
        session=session,
        uploads=UploadPipeline(session=session, drive=drive, folders=folders),
        picker=picker_bridge_from_config(session, config, picker_launcher),
        legacy=LegacyStorageClient(),
        config=config,
    )
