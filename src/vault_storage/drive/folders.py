"""Folder resolution with a validated, process-lifetime id cache."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vault_storage.drive.models import (
    FIELD_FILES,
    FIELD_ID,
    FIELD_TRASHED,
    FOLDER_MIME_TYPE,
)
from vault_storage.errors import NotFoundError, ProviderError

if TYPE_CHECKING:
    from vault_storage.config import AppConfig
    from vault_storage.context import StorageContext
    from vault_storage.drive.client import DriveClient

logger = logging.getLogger(__name__)

DEFAULT_APP_FOLDER_NAME = "Zoabi Nexus Vault Website"


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class ContainerResolver:
    """Resolves folder names to Drive folder ids, creating them when absent.

    Resolve-or-create is not atomic against other sessions: a concurrent
    creator may produce a duplicate folder with the same name. The first
    match returned by the provider wins on the next lookup.
    """

    def __init__(
        self,
        context: StorageContext,
        drive: DriveClient,
        app_folder_name: str = DEFAULT_APP_FOLDER_NAME,
    ) -> None:
        self._ctx = context
        self._drive = drive
        self._app_folder_name = app_folder_name

    def check(self, container_id: str) -> None:
        """Confirm a folder still exists and is not trashed.

        Raises:
            NotFoundError: If the folder is gone or in the trash.
        """
        result = self._drive.get(f"/files/{container_id}", {"fields": "id,trashed"})
        if result.get(FIELD_TRASHED):
            raise NotFoundError(f"Folder {container_id} is trashed")

    def resolve(self, name: str, parent_id: str | None = None) -> str:
        """Return the id of folder ``name`` under ``parent_id``.

        A cached id is reused only after it passes ``check``. Otherwise the
        provider is searched for a non-trashed match, and a new folder is
        created if none exists.

        Args:
            name: Folder name.
            parent_id: Parent folder id, or None for the drive root.

        Returns:
            Drive folder id.
        """
        key = (name, parent_id)
        cached = self._ctx.containers.get(key)
        if cached is not None:
            try:
                self.check(cached)
                return cached
            except NotFoundError:
                logger.info("[resolve] cached folder is stale; name:%s;id:%s", name, cached)
                self._ctx.containers.pop(key, None)

        folder_id = self._find(name, parent_id) or self._create(name, parent_id)
        self._ctx.containers[key] = folder_id
        return folder_id

    def resolve_root(self) -> str:
        """Return the app-owned root folder id."""
        return self.resolve(self._app_folder_name)

    def resolve_subfolder(self, name: str) -> str:
        """Return the id of ``name`` directly under the app root folder."""
        return self.resolve(name, self.resolve_root())

    def _find(self, name: str, parent_id: str | None) -> str | None:
        query = f"name='{_quote(name)}' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        if parent_id is not None:
            query += f" and '{_quote(parent_id)}' in parents"
        result = self._drive.get(
            "/files",
            {"q": query, "fields": "files(id, name)", "spaces": "drive"},
        )
        files = result.get(FIELD_FILES) or []
        if not files:
            return None
        found = str(files[0][FIELD_ID])
        logger.info("[resolve] found existing folder; name:%s;id:%s", name, found)
        return found

    def _create(self, name: str, parent_id: str | None) -> str:
        metadata: dict[str, object] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id is not None:
            metadata["parents"] = [parent_id]
        result = self._drive.post("/files", metadata, {"fields": "id"})
        if FIELD_ID not in result:
            raise ProviderError(200, "Folder creation response did not contain an id")
        created = str(result[FIELD_ID])
        logger.info("[resolve] created folder; name:%s;id:%s", name, created)
        return created


def container_resolver_from_config(
    context: StorageContext,
    drive: DriveClient,
    config: AppConfig,
) -> ContainerResolver:
    """Construct a ContainerResolver from application configuration."""
    return ContainerResolver(context=context, drive=drive, app_folder_name=config.app_folder_name)
