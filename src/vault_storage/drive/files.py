"""Upload pipeline and per-file sharing operations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vault_storage.drive.models import (
    FIELD_FILES,
    FIELD_ID,
    FIELD_PERMISSIONS,
    FIELD_TYPE,
    AssetDescriptor,
    descriptor_from_file,
)
from vault_storage.errors import NotFoundError, ProviderError

if TYPE_CHECKING:
    from vault_storage.drive.client import DriveClient, ProgressCallback
    from vault_storage.drive.folders import ContainerResolver
    from vault_storage.session.manager import SessionManager

logger = logging.getLogger(__name__)

PUBLIC_PERMISSION = {"role": "reader", "type": "anyone"}


class UploadPipeline:
    """Turns local bytes into a durably addressable Drive file."""

    def __init__(
        self,
        session: SessionManager,
        drive: DriveClient,
        folders: ContainerResolver,
    ) -> None:
        self._session = session
        self._drive = drive
        self._folders = folders

    def upload(
        self,
        content: bytes,
        name: str,
        mime_type: str,
        make_public: bool = False,
        on_progress: ProgressCallback | None = None,
        subfolder: str | None = None,
    ) -> AssetDescriptor:
        """Upload ``content`` into the app folder. May perform interactive auth.

        Steps:
            1. Ensure a credential (signing in if none is cached).
            2. Resolve the app root folder, then ``subfolder`` if given.
            3. Stream the multipart upload with the folder as parent.
            4. If ``make_public``, grant anyone-with-link read access and wait
               for the grant before returning.
            5. Build a descriptor with stable URLs from the new file id.

        No retry happens here; callers own their retry policy.

        Args:
            content: Raw file bytes.
            name: Target file name.
            mime_type: MIME type of the content.
            make_public: Whether the file must be readable by anyone with the link.
            on_progress: Optional callback receiving non-decreasing percentages.
            subfolder: Optional folder name under the app root.

        Returns:
            AssetDescriptor for the new file.

        Raises:
            AuthError: If no credential can be obtained.
            ProviderError: If Drive rejects a request.
            TransferError: On network failure.
        """
        self._session.ensure_token()
        folder_id = self._folders.resolve_root()
        if subfolder:
            folder_id = self._folders.resolve(subfolder, folder_id)

        metadata = {"name": name, "mimeType": mime_type, "parents": [folder_id]}
        created = self._drive.upload_multipart(metadata, content, mime_type, on_progress)
        if FIELD_ID not in created:
            raise ProviderError(200, "Upload response did not contain a file id")

        if make_public:
            self.set_public(created[FIELD_ID])

        created.setdefault("name", name)
        created.setdefault("mimeType", mime_type)
        descriptor = descriptor_from_file(created)
        logger.info(
            "[upload] uploaded file; name:%s;id:%s;public:%s",
            descriptor.name,
            descriptor.external_id,
            make_public,
        )
        return descriptor

    def set_public(self, file_id: str) -> None:
        """Grant read access to anyone with the link."""
        self._drive.post(f"/files/{file_id}/permissions", PUBLIC_PERMISSION)
        logger.info("[set_public] granted public read; id:%s", file_id)

    def set_private(self, file_id: str) -> None:
        """Remove the anyone-with-link permission if the file has one."""
        result = self._drive.get(f"/files/{file_id}/permissions")
        for permission in result.get(FIELD_PERMISSIONS) or []:
            if permission.get(FIELD_TYPE) == "anyone":
                self._drive.delete(f"/files/{file_id}/permissions/{permission[FIELD_ID]}")
                logger.info("[set_private] revoked public read; id:%s", file_id)
                return

    def delete(self, file_id: str) -> None:
        """Delete a file. A file that is already gone is not an error."""
        try:
            self._drive.delete(f"/files/{file_id}")
        except NotFoundError:
            logger.info("[delete] file already absent; id:%s", file_id)

    def list_files(self) -> list[AssetDescriptor]:
        """List the non-trashed files directly inside the app root folder."""
        folder_id = self._folders.resolve_root()
        result = self._drive.get(
            "/files",
            {
                "q": f"'{folder_id}' in parents and trashed=false",
                "fields": "files(id, name, mimeType, webViewLink, webContentLink, size)",
                "spaces": "drive",
            },
        )
        return [descriptor_from_file(raw) for raw in result.get(FIELD_FILES) or []]
