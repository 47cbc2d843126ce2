"""Data models for Google Drive files and the descriptors handed to callers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from vault_storage.urls import content_url_for, thumbnail_url

# Drive API JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_MIME_TYPE = "mimeType"
FIELD_SIZE = "size"
FIELD_TRASHED = "trashed"
FIELD_PARENTS = "parents"
FIELD_WEB_VIEW_LINK = "webViewLink"
FIELD_FILES = "files"
FIELD_PERMISSIONS = "permissions"
FIELD_TYPE = "type"

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DEFAULT_MIME_TYPE = "application/octet-stream"
FILE_FIELDS = "id,name,mimeType,webViewLink,webContentLink,size"


class AssetSource(StrEnum):
    """Backend that produced an asset descriptor."""

    GOOGLE_DRIVE = "google_drive"
    SUPABASE = "supabase"


@dataclass(frozen=True)
class AssetDescriptor:
    """Stable reference to a stored object, returned to callers to persist.

    Attributes:
        external_id: Provider object id.
        url: Directly renderable URL (never session-bound).
        name: File name.
        mime_type: MIME type reported by the provider.
        thumbnail_url: Bounded raster URL for list views.
        size: Size in bytes when the provider reports it.
        source: Backend the object lives on.
    """

    external_id: str
    url: str
    name: str
    mime_type: str
    thumbnail_url: str | None = None
    size: int | None = None
    source: AssetSource = AssetSource.GOOGLE_DRIVE

    def to_record(self) -> dict[str, Any]:
        """Row fields the caller writes back over a stored reference."""
        return {
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "source": str(self.source),
            "external_id": self.external_id,
        }


def descriptor_from_file(
    raw: dict[str, Any],
    link_field: str = FIELD_WEB_VIEW_LINK,
) -> AssetDescriptor:
    """Map a Drive file resource (or Picker doc) to an AssetDescriptor.

    Args:
        raw: Drive API file JSON, or a Picker document dict.
        link_field: Key holding the provider's viewer link (``url`` for Picker docs).
    """
    file_id = str(raw[FIELD_ID])
    mime_type = raw.get(FIELD_MIME_TYPE) or DEFAULT_MIME_TYPE
    size = raw.get(FIELD_SIZE, raw.get("sizeBytes"))
    return AssetDescriptor(
        external_id=file_id,
        url=content_url_for(file_id, mime_type, raw.get(link_field)),
        name=raw.get(FIELD_NAME, ""),
        mime_type=mime_type,
        thumbnail_url=thumbnail_url(file_id),
        size=int(size) if size not in (None, "") else None,
    )
