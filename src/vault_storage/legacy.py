"""Read-only access to the legacy storage backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib import request as urllib_request

from vault_storage.drive.client import fetch
from vault_storage.drive.models import DEFAULT_MIME_TYPE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegacyObject:
    """Bytes and content type fetched from a legacy public URL."""

    content: bytes
    mime_type: str


class LegacyStorageClient:
    """Fetches legacy objects by their public URL. No authentication."""

    def download(self, url: str) -> LegacyObject:
        """Download a legacy object.

        Args:
            url: Public object URL on the legacy backend.

        Returns:
            LegacyObject with the body and the media type of its Content-Type,
            without parameters (``application/octet-stream`` when the header
            is missing).

        Raises:
            ProviderError: If the backend answers with a non-2xx status.
            TransferError: On network failure.
        """
        req = urllib_request.Request(url, method="GET")
        content, headers = fetch(req)
        mime_type = headers.get_content_type() if headers.get("Content-Type") else DEFAULT_MIME_TYPE
        logger.info(
            "[download] fetched legacy object; url:%s;bytes:%d;mime_type:%s",
            url,
            len(content),
            mime_type,
        )
        return LegacyObject(content=content, mime_type=mime_type)
