"""Google Drive REST v3 client authenticated through the SessionManager."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Iterator
from email.message import Message
from http.client import HTTPException
from typing import TYPE_CHECKING, Any
from urllib import parse as urllib_parse
from urllib import request as urllib_request
from urllib.error import HTTPError

from vault_storage.drive.models import FILE_FIELDS
from vault_storage.errors import NotFoundError, ProviderError, TransferError

if TYPE_CHECKING:
    from vault_storage.config import AppConfig
    from vault_storage.session.manager import SessionManager

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
DEFAULT_CHUNK_BYTES = 256 * 1024

ProgressCallback = Callable[[int], None]


def _error_detail(exc: HTTPError) -> str:
    """Extract ``error.message`` from a provider error body, else the status."""
    fallback = f"HTTP {exc.code}"
    try:
        payload = json.loads(exc.read())
    except Exception:
        return fallback
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or fallback)
    if isinstance(error, str):
        return str(payload.get("error_description") or error)
    return fallback


def fetch(req: urllib_request.Request) -> tuple[bytes, Message]:
    """Execute a request and translate transport failures into StorageErrors.

    Returns:
        Response body and headers.

    Raises:
        NotFoundError: If the provider answers 404.
        ProviderError: On any other non-2xx status.
        TransferError: On a network-level failure.
    """
    try:
        with urllib_request.urlopen(req) as resp:
            return resp.read(), resp.headers
    except HTTPError as exc:
        detail = _error_detail(exc)
        logger.error(
            "[fetch] provider returned error; method:%s;url:%s;status:%d;detail:%s",
            req.get_method(),
            req.full_url,
            exc.code,
            detail,
        )
        if exc.code == 404:
            raise NotFoundError(detail) from exc
        raise ProviderError(exc.code, detail) from exc
    except (OSError, HTTPException) as exc:
        logger.error("[fetch] network failure; url:%s;error:%s", req.full_url, exc)
        raise TransferError(f"Network error during request to {req.full_url}: {exc}") from exc


def send(req: urllib_request.Request) -> bytes:
    """Execute a request and return only the response body."""
    body, _ = fetch(req)
    return body


def _parse_json(body: bytes) -> dict[str, Any]:
    if not body:
        return {}
    try:
        parsed = json.loads(body)
    except ValueError as exc:
        raise ProviderError(200, "Failed to parse provider response") from exc
    if not isinstance(parsed, dict):
        raise ProviderError(200, "Unexpected provider response shape")
    return parsed


class DriveClient:
    """Authenticated client for the Drive REST API.

    Every call obtains its bearer token through ``SessionManager.ensure_token``
    and may therefore perform interactive auth.
    """

    def __init__(self, session: SessionManager, chunk_bytes: int = DEFAULT_CHUNK_BYTES) -> None:
        """Initialise the client.

        Args:
            session: SessionManager that owns the credential.
            chunk_bytes: Size of the body slices streamed during uploads.
        """
        self._session = session
        self._chunk_bytes = chunk_bytes

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        token = self._session.ensure_token().access_token
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _url(path: str, params: dict[str, str] | None = None, base: str = DRIVE_API_URL) -> str:
        url = f"{base}{path}"
        if params:
            url = f"{url}?{urllib_parse.urlencode(params)}"
        return url

    def get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """Perform an authenticated GET and return the parsed JSON body.

        Args:
            path: URL path relative to DRIVE_API_URL (must start with '/').
            params: Optional query parameters.
        """
        req = urllib_request.Request(self._url(path, params), headers=self._headers(), method="GET")
        return _parse_json(send(req))

    def post(
        self,
        path: str,
        body: dict[str, Any],
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Perform an authenticated POST with a JSON body."""
        req = urllib_request.Request(
            self._url(path, params),
            data=json.dumps(body).encode("utf-8"),
            headers=self._headers({"Content-Type": "application/json"}),
            method="POST",
        )
        return _parse_json(send(req))

    def delete(self, path: str) -> None:
        """Perform an authenticated DELETE."""
        req = urllib_request.Request(self._url(path), headers=self._headers(), method="DELETE")
        send(req)

    def upload_multipart(
        self,
        metadata: dict[str, Any],
        content: bytes,
        mime_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """Create a file with metadata and content in one multipart request.

        The body is streamed in ``chunk_bytes`` slices; ``on_progress`` gets
        the integer percentage handed to the transport after each slice.

        Args:
            metadata: Drive file metadata (name, mimeType, parents).
            content: Raw file bytes.
            mime_type: MIME type of the content part.
            on_progress: Optional callback receiving values in [0, 100].

        Returns:
            Drive file resource with FILE_FIELDS populated.
        """
        boundary = f"vault-{uuid.uuid4().hex}"
        head = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {mime_type}\r\n\r\n"
        ).encode("utf-8")
        tail = f"\r\n--{boundary}--\r\n".encode("ascii")
        body = head + content + tail

        url = self._url(
            "/files",
            {"uploadType": "multipart", "fields": FILE_FIELDS},
            base=DRIVE_UPLOAD_URL,
        )
        req = urllib_request.Request(
            url,
            data=self._stream(body, on_progress),
            headers=self._headers(
                {
                    "Content-Type": f"multipart/related; boundary={boundary}",
                    "Content-Length": str(len(body)),
                }
            ),
            method="POST",
        )
        logger.info(
            "[upload_multipart] sending upload; name:%s;bytes:%d",
            metadata.get("name"),
            len(content),
        )
        return _parse_json(send(req))

    def _stream(self, body: bytes, on_progress: ProgressCallback | None) -> Iterator[bytes]:
        total = len(body)
        sent = 0
        last = -1
        for start in range(0, total, self._chunk_bytes):
            piece = body[start : start + self._chunk_bytes]
            yield piece
            sent += len(piece)
            percent = min(100, sent * 100 // total)
            if on_progress is not None and percent > last:
                last = percent
                on_progress(percent)


def drive_client_from_config(session: SessionManager, config: AppConfig) -> DriveClient:
    """Construct a DriveClient from application configuration.

    Args:
        session: SessionManager that owns the credential.
        config: Application configuration instance.

    Returns:
        Configured DriveClient instance.
    """
    return DriveClient(session=session, chunk_bytes=config.upload_chunk_bytes)
