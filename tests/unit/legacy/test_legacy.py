"""Unit tests for legacy.py: unauthenticated downloads from the legacy backend."""

from email.message import Message
from io import BytesIO
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import pytest

from vault_storage.errors import NotFoundError, ProviderError, TransferError
from vault_storage.legacy import LegacyObject, LegacyStorageClient

LEGACY_URL = "https://abc.supabase.co/storage/v1/object/public/assets/u1/photo.png"


def _mock_response(body: bytes, headers: dict[str, str]) -> MagicMock:
    mock_response = MagicMock()
    mock_response.read.return_value = body
    message = Message()
    for name, value in headers.items():
        message[name] = value
    mock_response.headers = message
    mock_response.__enter__ = lambda s: s
    mock_response.__exit__ = MagicMock(return_value=False)
    return mock_response


def _http_error(code: int) -> HTTPError:
    return HTTPError(
        url=LEGACY_URL,
        code=code,
        msg="error",
        hdrs=MagicMock(),  # type: ignore[arg-type]
        fp=BytesIO(b'{"error": "not_found", "message": "Object not found"}'),
    )


class TestLegacyDownload:
    def test_returns_body_and_content_type(self) -> None:
        with patch("vault_storage.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _mock_response(b"PNG", {"Content-Type": "image/png"})
            result = LegacyStorageClient().download(LEGACY_URL)

        assert result == LegacyObject(content=b"PNG", mime_type="image/png")
        req = mock_urlopen.call_args[0][0]
        assert req.full_url == LEGACY_URL
        assert req.get_method() == "GET"
        assert req.get_header("Authorization") is None

    def test_defaults_mime_type_when_header_missing(self) -> None:
        with patch("vault_storage.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _mock_response(b"data", {})
            result = LegacyStorageClient().download(LEGACY_URL)

        assert result.mime_type == "application/octet-stream"

    def test_drops_content_type_parameters(self) -> None:
        with patch("vault_storage.drive.client.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _mock_response(
                b"<svg/>", {"Content-Type": "image/svg+xml; charset=utf-8"}
            )
            result = LegacyStorageClient().download(LEGACY_URL)

        assert result.mime_type == "image/svg+xml"

    def test_missing_object_raises_not_found(self) -> None:
        with (
            patch(
                "vault_storage.drive.client.urllib_request.urlopen",
                side_effect=_http_error(404),
            ),
            pytest.raises(NotFoundError),
        ):
            LegacyStorageClient().download(LEGACY_URL)

    def test_server_error_raises_provider_error(self) -> None:
        with (
            patch(
                "vault_storage.drive.client.urllib_request.urlopen",
                side_effect=_http_error(502),
            ),
            pytest.raises(ProviderError) as exc_info,
        ):
            LegacyStorageClient().download(LEGACY_URL)

        assert exc_info.value.status_code == 502

    def test_network_failure_raises_transfer_error(self) -> None:
        with (
            patch(
                "vault_storage.drive.client.urllib_request.urlopen",
                side_effect=URLError("timed out"),
            ),
            pytest.raises(TransferError),
        ):
            LegacyStorageClient().download(LEGACY_URL)
