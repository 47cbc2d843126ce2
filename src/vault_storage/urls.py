"""Stable, credential-free URLs for Drive files and legacy reference predicates.

Every function here is a pure string transformation so it can run before
sign-in and over cached rows. Normalization fails open: input it cannot
interpret comes back unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from urllib.parse import parse_qs, urlparse

DRIVE_HOST = "drive.google.com"
GOOGLE_CONTENT_HOST = "googleusercontent.com"
LEGACY_PUBLIC_MARKER = "supabase.co/storage/v1/object/public/"

THUMBNAIL_SIZE = "w400"
HIGH_RES_SIZE = "s1000"

_ID = r"[A-Za-z0-9_-]+"
_STABLE_FORMS = (
    re.compile(rf"https://drive\.google\.com/uc\?id={_ID}&export=view"),
    re.compile(rf"https://drive\.google\.com/thumbnail\?id={_ID}&sz={THUMBNAIL_SIZE}"),
    re.compile(rf"https://drive\.google\.com/thumbnail\?id={_ID}&sz={HIGH_RES_SIZE}"),
)
_PATH_ID = re.compile(rf"/d/({_ID})")
_LEGACY_PATH = re.compile(r"/storage/v1/object/public/([^/]+)/(.+)")

# Row ``type`` values whose main URL renders inline.
_INLINE_TYPES = frozenset({"sticker", "image", "cover"})


class UrlForm(StrEnum):
    DIRECT = "direct"
    THUMBNAIL = "thumbnail"
    HIGH_RES = "high_res"


@dataclass(frozen=True)
class LegacyLocation:
    """Bucket and object path parsed from a legacy public URL."""

    bucket: str
    path: str


def direct_content_url(file_id: str) -> str:
    """URL suitable for inline rendering, e.g. an ``<img>`` source."""
    return f"https://{DRIVE_HOST}/uc?id={file_id}&export=view"


def thumbnail_url(file_id: str) -> str:
    """Bounded raster for list and grid views. Works for images and PDFs."""
    return f"https://{DRIVE_HOST}/thumbnail?id={file_id}&sz={THUMBNAIL_SIZE}"


def high_res_thumbnail_url(file_id: str) -> str:
    """Large raster for cover previews and full-screen display."""
    return f"https://{DRIVE_HOST}/thumbnail?id={file_id}&sz={HIGH_RES_SIZE}"


def embed_url(file_id: str) -> str:
    return f"https://{DRIVE_HOST}/file/d/{file_id}/preview"


def view_url(file_id: str) -> str:
    return f"https://{DRIVE_HOST}/file/d/{file_id}/view"


_BUILDERS = {
    UrlForm.DIRECT: direct_content_url,
    UrlForm.THUMBNAIL: thumbnail_url,
    UrlForm.HIGH_RES: high_res_thumbnail_url,
}


def url_for(file_id: str, form: UrlForm) -> str:
    return _BUILDERS[form](file_id)


def is_drive_url(url: str) -> bool:
    return DRIVE_HOST in url or GOOGLE_CONTENT_HOST in url


def is_stable_url(url: str) -> bool:
    """True if ``url`` is already one of the synthesized stable forms."""
    return any(pattern.fullmatch(url) for pattern in _STABLE_FORMS)


def extract_file_id(url: str) -> str | None:
    """Pull a Drive file id out of a query-parameter or path-segment link.

    Recognizes ``...?id=<id>`` / ``...&id=<id>`` and ``.../d/<id>/...``.

    Returns:
        The file id, or None if the URL is not a Drive link with an id.
    """
    if DRIVE_HOST not in url:
        return None
    try:
        ids = parse_qs(urlparse(url).query).get("id", [])
    except ValueError:
        ids = []
    if ids and re.fullmatch(_ID, ids[0]):
        return ids[0]
    match = _PATH_ID.search(url)
    if match:
        return match.group(1)
    return None


def normalize_url(url: str, form: UrlForm = UrlForm.THUMBNAIL) -> str:
    """Rewrite a Drive link into a stable, redirect-free form.

    Already-stable URLs and googleusercontent links pass through untouched,
    so normalizing twice is a no-op. Drive links with an extractable id are
    rebuilt in ``form``. Anything else is returned unchanged.
    """
    if not url or GOOGLE_CONTENT_HOST in url or is_stable_url(url):
        return url
    file_id = extract_file_id(url)
    if file_id is None:
        return url
    return url_for(file_id, form)


def content_url_for(file_id: str, mime_type: str | None, web_view_link: str | None = None) -> str:
    """Main descriptor URL: inline proxy for images, viewer link otherwise."""
    if mime_type and mime_type.startswith("image/"):
        return direct_content_url(file_id)
    return web_view_link or view_url(file_id)


def is_legacy_url(url: str | None) -> bool:
    """True if ``url`` addresses an object on the legacy storage backend."""
    return url is not None and LEGACY_PUBLIC_MARKER in url


def parse_legacy_url(url: str) -> LegacyLocation | None:
    match = _LEGACY_PATH.search(url)
    if not match:
        return None
    return LegacyLocation(bucket=match.group(1), path=match.group(2))


def repair_asset(record: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a stored asset row with its Drive URLs made stable.

    When the row carries an ``external_id`` and comes from Drive, the
    thumbnail is rebuilt from the id, and so is the main URL for inline
    types. ``cover_url`` is treated as an inline image. Entries of an
    ``attachments`` list are normalized one by one.
    """
    file_id = record.get("external_id")
    row_type = record.get("type")

    def fix(url: str | None, thumbnail: bool, inline_type: str | None) -> str | None:
        from_drive = record.get("source") == "google_drive" or (url and DRIVE_HOST in url)
        if file_id and from_drive:
            if thumbnail:
                return thumbnail_url(file_id)
            if inline_type in _INLINE_TYPES or row_type in _INLINE_TYPES:
                return direct_content_url(file_id)
        return url

    result = dict(record)
    result["url"] = fix(record.get("url"), False, row_type)
    result["thumbnail_url"] = fix(record.get("thumbnail_url"), True, row_type)
    if "cover_url" in record:
        result["cover_url"] = fix(record.get("cover_url"), False, "cover")
    if isinstance(record.get("attachments"), list):
        result["attachments"] = [normalize_url(u) for u in record["attachments"]]
    return result
