"""Static MIME type table.

:class:`MimeType` names the handful of media types the service itself emits
or matches on. :data:`EXTENSION_MIME_TYPES` maps lower-case file extensions
to media types and backs :func:`content_type_for_extension`, which multipart
encoding uses to label file attachments.
"""

from __future__ import annotations

import enum
from typing import Mapping, Optional


class MimeType(str, enum.Enum):
    """Media types with special meaning to the service."""

    JSON = "application/json"
    BINARY = "application/octet-stream"
    TEXT = "text/plain"
    FORM_URLENCODED = "application/x-www-form-urlencoded"
    MULTIPART_FORM = "multipart/form-data"
    MULTIPART_MIXED = "multipart/mixed"


EXTENSION_MIME_TYPES: dict[str, str] = {
    "aac": "audio/aac",
    "abw": "application/x-abiword",
    "avi": "video/x-msvideo",
    "azw": "application/vnd.amazon.ebook",
    "bin": "application/octet-stream",
    "bz": "application/x-bzip",
    "bz2": "application/x-bzip2",
    "csh": "application/x-csh",
    "css": "text/css",
    "csv": "text/csv",
    "doc": "application/msword",
    "eot": "application/vnd.ms-fontobject",
    "epub": "application/epub+zip",
    "gif": "image/gif",
    "htm": "text/html",
    "html": "text/html",
    "ico": "image/x-icon",
    "ics": "text/calendar",
    "jar": "application/java-archive",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "js": "application/javascript",
    "json": "application/json",
    "mid": "audio/midi",
    "midi": "audio/midi",
    "mpeg": "video/mpeg",
    "mpkg": "application/vnd.apple.installer+xml",
    "odp": "application/vnd.oasis.opendocument.presentation",
    "ods": "application/vnd.oasis.opendocument.spreadsheet",
    "odt": "application/vnd.oasis.opendocument.text",
    "oga": "audio/ogg",
    "ogv": "video/ogg",
    "ogx": "application/ogg",
    "otf": "font/otf",
    "pdf": "application/pdf",
    "png": "image/png",
    "ppt": "application/vnd.ms-powerpoint",
    "rar": "application/x-rar-compressed",
    "rtf": "application/rtf",
    "sh": "application/x-sh",
    "svg": "image/svg+xml",
    "swf": "application/x-shockwave-flash",
    "tar": "application/x-tar",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "ts": "application/typescript",
    "ttf": "font/ttf",
    "txt": "text/plain",
    "vsd": "application/vnd.visio",
    "wav": "audio/x-wav",
    "weba": "audio/webm",
    "webm": "video/webm",
    "webp": "image/webp",
    "woff": "font/woff",
    "woff2": "font/woff2",
    "xhtml": "application/xhtml+xml",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xml": "application/xml",
    "xul": "application/vnd.mozilla.xul+xml",
    "zip": "application/zip",
}


def content_type_for_extension(
    extension: str,
    overrides: Optional[Mapping[str, str]] = None,
) -> str:
    """Resolve the media type for a file extension.

    Resolution order: *overrides* (caller-supplied table), then
    :data:`EXTENSION_MIME_TYPES`, then ``application/<ext>``. An empty
    extension resolves to ``application/octet-stream``.

    Args:
        extension: File extension with or without the leading dot.
        overrides: Optional extension-to-type table consulted first.

    Returns:
        The media type string.
    """
    ext = extension.lstrip(".")
    if not ext:
        return MimeType.BINARY.value
    if overrides and ext in overrides:
        return overrides[ext]
    lowered = ext.lower()
    if overrides and lowered in overrides:
        return overrides[lowered]
    if lowered in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[lowered]
    return f"application/{ext}"


def parse_mime_type(content_type: Optional[str]) -> str:
    """Strip parameters from a ``Content-Type`` value (``"a/b; charset=x"`` -> ``"a/b"``)."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()
