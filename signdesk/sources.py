"""
Document source resolution.

The upload collaborator hands over an opaque byte source. It may be:
- raw bytes
- a data URL (data:application/pdf;base64,...) or a bare base64 string
- an http(s) URL (fetched with httpx)
- a path to a local file
"""
import base64
import binascii
import logging
import os
import re
from typing import Optional

import httpx

from signdesk.core.types import MimeCategory

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?:;[^;,]+)*;base64,", re.IGNORECASE)

EXTENSION_CATEGORIES = {
    "pdf": MimeCategory.PDF,
    "png": MimeCategory.IMAGE,
    "jpg": MimeCategory.IMAGE,
    "jpeg": MimeCategory.IMAGE,
    "gif": MimeCategory.IMAGE,
    "webp": MimeCategory.IMAGE,
    "bmp": MimeCategory.IMAGE,
    "tif": MimeCategory.IMAGE,
    "tiff": MimeCategory.IMAGE,
}


class SourceResolutionError(Exception):
    """Document byte source could not be resolved."""
    pass


def classify_mime(mime_type: Optional[str], name: str = "") -> MimeCategory:
    """
    Map a MIME type to the document kind.

    image/* -> image, application/pdf -> pdf, everything else -> generic.
    Falls back to the file extension when no MIME type was supplied.
    """
    mime = (mime_type or "").lower().strip()
    if mime.startswith("image/"):
        return MimeCategory.IMAGE
    if mime == "application/pdf":
        return MimeCategory.PDF
    if not mime and "." in name:
        extension = name.rsplit(".", 1)[-1].lower()
        return EXTENSION_CATEGORIES.get(extension, MimeCategory.GENERIC)
    return MimeCategory.GENERIC


def format_file_size(size: Optional[int]) -> str:
    """Human readable size: 0 Bytes, 512 Bytes, 1.5 KB, 2.25 MB"""
    if not size:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def decode_base64_payload(value: str) -> bytes:
    """
    Decode a data URL or bare base64 string.

    Raises:
        SourceResolutionError: If the payload is not valid base64
    """
    payload = DATA_URL_RE.sub("", value.strip(), count=1)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SourceResolutionError(f"Invalid base64 payload: {e}")


def resolve_source_bytes(
    byte_source: object,
    timeout: float = 15.0,
    max_bytes: Optional[int] = None,
) -> bytes:
    """
    Resolve an opaque byte source to the document's bytes.

    Raises:
        SourceResolutionError: If the source cannot be read
    """
    if isinstance(byte_source, (bytes, bytearray, memoryview)):
        data = bytes(byte_source)
    elif isinstance(byte_source, str):
        value = byte_source.strip()
        if value.lower().startswith(("http://", "https://")):
            data = _fetch_url(value, timeout)
        elif value.lower().startswith("data:"):
            data = decode_base64_payload(value)
        elif os.path.isfile(value):
            with open(value, "rb") as f:
                data = f.read()
        else:
            data = decode_base64_payload(value)
    else:
        raise SourceResolutionError(f"Unsupported byte source type: {type(byte_source).__name__}")

    if not data:
        raise SourceResolutionError("Document source is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise SourceResolutionError(
            f"Document is too large ({format_file_size(len(data))}, limit {format_file_size(max_bytes)})"
        )
    return data


def _fetch_url(url: str, timeout: float) -> bytes:
    logger.info(f"Fetching document source from {url.split('?', 1)[0]}")
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise SourceResolutionError(f"Document URL returned HTTP {e.response.status_code}")
    except httpx.HTTPError as e:
        raise SourceResolutionError(f"Could not fetch document URL: {e}")
    return response.content
