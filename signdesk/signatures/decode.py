"""
Signature image decoding.

Signature assets carry their image as base64, optionally wrapped in a
data URL (data:image/png;base64,...). Only raster formats are accepted.
"""
import base64
import binascii
import io
import logging
import re

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX_RE = re.compile(r"^data:(?P<mime>[\w/+.-]*)(?:;[^;,]+)*;base64,", re.IGNORECASE)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"

ACCEPTED_SIGNATURE_TYPES = {"image/png", "image/jpeg", "image/jpg"}


class SignatureDecodeError(Exception):
    """Signature image data could not be decoded."""
    pass


def signature_bytes(image_data: str) -> bytes:
    """
    Decode base64 signature data to PNG/JPEG bytes.

    Raises:
        SignatureDecodeError: If the payload is not base64 or not PNG/JPEG
    """
    if not image_data:
        raise SignatureDecodeError("Signature image is empty")

    value = image_data.strip()
    match = DATA_URL_PREFIX_RE.match(value)
    if match:
        mime = match.group("mime").lower()
        if mime and mime not in ACCEPTED_SIGNATURE_TYPES:
            raise SignatureDecodeError(f"Unsupported signature type: {mime}")
        value = value[match.end():]

    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SignatureDecodeError(f"Failed to decode signature: {e}")

    if not (data.startswith(PNG_MAGIC) or data.startswith(JPEG_MAGIC)):
        raise SignatureDecodeError("Signature must be a PNG or JPEG image")

    return data


def decode_signature_image(image_data: str) -> Image.Image:
    """
    Decode a signature asset's image into an RGBA Pillow image.

    Raises:
        SignatureDecodeError: If the data cannot be decoded
    """
    data = signature_bytes(image_data)
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise SignatureDecodeError(f"Failed to decode signature: {e}")

    if image.width < 1 or image.height < 1:
        raise SignatureDecodeError("Signature image has no pixels")

    return image.convert("RGBA")


def encode_png_data_url(image: Image.Image) -> str:
    """Encode a Pillow image as a PNG data URL."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
