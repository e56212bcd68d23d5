"""
Synthetic rasters drawn with Pillow.

- Information card for generic (office/archive/text) documents. The file is
  never parsed; the card only shows its metadata.
- Diagnostic card for documents whose source could not be decoded.

Layout is designed on an 800x1000 page and scaled uniformly to the target size.
"""
import logging
import os
import textwrap
from functools import lru_cache
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from signdesk.core.types import DocumentDescriptor
from signdesk.sources import format_file_size

logger = logging.getLogger(__name__)

BASE_WIDTH = 800

# Fonts with full Latin-1/Latin Extended coverage (accents in names)
FONT_PATHS = {
    "regular": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    ],
    "bold": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    ],
}

BRAND_COLOR = (47, 108, 70)      # #2f6c46
TEXT_COLOR = (51, 51, 51)        # #333333
BORDER_COLOR = (225, 229, 233)   # #e1e5e9
ERROR_COLOR = (192, 57, 43)
ERROR_BG = (250, 242, 241)


def find_font(style: str = "regular") -> Optional[str]:
    """Find a TrueType font file on the system."""
    for path in FONT_PATHS.get(style, FONT_PATHS["regular"]):
        if os.path.exists(path):
            return path
    return None


@lru_cache(maxsize=64)
def load_font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    """TrueType font of `size` px, falling back to Pillow's bundled font."""
    size = max(1, int(size))
    path = find_font("bold" if bold else "regular")
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError as e:
            logger.warning(f"Font {path} failed: {e}")
    return ImageFont.load_default(size=size)


def _unit(size: Tuple[int, int]) -> float:
    return size[0] / BASE_WIDTH


def info_card_lines(descriptor: DocumentDescriptor) -> List[str]:
    uploaded = descriptor.upload_date.strftime("%d/%m/%Y")
    return [
        "DOCUMENT PREVIEW",
        "",
        "This file type cannot be displayed inline.",
        "Signatures are placed on this preview page.",
        "",
        f"Name: {descriptor.name}",
        f"Type: {descriptor.mime_type or 'unknown'}",
        f"Size: {format_file_size(descriptor.size)}",
        f"Uploaded by: {descriptor.uploaded_by_name or 'unknown'}",
        f"Date: {uploaded}",
        "",
        "Use the side panel to add signatures to the document.",
    ]


def draw_info_card(descriptor: DocumentDescriptor, size: Tuple[int, int]) -> Image.Image:
    """Informational card for a document that is not rendered from its content."""
    width, height = size
    unit = _unit(size)
    image = Image.new("RGB", size, "white")
    draw = ImageDraw.Draw(image)

    inset = 20 * unit
    draw.rectangle(
        [inset, inset, width - inset, height - inset],
        outline=BORDER_COLOR,
        width=max(1, round(2 * unit)),
    )

    title_font = load_font(round(28 * unit), bold=True)
    draw.text((width / 2, 80 * unit), descriptor.name, font=title_font, fill=BRAND_COLOR, anchor="ms")

    body_font = load_font(round(16 * unit))
    y = 150 * unit
    for line in info_card_lines(descriptor):
        draw.text((60 * unit, y), line, font=body_font, fill=TEXT_COLOR, anchor="ls")
        y += 30 * unit

    return image


def draw_diagnostic(size: Tuple[int, int], name: str, reason: str) -> Image.Image:
    """Placeholder raster shown when the document source cannot be decoded."""
    width, height = size
    unit = _unit(size)
    image = Image.new("RGB", size, ERROR_BG)
    draw = ImageDraw.Draw(image)

    inset = 20 * unit
    draw.rectangle(
        [inset, inset, width - inset, height - inset],
        outline=ERROR_COLOR,
        width=max(1, round(2 * unit)),
    )

    title_font = load_font(round(26 * unit), bold=True)
    draw.text(
        (width / 2, 100 * unit),
        "Document could not be rendered",
        font=title_font,
        fill=ERROR_COLOR,
        anchor="ms",
    )

    body_font = load_font(round(16 * unit))
    y = 170 * unit
    lines = [f"File: {name}", ""] + textwrap.wrap(reason, width=70)[:12]
    for line in lines:
        draw.text((60 * unit, y), line, font=body_font, fill=TEXT_COLOR, anchor="ls")
        y += 28 * unit

    return image
