"""
Automatic signature generation.

Draws a 500x120 transparent signature card with Pillow:
- left column: the signer's name (bold, brand green, up to two lines)
- vertical divider
- right column: "Digitally signed by:", name, timestamp with UTC offset
"""
import logging
import re
from datetime import datetime
from typing import List, Optional

from PIL import Image, ImageDraw

from signdesk.core.types import SignatureAsset, SignatureKind
from signdesk.render.placeholder import BRAND_COLOR, TEXT_COLOR, load_font
from signdesk.signatures.decode import encode_png_data_url
from signdesk.utils.datetime_utils import format_signature_timestamp, utc_now
from signdesk.utils.logging import mask_email
from signdesk.utils.security import generate_id

logger = logging.getLogger(__name__)

CARD_WIDTH = 500
CARD_HEIGHT = 120
LEFT_WIDTH = 250
NAME_LINE_HEIGHT = 26
DETAIL_LINE_HEIGHT = 22


def split_name(full_name: str) -> List[str]:
    """
    Split a name over the left column.

    4 words -> 2 + 2, 3 words -> 2 + 1, 2 words -> 1 + 1, anything else on one line.
    """
    words = full_name.split()
    if len(words) == 4:
        return [f"{words[0]} {words[1]}", f"{words[2]} {words[3]}"]
    if len(words) == 3:
        return [f"{words[0]} {words[1]}", words[2]]
    if len(words) == 2:
        return [words[0], words[1]]
    return [full_name.strip()]


def signature_file_name(owner_name: str) -> str:
    stem = re.sub(r"\s+", "_", owner_name.strip())
    return f"auto_signature_{stem}.png"


class SignatureGenerator:
    """Generates name + date signature cards."""

    def render(self, owner_name: str, now: Optional[datetime] = None) -> Image.Image:
        now = now or utc_now()
        image = Image.new("RGBA", (CARD_WIDTH, CARD_HEIGHT), (0, 0, 0, 0))
        draw = ImageDraw.Draw(image)

        name_lines = split_name(owner_name)
        name_font = load_font(22, bold=True)
        y = (CARD_HEIGHT - len(name_lines) * NAME_LINE_HEIGHT) / 2
        for line in name_lines:
            draw.text((15, y), line, font=name_font, fill=BRAND_COLOR)
            y += NAME_LINE_HEIGHT

        divider_x = LEFT_WIDTH + 5
        draw.line([(divider_x, 15), (divider_x, CARD_HEIGHT - 15)], fill=BRAND_COLOR, width=1)

        x = LEFT_WIDTH + 15
        details = [
            ("Digitally signed by:", load_font(14, bold=True), TEXT_COLOR),
            (owner_name.strip(), load_font(16, bold=True), BRAND_COLOR),
            (f"Date: {format_signature_timestamp(now)}", load_font(14), TEXT_COLOR),
        ]
        y = 25
        for text, font, color in details:
            draw.text((x, y), text, font=font, fill=color)
            y += DETAIL_LINE_HEIGHT

        return image

    def create(
        self,
        owner_name: str,
        owner_email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SignatureAsset:
        """
        Create an automatic signature asset for a user.

        Raises:
            ValueError: If the owner name is blank
        """
        if not owner_name or not owner_name.strip():
            raise ValueError("Owner name is required for an automatic signature")

        now = now or utc_now()
        image = self.render(owner_name, now)
        asset = SignatureAsset(
            id=generate_id("sig"),
            image_data=encode_png_data_url(image),
            owner_name=owner_name.strip(),
            owner_email=owner_email,
            kind=SignatureKind.AUTO,
            created_at=now,
            file_name=signature_file_name(owner_name),
        )
        logger.info(f"Automatic signature {asset.id} generated for {mask_email(owner_email)}")
        return asset


_generator: Optional[SignatureGenerator] = None


def get_signature_generator() -> SignatureGenerator:
    """Get signature generator singleton."""
    global _generator
    if _generator is None:
        _generator = SignatureGenerator()
    return _generator
