"""
Document kinds: image, PDF (first page) and generic files.

Each kind knows how to
- measure its native size,
- rasterize itself at an arbitrary uniform scale (CDS display and export
  working resolution use the same code path),
- package a composited working raster as the exported artifact.

PyMuPDF renders PDFs, Pillow decodes images, reportlab writes the exported
single-page PDF.
"""
import io
import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import fitz  # PyMuPDF
from PIL import Image, ImageOps, UnidentifiedImageError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from signdesk.core.geometry import Size, scaled_size
from signdesk.core.types import DocumentDescriptor, MimeCategory
from signdesk.render.placeholder import draw_info_card

logger = logging.getLogger(__name__)

PNG_MIME = "image/png"
PDF_MIME = "application/pdf"


class RenderError(Exception):
    """Document could not be rasterized."""
    pass


class DecodeError(RenderError):
    """Document bytes are not a readable image/PDF."""
    pass


@dataclass(frozen=True)
class PackagedArtifact:
    content: bytes
    mime_type: str
    extension: str


def flatten_to_rgb(image: Image.Image) -> Image.Image:
    """Drop alpha/palette by compositing onto a white background."""
    if image.mode in ("RGBA", "LA", "P"):
        image = image.convert("RGBA")
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _fit_exact(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    if image.size == size:
        return image
    return image.resize(size, Image.LANCZOS)


class DocumentKind:
    """Common capability of every document kind."""

    category: MimeCategory

    def measure(self, data: bytes) -> Size:
        raise NotImplementedError

    def render(self, descriptor: DocumentDescriptor, scale: float) -> Image.Image:
        """RGB raster of `native * scale` pixels (rounded)."""
        raise NotImplementedError

    def render_working(
        self,
        descriptor: DocumentDescriptor,
        scale: float,
        max_dimension: int,
    ) -> Image.Image:
        """Export raster at `scale`, uniformly reduced if its longest side exceeds max_dimension."""
        longest = descriptor.native_size.longest * scale
        if longest > max_dimension:
            logger.info(
                f"Working raster for {descriptor.id} capped at {max_dimension}px "
                f"(requested {longest:.0f}px)"
            )
            scale = scale * max_dimension / longest
        return self.render(descriptor, scale)

    def package(self, raster: Image.Image, descriptor: DocumentDescriptor) -> PackagedArtifact:
        return PackagedArtifact(encode_png(raster), PNG_MIME, "png")


class ImageKind(DocumentKind):
    category = MimeCategory.IMAGE

    def _open(self, data: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise DecodeError(f"Image could not be decoded: {e}")
        # Respect camera orientation so native size matches what users see
        return ImageOps.exif_transpose(image)

    def measure(self, data: bytes) -> Size:
        image = self._open(data)
        return Size(image.width, image.height)

    def render(self, descriptor: DocumentDescriptor, scale: float) -> Image.Image:
        image = flatten_to_rgb(self._open(descriptor.source_handle))
        return _fit_exact(image, scaled_size(descriptor.native_size, scale))


class PdfKind(DocumentKind):
    """First page only; later pages are ignored."""
    category = MimeCategory.PDF

    def _open(self, data: bytes) -> "fitz.Document":
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (fitz.FileDataError, RuntimeError, ValueError) as e:
            raise DecodeError(f"Invalid PDF file: {e}")
        if doc.page_count == 0:
            doc.close()
            raise DecodeError("PDF has no pages")
        return doc

    def measure(self, data: bytes) -> Size:
        doc = self._open(data)
        try:
            rect = doc[0].rect
            return Size(rect.width, rect.height)
        finally:
            doc.close()

    def render(self, descriptor: DocumentDescriptor, scale: float) -> Image.Image:
        doc = self._open(descriptor.source_handle)
        try:
            pix = doc[0].get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        except RuntimeError as e:
            raise RenderError(f"PDF page could not be rendered: {e}")
        finally:
            doc.close()
        # Pixmap bounds are rounded outward; snap to the exact raster size
        return _fit_exact(image, scaled_size(descriptor.native_size, scale))

    def package(self, raster: Image.Image, descriptor: DocumentDescriptor) -> PackagedArtifact:
        """Single-page PDF sized like the original first page, raster drawn full-page."""
        page_width, page_height = descriptor.native_width, descriptor.native_height
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(page_width, page_height))
        c.setTitle(descriptor.name)
        c.drawImage(ImageReader(raster), 0, 0, width=page_width, height=page_height)
        c.showPage()
        c.save()
        return PackagedArtifact(buffer.getvalue(), PDF_MIME, "pdf")


class GenericKind(DocumentKind):
    """Files that are never parsed: shown as an information card."""
    category = MimeCategory.GENERIC

    def __init__(self, page_size: Size = Size(800, 1000)):
        self.page_size = page_size

    def measure(self, data: bytes) -> Size:
        return self.page_size

    def render(self, descriptor: DocumentDescriptor, scale: float) -> Image.Image:
        return draw_info_card(descriptor, scaled_size(descriptor.native_size, scale))


def build_kinds(generic_page_size: Size) -> Dict[MimeCategory, DocumentKind]:
    """Closed set of document kinds, keyed by MIME category."""
    return {
        MimeCategory.IMAGE: ImageKind(),
        MimeCategory.PDF: PdfKind(),
        MimeCategory.GENERIC: GenericKind(generic_page_size),
    }
