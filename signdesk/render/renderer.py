"""
Renderer: document descriptor -> raster in canonical document space (CDS).

The CDS is computed once per document with a single uniform fit factor and
never changes with zoom. Decode failures do not propagate: the caller gets a
valid RenderedDocument holding a diagnostic placeholder raster and the
RenderError that caused it.
"""
import logging
from typing import Dict, Optional

from signdesk.config import Settings, get_settings
from signdesk.core.geometry import Size, fit_scale, scaled_size
from signdesk.core.types import DocumentDescriptor, DocumentSource, MimeCategory, RenderedDocument
from signdesk.render.kinds import DecodeError, DocumentKind, RenderError, build_kinds
from signdesk.render.placeholder import draw_diagnostic
from signdesk.sources import classify_mime

logger = logging.getLogger(__name__)


class Renderer:
    """Measures and rasterizes documents."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.container = Size(settings.container_width, settings.container_height)
        self.max_multiplier = settings.max_scale_multiplier
        self.min_dimension = settings.min_cds_dimension
        self.generic_size = Size(settings.generic_page_width, settings.generic_page_height)
        self.kinds: Dict[MimeCategory, DocumentKind] = build_kinds(self.generic_size)

    def kind_for(self, category: MimeCategory) -> DocumentKind:
        return self.kinds[category]

    def describe(self, source: DocumentSource, data: bytes) -> DocumentDescriptor:
        """
        Classify and measure a document.

        A source that cannot be measured gets the generic page size and keeps
        the decode failure on the descriptor.
        """
        category = classify_mime(source.mime_type, source.name)
        decode_error = None
        try:
            native = self.kind_for(category).measure(data)
        except RenderError as e:
            logger.warning(f"Could not measure document {source.id} ({category.value}): {e}")
            native = self.generic_size
            decode_error = str(e)

        if native.width <= 0 or native.height <= 0:
            decode_error = f"Document has no visible area ({native.width}x{native.height})"
            native = self.generic_size

        return DocumentDescriptor(
            id=source.id,
            name=source.name,
            mime_category=category,
            mime_type=source.mime_type,
            source_handle=data,
            native_width=native.width,
            native_height=native.height,
            size=source.size if source.size is not None else len(data),
            uploaded_by_name=source.uploaded_by_name,
            upload_date=source.upload_date,
            decode_error=decode_error,
        )

    def fit(self, descriptor: DocumentDescriptor) -> float:
        return fit_scale(descriptor.native_size, self.container, self.max_multiplier, self.min_dimension)

    def render(self, descriptor: DocumentDescriptor) -> RenderedDocument:
        """Render the document into its CDS raster."""
        scale = self.fit(descriptor)
        width, height = scaled_size(descriptor.native_size, scale)

        try:
            if descriptor.decode_error:
                raise DecodeError(descriptor.decode_error)
            raster = self.kind_for(descriptor.mime_category).render(descriptor, scale)
        except RenderError as e:
            logger.warning(f"Rendering {descriptor.id} failed, showing placeholder: {e}")
            raster = draw_diagnostic((width, height), descriptor.name, str(e))
            return RenderedDocument(width, height, raster, scale, error=e)

        logger.info(
            f"Rendered {descriptor.mime_category.value} document {descriptor.id}: "
            f"native {descriptor.native_width:.0f}x{descriptor.native_height:.0f}, "
            f"CDS {width}x{height} (scale {scale:.4f})"
        )
        return RenderedDocument(width, height, raster, scale)


_renderer: Optional[Renderer] = None


def get_renderer() -> Renderer:
    """Get renderer singleton."""
    global _renderer
    if _renderer is None:
        _renderer = Renderer()
    return _renderer
