"""
Compositor: bakes signature placements into the document at working resolution.

The document is re-rendered at a working resolution chosen by
TargetResolutionPolicy, every placement is mapped from CDS through
working_scale = working_size / cds_size, and each signature image is
stretched to its mapped rectangle and alpha-composited in store order.
Zoom never enters this path.

Failure is atomic: all signature images are decoded and the working raster is
produced before anything is drawn, and nothing outside the fresh working
raster is touched.
"""
import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

from PIL import Image

from signdesk.config import Settings, get_settings
from signdesk.core.geometry import Size
from signdesk.core.types import (
    Artifact,
    DocumentDescriptor,
    ExportResult,
    MimeCategory,
    Placement,
    RenderedDocument,
    SignatureAsset,
)
from signdesk.core.viewport import to_working, working_scale
from signdesk.render.kinds import RenderError, flatten_to_rgb
from signdesk.render.renderer import Renderer, get_renderer
from signdesk.signatures.decode import SignatureDecodeError, decode_signature_image
from signdesk.utils.security import compute_bytes_hash, generate_id

logger = logging.getLogger(__name__)


class ExportError(Exception):
    """Export could not produce an artifact. The overlay store is left untouched."""

    def __init__(self, message: str, code: str = "EXPORT_FAILED"):
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class TargetResolutionPolicy:
    """Working resolution per document kind, relative to native size."""
    pdf_scale: float = 2.0
    generic_scale: float = 2.0
    image_scale: float = 1.0
    max_dimension: int = 10000

    @classmethod
    def from_settings(cls, settings: Settings) -> "TargetResolutionPolicy":
        return cls(
            pdf_scale=settings.pdf_working_scale,
            generic_scale=settings.generic_working_scale,
            image_scale=settings.image_working_scale,
            max_dimension=settings.max_working_dimension,
        )

    def scale_for(self, category: MimeCategory) -> float:
        if category == MimeCategory.PDF:
            return self.pdf_scale
        if category == MimeCategory.IMAGE:
            return self.image_scale
        return self.generic_scale


def suggested_name(document_name: str, extension: str) -> str:
    stem, _ = os.path.splitext(document_name)
    return f"SIGNED_{stem or 'document'}.{extension}"


class Compositor:
    """Combines a document and its placements into the exported artifact."""

    def __init__(self, renderer: Optional[Renderer] = None, settings: Optional[Settings] = None):
        self.renderer = renderer or get_renderer()
        self.default_policy = TargetResolutionPolicy.from_settings(settings or get_settings())

    def combine(
        self,
        descriptor: DocumentDescriptor,
        rendered: RenderedDocument,
        placements: Sequence[Placement],
        assets: Mapping[str, SignatureAsset],
        policy: Optional[TargetResolutionPolicy] = None,
    ) -> ExportResult:
        """
        Produce the signed artifact.

        Raises:
            ExportError: No placements, unknown or undecodable signature asset,
                or the document cannot be rendered at working resolution
        """
        policy = policy or self.default_policy
        placements = tuple(placements)

        if not placements:
            raise ExportError("There are no signatures to apply", code="NO_PLACEMENTS")

        if descriptor.decode_error or rendered.degraded:
            reason = descriptor.decode_error or str(rendered.error)
            raise ExportError(f"Document cannot be rendered: {reason}", code="RENDER_FAILED")

        signatures = self._decode_signatures(placements, assets)

        kind = self.renderer.kind_for(descriptor.mime_category)
        try:
            working = kind.render_working(
                descriptor,
                policy.scale_for(descriptor.mime_category),
                policy.max_dimension,
            )
        except RenderError as e:
            raise ExportError(f"Document cannot be rendered: {e}", code="RENDER_FAILED")

        scale = working_scale(Size(working.width, working.height), rendered.cds_size)
        logger.info(
            f"Compositing {len(placements)} signature(s) onto {descriptor.id}: "
            f"working {working.width}x{working.height}, scale ({scale.sx:.4f}, {scale.sy:.4f})"
        )

        canvas = working.convert("RGBA")
        for placement in placements:
            rect = to_working(placement.rect, scale)
            left = max(0, round(rect.x))
            top = max(0, round(rect.y))
            box = (max(1, round(rect.width)), max(1, round(rect.height)))
            signature = signatures[placement.signature_asset_ref].resize(box, Image.LANCZOS)
            canvas.alpha_composite(signature, dest=(left, top))

        raster = flatten_to_rgb(canvas)
        packaged = kind.package(raster, descriptor)

        artifact = Artifact(
            id=generate_id("art"),
            content=packaged.content,
            mime_type=packaged.mime_type,
            suggested_name=suggested_name(descriptor.name, packaged.extension),
            width=raster.width,
            height=raster.height,
            sha256=compute_bytes_hash(packaged.content),
        )
        logger.info(f"Artifact {artifact.id} created ({artifact.mime_type}, {artifact.size} bytes)")
        return ExportResult(artifact=artifact, placements=placements, working_scale=scale.as_tuple())

    def _decode_signatures(
        self,
        placements: Sequence[Placement],
        assets: Mapping[str, SignatureAsset],
    ) -> Dict[str, Image.Image]:
        decoded: Dict[str, Image.Image] = {}
        for placement in placements:
            ref = placement.signature_asset_ref
            if ref in decoded:
                continue
            asset = assets.get(ref)
            if asset is None:
                raise ExportError(
                    f"Placement {placement.id} references unknown signature {ref}",
                    code="UNKNOWN_ASSET",
                )
            try:
                decoded[ref] = decode_signature_image(asset.image_data)
            except SignatureDecodeError as e:
                raise ExportError(
                    f"Signature {ref} could not be decoded: {e}",
                    code="SIGNATURE_DECODE_FAILED",
                )
        return decoded


_compositor: Optional[Compositor] = None


def get_compositor() -> Compositor:
    """Get compositor singleton."""
    global _compositor
    if _compositor is None:
        _compositor = Compositor()
    return _compositor
