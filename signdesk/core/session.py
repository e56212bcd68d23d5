"""
Viewing session: everything that belongs to one open document.

A session owns the document descriptor, its CDS raster, the zoom factor, the
overlay store, the registered signature assets and the interaction
controller. Decoding, rendering and compositing run in worker threads
(asyncio.to_thread) so the event loop keeps serving other sessions.

While a document is loading the session rejects input. Exports run one at a
time and cannot be cancelled; the overlay store is only cleared after the
artifact was combined and persisted.
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from signdesk.config import Settings, get_settings
from signdesk.core.geometry import Point, Size
from signdesk.core.interaction import GestureState, InteractionController, InteractionLimits
from signdesk.core.overlay_store import OverlayStore
from signdesk.core.types import (
    DocumentDescriptor,
    DocumentSource,
    ExportResult,
    Placement,
    RenderedDocument,
    SignatureAsset,
)
from signdesk.core.viewport import (
    DEFAULT_ZOOM,
    SurfaceGeometry,
    clamp_zoom,
    client_to_screen,
    step_zoom,
    to_screen,
)
from signdesk.render.compositor import Compositor, ExportError, get_compositor
from signdesk.render.renderer import Renderer, get_renderer
from signdesk.signatures.decode import signature_bytes
from signdesk.signatures.generator import get_signature_generator
from signdesk.sources import resolve_source_bytes
from signdesk.storage import ArtifactStore, PersistenceError, SignedDocumentRecord, get_artifact_store
from signdesk.utils.datetime_utils import utc_now
from signdesk.utils.logging import fingerprint, mask_email

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"


class DocumentNotReadyError(Exception):
    """Input arrived while no document is ready."""

    def __init__(self, status: SessionStatus):
        self.status = status
        super().__init__(f"No document ready (status: {status.value})")


class ExportInProgressError(Exception):
    """Another export of this session is still running."""
    pass


class SignatureAssetNotFound(KeyError):
    def __init__(self, asset_id: str):
        super().__init__(asset_id)
        self.asset_id = asset_id

    def __str__(self) -> str:
        return f"Signature not found: {self.asset_id}"


class ViewingSession:
    """One viewer: at most one open document plus its overlay state."""

    def __init__(
        self,
        session_id: str,
        settings: Optional[Settings] = None,
        renderer: Optional[Renderer] = None,
        compositor: Optional[Compositor] = None,
        artifact_store: Optional[ArtifactStore] = None,
    ):
        self.id = session_id
        self.settings = settings or get_settings()
        self.renderer = renderer or get_renderer()
        self.compositor = compositor or get_compositor()
        self.artifact_store = artifact_store

        self.created_at = utc_now()
        self.last_activity = time.time()
        self.status = SessionStatus.EMPTY
        self.document: Optional[DocumentDescriptor] = None
        self.rendered: Optional[RenderedDocument] = None
        self.zoom = DEFAULT_ZOOM
        self.store = OverlayStore()
        self.assets: Dict[str, SignatureAsset] = {}
        self.exporting = False
        self.last_export: Optional[SignedDocumentRecord] = None

        self.controller = InteractionController(
            self.store,
            bounds=Size(0, 0),
            zoom_provider=lambda: self.zoom,
            limits=InteractionLimits.from_settings(self.settings),
        )
        self._load_generation = 0

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    async def load_document(self, source: DocumentSource) -> RenderedDocument:
        """
        Open a document, replacing the current one.

        The current document, zoom and placements stay untouched until the new
        document has been rendered; only then is zoom reset to 1.0 and the
        overlay store emptied. A failed load leaves the previous document open.
        If a newer load starts before this one finishes, this result is
        discarded.

        Raises:
            SourceResolutionError: If the document bytes cannot be obtained
        """
        self._load_generation += 1
        generation = self._load_generation
        self.status = SessionStatus.LOADING

        logger.info(f"Session {self.id}: loading document {source.id} ({source.mime_type})")
        try:
            data = await asyncio.to_thread(
                resolve_source_bytes,
                source.byte_source,
                self.settings.source_fetch_timeout_seconds,
                self.settings.max_source_bytes,
            )
            descriptor = await asyncio.to_thread(self.renderer.describe, source, data)
            rendered = await asyncio.to_thread(self.renderer.render, descriptor)
        except Exception:
            if generation == self._load_generation:
                self.status = SessionStatus.READY if self.rendered is not None else SessionStatus.EMPTY
            raise

        if generation != self._load_generation:
            logger.info(f"Session {self.id}: load of {source.id} superseded, discarding")
            return rendered

        self.store.remove_all()
        self.controller.reset(bounds=rendered.cds_size)
        self.zoom = DEFAULT_ZOOM
        self.document = descriptor
        self.rendered = rendered
        self.status = SessionStatus.READY
        return rendered

    def close_document(self) -> None:
        self._load_generation += 1
        self.store.remove_all()
        self.controller.reset(bounds=Size(0, 0))
        self.document = None
        self.rendered = None
        self.zoom = DEFAULT_ZOOM
        self.status = SessionStatus.EMPTY

    def touch(self) -> None:
        self.last_activity = time.time()

    def idle_for(self, now: Optional[float] = None) -> float:
        """Seconds since the session was last used."""
        return (now or time.time()) - self.last_activity

    def _require_ready(self) -> None:
        if self.status != SessionStatus.READY or self.rendered is None:
            raise DocumentNotReadyError(self.status)

    # ------------------------------------------------------------------
    # Zoom
    # ------------------------------------------------------------------

    def set_zoom(self, zoom: float) -> float:
        """Set the zoom factor; out-of-range values are clamped."""
        self._require_ready()
        self.zoom = clamp_zoom(zoom, self.settings.zoom_min, self.settings.zoom_max)
        return self.zoom

    def zoom_in(self) -> float:
        self._require_ready()
        self.zoom = step_zoom(self.zoom, 1, self.settings.zoom_step, self.settings.zoom_min, self.settings.zoom_max)
        return self.zoom

    def zoom_out(self) -> float:
        self._require_ready()
        self.zoom = step_zoom(self.zoom, -1, self.settings.zoom_step, self.settings.zoom_min, self.settings.zoom_max)
        return self.zoom

    # ------------------------------------------------------------------
    # Signature assets
    # ------------------------------------------------------------------

    def register_asset(self, asset: SignatureAsset) -> SignatureAsset:
        """
        Make a signature available for placement.

        Raises:
            SignatureDecodeError: If the image is not a PNG/JPEG
        """
        signature_bytes(asset.image_data)
        self.assets[asset.id] = asset
        logger.info(
            f"Session {self.id}: signature {asset.id} ({asset.kind.value}) registered, "
            f"image {fingerprint(asset.image_data, 'img_')}"
        )
        return asset

    def generate_auto_asset(self, owner_name: str, owner_email: Optional[str] = None) -> SignatureAsset:
        asset = get_signature_generator().create(owner_name, owner_email)
        self.assets[asset.id] = asset
        logger.info(f"Session {self.id}: automatic signature for {mask_email(owner_email)}")
        return asset

    def get_asset(self, asset_id: str) -> SignatureAsset:
        try:
            return self.assets[asset_id]
        except KeyError:
            raise SignatureAssetNotFound(asset_id) from None

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def screen_point(self, x: float, y: float, surface: Optional[SurfaceGeometry] = None) -> Point:
        """Screen-space point from event coordinates (client coordinates when a surface is given)."""
        if surface is None:
            return Point(x, y)
        return client_to_screen(x, y, surface)

    def arm(self, asset_id: str) -> bool:
        self._require_ready()
        return self.controller.arm(self.get_asset(asset_id))

    def disarm(self) -> None:
        self.controller.disarm()

    def click(self, point: Point) -> Optional[Placement]:
        self._require_ready()
        return self.controller.click(point)

    def pointer_down(self, point: Point) -> Optional[GestureState]:
        self._require_ready()
        return self.controller.pointer_down(point)

    def pointer_move(self, point: Point) -> Optional[Placement]:
        self._require_ready()
        return self.controller.pointer_move(point)

    def pointer_up(self, point: Point) -> Optional[Placement]:
        # Always accepted so a gesture can never stay open
        return self.controller.pointer_up(point)

    def cancel_gesture(self) -> Optional[Placement]:
        return self.controller.cancel()

    def remove_placement(self, placement_id: str) -> Placement:
        placement = self.store.remove(placement_id)
        if self.controller.selected_id == placement_id:
            self.controller.select(None)
        return placement

    def clear_placements(self) -> int:
        self.controller.select(None)
        return self.store.remove_all()

    def placements_view(self) -> List[Dict[str, Any]]:
        """Placements with CDS geometry and screen geometry at the current zoom."""
        return [
            {
                **placement.to_dict(),
                "screen": to_screen(placement.rect, self.zoom).to_dict(),
                "selected": placement.id == self.controller.selected_id,
            }
            for placement in self.store.list()
        ]

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(self, signed_by: Optional[str] = None) -> Tuple[ExportResult, SignedDocumentRecord]:
        """
        Combine placements into the artifact and persist it.

        Raises:
            ExportInProgressError: Another export is running
            DocumentNotReadyError: No document is ready
            ExportError: Combining or persisting failed (store untouched)
        """
        if self.exporting:
            raise ExportInProgressError(f"Session {self.id} is already exporting")
        self._require_ready()

        document, rendered = self.document, self.rendered
        snapshot = self.store.snapshot()
        assets = dict(self.assets)
        store = self.artifact_store or get_artifact_store()

        self.exporting = True
        try:
            result = await asyncio.to_thread(self.compositor.combine, document, rendered, snapshot, assets)
            try:
                record = await store.save(result, document, signed_by)
            except PersistenceError as e:
                raise ExportError(f"Signed document could not be saved: {e}", code="PERSIST_FAILED")
        finally:
            self.exporting = False

        for placement in result.placements:
            if placement.id in self.store:
                self.store.remove(placement.id)
        self.controller.select(None)
        self.last_export = record

        logger.info(
            f"Session {self.id}: exported {len(result.placements)} signature(s) "
            f"as {record.id} ({record.name})"
        )
        return result, record

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def snapshot_state(self) -> Dict[str, Any]:
        document = None
        if self.document is not None and self.rendered is not None:
            document = {
                "id": self.document.id,
                "name": self.document.name,
                "mime_category": self.document.mime_category.value,
                "mime_type": self.document.mime_type,
                "native_width": self.document.native_width,
                "native_height": self.document.native_height,
                "cds_width": self.rendered.cds_width,
                "cds_height": self.rendered.cds_height,
                "scale": self.rendered.scale,
                "error": str(self.rendered.error) if self.rendered.error else None,
            }
        return {
            "id": self.id,
            "status": self.status.value,
            "zoom": self.zoom,
            "interaction_state": self.controller.state.value,
            "armed_signature_id": self.controller.armed_asset.id if self.controller.armed_asset else None,
            "selected_placement_id": self.controller.selected_id,
            "exporting": self.exporting,
            "document": document,
            "placement_count": len(self.store),
            "signature_ids": list(self.assets),
            "created_at": self.created_at.isoformat(),
        }
