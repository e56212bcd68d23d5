"""
Tests for the viewing session: document lifecycle, input gating and export.
"""
import asyncio
import io
import logging
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from signdesk.core.geometry import Point
from signdesk.core.interaction import GestureState
from signdesk.core.session import (
    DocumentNotReadyError,
    ExportInProgressError,
    SessionStatus,
    SignatureAssetNotFound,
)
from signdesk.core.types import DocumentSource, Placement
from signdesk.core.viewport import SurfaceGeometry
from signdesk.render.compositor import ExportError
from signdesk.signatures.decode import SignatureDecodeError
from signdesk.sources import SourceResolutionError
from signdesk.storage import ArtifactStore, PersistenceError
from signdesk.utils.logging import fingerprint


def place_signature(session, signature_asset, x=400, y=500) -> Placement:
    session.register_asset(signature_asset)
    session.arm(signature_asset.id)
    return session.click(Point(x, y))


class TestDocumentLifecycle:

    @pytest.mark.asyncio
    async def test_load_image(self, session, image_source):
        rendered = await session.load_document(image_source)

        assert session.status == SessionStatus.READY
        assert (rendered.cds_width, rendered.cds_height) == (800, 1000)
        assert session.document.id == "doc_IMAGE"
        assert not rendered.degraded

    @pytest.mark.asyncio
    async def test_load_pdf_first_page(self, session, pdf_source):
        rendered = await session.load_document(pdf_source)
        assert rendered.scale == pytest.approx(2.0)
        assert (rendered.cds_width, rendered.cds_height) == (800, 1000)

    @pytest.mark.asyncio
    async def test_load_resets_zoom_and_placements(self, session, image_source, pdf_source, signature_asset):
        await session.load_document(image_source)
        place_signature(session, signature_asset)
        session.set_zoom(2.0)

        await session.load_document(pdf_source)

        assert session.zoom == 1.0
        assert len(session.store) == 0
        assert session.controller.state == GestureState.IDLE
        assert session.controller.selected_id is None

    @pytest.mark.asyncio
    async def test_unresolvable_source_leaves_session_empty(self, session):
        source = DocumentSource("doc_BAD", "bad.png", "image/png", "not base64 !!")
        with pytest.raises(SourceResolutionError):
            await session.load_document(source)
        assert session.status == SessionStatus.EMPTY
        assert session.document is None

    @pytest.mark.asyncio
    async def test_failed_load_keeps_open_document(self, session, image_source, signature_asset):
        """A load that fails leaves the previous document, zoom and placements untouched."""
        await session.load_document(image_source)
        placement = place_signature(session, signature_asset)
        session.set_zoom(2.0)

        source = DocumentSource("doc_BAD", "bad.png", "image/png", "not base64 !!!")
        with pytest.raises(SourceResolutionError):
            await session.load_document(source)

        assert session.status == SessionStatus.READY
        assert session.document.id == "doc_IMAGE"
        assert session.zoom == 2.0
        assert [p.id for p in session.store.list()] == [placement.id]

    @pytest.mark.asyncio
    async def test_input_rejected_while_loading(self, session, image_source, pdf_source, monkeypatch):
        """The previous document stays visible but takes no input until the new one is ready."""
        await session.load_document(image_source)
        seen = {}
        describe = session.renderer.describe

        def describe_and_record_status(source, data):
            seen["status"] = session.status
            return describe(source, data)

        monkeypatch.setattr(session.renderer, "describe", describe_and_record_status)
        await session.load_document(pdf_source)

        assert seen["status"] == SessionStatus.LOADING
        assert session.document.id == "doc_PDF"

    @pytest.mark.asyncio
    async def test_corrupt_pdf_opens_degraded(self, session):
        source = DocumentSource("doc_CORRUPT", "broken.pdf", "application/pdf", b"%PDF-1.4 garbage")
        rendered = await session.load_document(source)

        assert session.status == SessionStatus.READY
        assert rendered.degraded
        assert session.snapshot_state()["document"]["error"]

    @pytest.mark.asyncio
    async def test_superseded_load_discarded(self, session, pdf_source, image_source):
        """Only the most recently requested document ends up open."""
        await asyncio.gather(
            session.load_document(pdf_source),
            session.load_document(image_source),
        )
        assert session.document.id == "doc_IMAGE"
        assert session.status == SessionStatus.READY

    @pytest.mark.asyncio
    async def test_close_document(self, session, image_source, signature_asset):
        await session.load_document(image_source)
        place_signature(session, signature_asset)

        session.close_document()

        assert session.status == SessionStatus.EMPTY
        assert len(session.store) == 0
        assert session.rendered is None


class TestInputGating:
    """Input is rejected until a document is ready."""

    def test_zoom_rejected_when_empty(self, session):
        with pytest.raises(DocumentNotReadyError) as exc_info:
            session.set_zoom(2.0)
        assert exc_info.value.status == SessionStatus.EMPTY

    def test_click_rejected_when_empty(self, session):
        with pytest.raises(DocumentNotReadyError):
            session.click(Point(10, 10))

    def test_pointer_up_always_accepted(self, session):
        assert session.pointer_up(Point(10, 10)) is None

    @pytest.mark.asyncio
    async def test_export_rejected_when_empty(self, session):
        with pytest.raises(DocumentNotReadyError):
            await session.export()


class TestZoom:

    @pytest.mark.asyncio
    async def test_zoom_clamped_and_stepped(self, session, image_source):
        await session.load_document(image_source)
        assert session.set_zoom(10) == 3.0
        assert session.zoom_in() == 3.0
        assert session.zoom_out() == 2.75
        assert session.set_zoom(0.1) == 0.5
        assert session.zoom_out() == 0.5

    @pytest.mark.asyncio
    async def test_zoom_does_not_touch_cds_geometry(self, session, image_source, signature_asset):
        await session.load_document(image_source)
        placement = place_signature(session, signature_asset)

        session.set_zoom(2.0)

        view = session.placements_view()[0]
        assert view["x"] == placement.x
        assert view["screen"]["x"] == placement.x * 2
        assert view["screen"]["width"] == placement.width * 2
        assert view["selected"] is True


class TestSignatureAssets:

    def test_register_rejects_non_image(self, session, signature_asset):
        svg = replace(signature_asset, image_data="data:image/svg+xml;base64,PHN2Zz48L3N2Zz4=")
        with pytest.raises(SignatureDecodeError):
            session.register_asset(svg)
        assert svg.id not in session.assets

    def test_register_logs_image_fingerprint(self, session, signature_asset, caplog):
        """Signature image data never reaches the log, only its fingerprint."""
        with caplog.at_level(logging.INFO, logger="signdesk.core.session"):
            session.register_asset(signature_asset)

        assert fingerprint(signature_asset.image_data, "img_") in caplog.text
        assert signature_asset.image_data not in caplog.text

    def test_auto_asset(self, session):
        asset = session.generate_auto_asset("Ana Maria Lopez", "ana@example.com")
        assert session.get_asset(asset.id) is asset

    def test_unknown_asset(self, session):
        with pytest.raises(SignatureAssetNotFound):
            session.get_asset("sig_NOPE")


class TestPointerInput:

    @pytest.mark.asyncio
    async def test_client_coordinates_mapped(self, session, image_source, signature_asset):
        """A surface displayed at half size doubles the client coordinates."""
        await session.load_document(image_source)
        session.register_asset(signature_asset)
        session.arm(signature_asset.id)

        surface = SurfaceGeometry(left=10, top=20, css_width=400, css_height=500, buffer_width=800, buffer_height=1000)
        placement = session.click(session.screen_point(210, 270, surface))

        assert (placement.x, placement.y) == (275, 450)

    @pytest.mark.asyncio
    async def test_drag_through_session(self, session, image_source, signature_asset):
        await session.load_document(image_source)
        placement = place_signature(session, signature_asset)

        assert session.pointer_down(Point(400, 500)) == GestureState.DRAGGING
        session.pointer_move(Point(450, 520))
        moved = session.pointer_up(Point(450, 520))

        assert (moved.x, moved.y) == (placement.x + 50, placement.y + 20)
        assert not session.controller.capture.active

    @pytest.mark.asyncio
    async def test_remove_selected_placement(self, session, image_source, signature_asset):
        await session.load_document(image_source)
        placement = place_signature(session, signature_asset)

        session.remove_placement(placement.id)

        assert session.controller.selected_id is None
        assert len(session.store) == 0


class TestExport:

    @pytest.mark.asyncio
    async def test_export_persists_and_clears_store(self, session, image_source, signature_asset, artifact_store):
        await session.load_document(image_source)
        placement = place_signature(session, signature_asset)

        result, record = await session.export(signed_by="ana@example.com")

        assert len(session.store) == 0
        assert session.exporting is False
        assert session.last_export is record
        assert record.signatures[0]["id"] == placement.id
        assert record.signed_by == "ana@example.com"

        _, content = await artifact_store.load(record.id)
        assert content == result.artifact.content
        image = Image.open(io.BytesIO(content)).convert("RGB")
        assert image.getpixel((400, 500)) == (255, 0, 0)

    @pytest.mark.asyncio
    async def test_export_without_placements(self, session, image_source):
        await session.load_document(image_source)
        with pytest.raises(ExportError) as exc_info:
            await session.export()
        assert exc_info.value.code == "NO_PLACEMENTS"

    @pytest.mark.asyncio
    async def test_failed_export_keeps_placements(self, session, image_source):
        await session.load_document(image_source)
        session.store.add(Placement("plc_X", "sig_MISSING", 10, 10, 250, 100))

        with pytest.raises(ExportError) as exc_info:
            await session.export()

        assert exc_info.value.code == "UNKNOWN_ASSET"
        assert "plc_X" in session.store
        assert session.exporting is False

    @pytest.mark.asyncio
    async def test_degraded_document_cannot_export(self, session, signature_asset):
        source = DocumentSource("doc_CORRUPT", "broken.pdf", "application/pdf", b"%PDF-1.4 garbage")
        await session.load_document(source)
        place_signature(session, signature_asset)

        with pytest.raises(ExportError) as exc_info:
            await session.export()
        assert exc_info.value.code == "RENDER_FAILED"
        assert len(session.store) == 1

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_placements(self, session, image_source, signature_asset):
        await session.load_document(image_source)
        place_signature(session, signature_asset)

        failing_store = MagicMock(spec=ArtifactStore)
        failing_store.save = AsyncMock(side_effect=PersistenceError("disk full"))
        session.artifact_store = failing_store

        with pytest.raises(ExportError) as exc_info:
            await session.export()

        assert exc_info.value.code == "PERSIST_FAILED"
        assert len(session.store) == 1
        assert session.last_export is None

    @pytest.mark.asyncio
    async def test_concurrent_export_rejected(self, session, image_source, signature_asset):
        await session.load_document(image_source)
        place_signature(session, signature_asset)
        session.exporting = True

        with pytest.raises(ExportInProgressError):
            await session.export()
        assert len(session.store) == 1

    @pytest.mark.asyncio
    async def test_placements_added_during_export_survive(self, session, image_source, signature_asset):
        """Only the snapshotted placements are removed after export."""
        await session.load_document(image_source)
        place_signature(session, signature_asset)

        original_save = session.artifact_store.save

        async def save_and_add(result, document, signed_by=None):
            session.store.add(Placement("plc_LATE", signature_asset.id, 0, 0, 250, 100))
            return await original_save(result, document, signed_by)

        session.artifact_store.save = save_and_add
        await session.export()

        assert [p.id for p in session.store.list()] == ["plc_LATE"]
