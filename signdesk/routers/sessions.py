"""
Viewing sessions API: session lifecycle, document loading, raster and zoom.
Paths: /v1/sessions/{session_id}
"""
import asyncio

from fastapi import APIRouter, Depends, Path, Response

from signdesk.core.registry import SessionNotFound, SessionRegistry, get_session_registry
from signdesk.core.session import DocumentNotReadyError, ViewingSession
from signdesk.core.types import DocumentSource
from signdesk.exceptions import ConflictException, NotFoundError, SourceException
from signdesk.models import LoadDocumentRequest, SessionResponse, ZoomRequest, ZoomResponse
from signdesk.render.kinds import encode_png
from signdesk.sources import SourceResolutionError, decode_base64_payload
from signdesk.utils.datetime_utils import utc_now
from signdesk.utils.logging import get_logger, set_context
from signdesk.utils.security import generate_id

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/sessions",
    tags=["sessions"],
)


def get_session(
    session_id: str = Path(..., min_length=1, max_length=64),
    registry: SessionRegistry = Depends(get_session_registry),
) -> ViewingSession:
    """Resolve the session from the path or fail with 404."""
    try:
        session = registry.get(session_id)
    except SessionNotFound:
        raise NotFoundError("Session", session_id)
    set_context(session_id=session.id, document_id=session.document.id if session.document else None)
    return session


def not_ready(exc: DocumentNotReadyError) -> ConflictException:
    return ConflictException(str(exc), code="DOCUMENT_NOT_READY", details={"status": exc.status.value})


def session_response(session: ViewingSession) -> SessionResponse:
    return SessionResponse(**session.snapshot_state(), limits=session.settings.viewer_limits())


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(registry: SessionRegistry = Depends(get_session_registry)):
    """Open a new, empty viewing session."""
    session = registry.create()
    return session_response(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session_state(session: ViewingSession = Depends(get_session)):
    return session_response(session)


@router.delete("/{session_id}", status_code=204)
async def close_session(
    session: ViewingSession = Depends(get_session),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if session.exporting:
        raise ConflictException("Session is exporting", code="EXPORT_IN_PROGRESS")
    registry.close(session.id)
    return Response(status_code=204)


@router.post("/{session_id}/document", response_model=SessionResponse)
async def load_document(
    body: LoadDocumentRequest,
    session: ViewingSession = Depends(get_session),
):
    """
    Open a document in the session.

    Zoom resets to 1.0 and existing placements are discarded. A document that
    cannot be decoded still opens, showing a diagnostic placeholder
    (`document.error` is set).
    """
    if session.exporting:
        raise ConflictException("Session is exporting", code="EXPORT_IN_PROGRESS")

    # Inline content is decoded here so client strings never reach the local-path branch
    byte_source = body.url
    if body.content_base64:
        try:
            byte_source = decode_base64_payload(body.content_base64)
        except SourceResolutionError as e:
            raise SourceException(str(e))

    source = DocumentSource(
        id=body.id or generate_id("doc"),
        name=body.name,
        mime_type=body.mime_type,
        byte_source=byte_source,
        size=body.size,
        uploaded_by=body.uploaded_by,
        uploaded_by_name=body.uploaded_by_name,
        upload_date=body.upload_date or utc_now(),
    )
    set_context(document_id=source.id)

    try:
        await session.load_document(source)
    except SourceResolutionError as e:
        raise SourceException(str(e))

    return session_response(session)


@router.get("/{session_id}/document/raster")
async def get_document_raster(session: ViewingSession = Depends(get_session)):
    """CDS raster of the open document as PNG (display it scaled by the zoom factor)."""
    if session.rendered is None:
        raise not_ready(DocumentNotReadyError(session.status))

    content = await asyncio.to_thread(encode_png, session.rendered.raster)
    return Response(
        content=content,
        media_type="image/png",
        headers={
            "X-CDS-Width": str(session.rendered.cds_width),
            "X-CDS-Height": str(session.rendered.cds_height),
            "Cache-Control": "no-store",
        },
    )


@router.put("/{session_id}/zoom", response_model=ZoomResponse)
async def set_zoom(body: ZoomRequest, session: ViewingSession = Depends(get_session)):
    """Set the zoom factor; values outside the allowed range are clamped."""
    try:
        return ZoomResponse(zoom=session.set_zoom(body.zoom))
    except DocumentNotReadyError as e:
        raise not_ready(e)


@router.post("/{session_id}/zoom/in", response_model=ZoomResponse)
async def zoom_in(session: ViewingSession = Depends(get_session)):
    try:
        return ZoomResponse(zoom=session.zoom_in())
    except DocumentNotReadyError as e:
        raise not_ready(e)


@router.post("/{session_id}/zoom/out", response_model=ZoomResponse)
async def zoom_out(session: ViewingSession = Depends(get_session)):
    try:
        return ZoomResponse(zoom=session.zoom_out())
    except DocumentNotReadyError as e:
        raise not_ready(e)
