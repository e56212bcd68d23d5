"""
Signature and placement API: signature assets, placement mode, pointer input
and the overlay store.
Paths: /v1/sessions/{session_id}/...
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Response

from signdesk.core.geometry import Point
from signdesk.core.overlay_store import PlacementNotFound
from signdesk.core.session import DocumentNotReadyError, SignatureAssetNotFound, ViewingSession
from signdesk.core.types import Placement, SignatureAsset, SignatureKind
from signdesk.core.viewport import SurfaceGeometry, to_screen
from signdesk.exceptions import NotFoundError, ValidationException
from signdesk.models import (
    AutoSignatureRequest,
    ClearResponse,
    PlacementListResponse,
    PlacementModeRequest,
    PlacementResponse,
    PointerEvent,
    PointerResponse,
    SessionResponse,
    SignatureResponse,
    SignatureUploadRequest,
)
from signdesk.routers.sessions import get_session, not_ready, session_response
from signdesk.signatures.decode import SignatureDecodeError
from signdesk.utils.logging import get_logger
from signdesk.utils.security import generate_id

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/sessions/{session_id}",
    tags=["placements"],
)


def signature_response(asset: SignatureAsset, include_image: bool = False) -> SignatureResponse:
    return SignatureResponse(
        id=asset.id,
        owner_name=asset.owner_name,
        kind=asset.kind.value,
        file_name=asset.file_name,
        created_at=asset.created_at,
        image_data=asset.image_data if include_image else None,
    )


def placement_response(session: ViewingSession, placement: Optional[Placement]) -> Optional[PlacementResponse]:
    if placement is None:
        return None
    return PlacementResponse(
        **placement.to_dict(),
        screen=to_screen(placement.rect, session.zoom).to_dict(),
        selected=placement.id == session.controller.selected_id,
    )


def pointer_response(session: ViewingSession, placement: Optional[Placement] = None) -> PointerResponse:
    return PointerResponse(
        state=session.controller.state.value,
        placement=placement_response(session, placement),
        selected_placement_id=session.controller.selected_id,
    )


def event_point(session: ViewingSession, event: PointerEvent) -> Point:
    surface = None
    if event.surface is not None:
        surface = SurfaceGeometry(**event.surface.model_dump())
    try:
        return session.screen_point(event.x, event.y, surface)
    except ValueError as e:
        raise ValidationException(str(e), code="INVALID_SURFACE")


# =============================================================================
# Signature assets
# =============================================================================

@router.post("/signatures", response_model=SignatureResponse, status_code=201)
async def upload_signature(body: SignatureUploadRequest, session: ViewingSession = Depends(get_session)):
    """Register an uploaded signature image (PNG or JPEG)."""
    asset = SignatureAsset(
        id=generate_id("sig"),
        image_data=body.image_data,
        owner_name=body.owner_name,
        owner_email=body.owner_email,
        kind=SignatureKind.UPLOAD,
        file_name=body.file_name,
    )
    try:
        session.register_asset(asset)
    except SignatureDecodeError as e:
        raise ValidationException(str(e), code="INVALID_SIGNATURE")
    return signature_response(asset)


@router.post("/signatures/auto", response_model=SignatureResponse, status_code=201)
async def generate_signature(body: AutoSignatureRequest, session: ViewingSession = Depends(get_session)):
    """Generate a name + date signature card for the user."""
    try:
        asset = session.generate_auto_asset(body.owner_name, body.owner_email)
    except ValueError as e:
        raise ValidationException(str(e))
    return signature_response(asset, include_image=True)


# =============================================================================
# Placement mode and pointer input
# =============================================================================

@router.post("/placement-mode", response_model=SessionResponse)
async def arm_placement(body: PlacementModeRequest, session: ViewingSession = Depends(get_session)):
    """Arm a signature: the next click on the document places it."""
    try:
        session.arm(body.signature_id)
    except SignatureAssetNotFound:
        raise NotFoundError("Signature", body.signature_id)
    except DocumentNotReadyError as e:
        raise not_ready(e)
    return session_response(session)


@router.delete("/placement-mode", response_model=SessionResponse)
async def disarm_placement(session: ViewingSession = Depends(get_session)):
    session.disarm()
    return session_response(session)


@router.post("/pointer/click", response_model=PointerResponse)
async def pointer_click(event: PointerEvent, session: ViewingSession = Depends(get_session)):
    point = event_point(session, event)
    try:
        placement = session.click(point)
    except DocumentNotReadyError as e:
        raise not_ready(e)
    return pointer_response(session, placement)


@router.post("/pointer/down", response_model=PointerResponse)
async def pointer_down(event: PointerEvent, session: ViewingSession = Depends(get_session)):
    point = event_point(session, event)
    try:
        session.pointer_down(point)
    except DocumentNotReadyError as e:
        raise not_ready(e)
    gesture = session.controller.gesture
    placement = session.store.find(gesture.placement_id) if gesture else None
    return pointer_response(session, placement)


@router.post("/pointer/move", response_model=PointerResponse)
async def pointer_move(event: PointerEvent, session: ViewingSession = Depends(get_session)):
    point = event_point(session, event)
    try:
        placement = session.pointer_move(point)
    except DocumentNotReadyError as e:
        raise not_ready(e)
    return pointer_response(session, placement)


@router.post("/pointer/up", response_model=PointerResponse)
async def pointer_up(event: PointerEvent, session: ViewingSession = Depends(get_session)):
    placement = session.pointer_up(event_point(session, event))
    return pointer_response(session, placement)


@router.post("/pointer/cancel", response_model=PointerResponse)
async def pointer_cancel(session: ViewingSession = Depends(get_session)):
    placement = session.cancel_gesture()
    return pointer_response(session, placement)


# =============================================================================
# Overlay store
# =============================================================================

@router.get("/placements", response_model=PlacementListResponse)
async def list_placements(session: ViewingSession = Depends(get_session)):
    """Placements in paint order, with CDS geometry and screen geometry at the current zoom."""
    return PlacementListResponse(
        zoom=session.zoom,
        placements=[PlacementResponse(**p) for p in session.placements_view()],
    )


@router.delete("/placements", response_model=ClearResponse)
async def clear_placements(session: ViewingSession = Depends(get_session)):
    return ClearResponse(removed=session.clear_placements())


@router.delete("/placements/{placement_id}", status_code=204)
async def remove_placement(
    placement_id: str = Path(..., min_length=1),
    session: ViewingSession = Depends(get_session),
):
    try:
        session.remove_placement(placement_id)
    except PlacementNotFound:
        raise NotFoundError("Placement", placement_id)
    return Response(status_code=204)
