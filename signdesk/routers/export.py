"""
Export API: bake placements into the document and download the artifact.
"""
from urllib.parse import quote

from fastapi import APIRouter, Depends, Path, Response

from signdesk.core.session import DocumentNotReadyError, ExportInProgressError, ViewingSession
from signdesk.exceptions import ConflictException, ExportException, NotFoundError
from signdesk.models import ExportRequest, ExportResponse
from signdesk.render.compositor import ExportError
from signdesk.routers.sessions import get_session, not_ready
from signdesk.storage import ArtifactNotFound, ArtifactStore, PersistenceError, get_artifact_store
from signdesk.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1",
    tags=["export"],
)


@router.post("/sessions/{session_id}/export", response_model=ExportResponse)
async def export_document(
    body: ExportRequest,
    session: ViewingSession = Depends(get_session),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """
    Combine all placements into the document at working resolution and persist it.

    PDF documents export as a single-page PDF, everything else as PNG. The
    placements are cleared only after the artifact was stored.
    """
    if session.artifact_store is None:
        session.artifact_store = store

    try:
        result, record = await session.export(signed_by=body.signed_by)
    except ExportInProgressError as e:
        raise ConflictException(str(e), code="EXPORT_IN_PROGRESS")
    except DocumentNotReadyError as e:
        raise not_ready(e)
    except ExportError as e:
        raise ExportException(e.message, code=e.code)

    artifact = result.artifact
    return ExportResponse(
        artifact_id=artifact.id,
        name=artifact.suggested_name,
        mime_type=artifact.mime_type,
        size=artifact.size,
        width=artifact.width,
        height=artifact.height,
        sha256=artifact.sha256,
        working_scale=list(result.working_scale),
        placements=len(result.placements),
        download_url=f"/v1/artifacts/{artifact.id}",
    )


@router.get("/artifacts/{artifact_id}")
async def download_artifact(
    artifact_id: str = Path(..., min_length=1, max_length=64),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """Download a signed artifact."""
    try:
        record, content = await store.load(artifact_id)
    except ArtifactNotFound:
        raise NotFoundError("Artifact", artifact_id)
    except PersistenceError as e:
        logger.error(f"Artifact {artifact_id} could not be read: {e}")
        raise ExportException(str(e), code="ARTIFACT_UNAVAILABLE")

    return Response(
        content=content,
        media_type=record.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(record.name)}",
            "X-Content-SHA256": record.sha256,
        },
    )
