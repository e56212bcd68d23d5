"""
Health check endpoints for diagnosing service dependencies.
"""
import fitz  # PyMuPDF
import PIL
import reportlab
from fastapi import APIRouter, Depends

from signdesk.config import Settings, get_settings
from signdesk.core.registry import SessionRegistry, get_session_registry
from signdesk.render.placeholder import find_font

router = APIRouter(
    prefix="/health",
    tags=["health"],
)


@router.get("")
async def health_check(
    settings: Settings = Depends(get_settings),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Liveness check."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "environment": settings.environment,
        "sessions": len(registry),
    }


@router.get("/rendering")
async def health_check_rendering():
    """
    Report the rendering stack: PyMuPDF, Pillow, reportlab and system fonts.
    Missing fonts fall back to Pillow's bundled font (cards still render).
    """
    regular = find_font("regular")
    bold = find_font("bold")
    return {
        "status": "healthy" if regular and bold else "degraded",
        "rendering": {
            "pymupdf_version": fitz.VersionBind,
            "pillow_version": PIL.__version__,
            "reportlab_version": reportlab.Version,
            "font_regular": regular,
            "font_bold": bold,
        },
    }
