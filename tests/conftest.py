"""
Pytest configuration and fixtures.
"""
import base64
import io
import os
import sys
import tempfile

import pytest

import fitz  # PyMuPDF
from PIL import Image

# Add signdesk to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from signdesk.config import Settings
from signdesk.core.types import DocumentSource, SignatureAsset, SignatureKind
from signdesk.core.session import ViewingSession
from signdesk.render.compositor import Compositor
from signdesk.render.renderer import Renderer
from signdesk.storage import LocalArtifactStore


def make_png(width: int, height: int, color=(255, 255, 255, 255), mode: str = "RGBA") -> bytes:
    """Solid-color PNG bytes."""
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_pdf(width: float = 400, height: float = 500, pages: int = 1) -> bytes:
    """PDF bytes with `pages` pages of the given size in points."""
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((40, 60), f"Test Document page {i + 1}", fontsize=18)
    data = doc.tobytes()
    doc.close()
    return data


def data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(data).decode()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def settings(temp_dir):
    """Settings with defaults and storage in a temp directory."""
    return Settings(storage_dir=temp_dir, environment="test")


@pytest.fixture
def renderer(settings):
    return Renderer(settings)


@pytest.fixture
def compositor(renderer, settings):
    return Compositor(renderer=renderer, settings=settings)


@pytest.fixture
def artifact_store(temp_dir):
    return LocalArtifactStore(os.path.join(temp_dir, "artifacts"))


@pytest.fixture
def session(settings, renderer, compositor, artifact_store):
    """Viewing session wired to temp storage."""
    return ViewingSession(
        "ses_TEST",
        settings=settings,
        renderer=renderer,
        compositor=compositor,
        artifact_store=artifact_store,
    )


@pytest.fixture
def sample_png_base64():
    """Opaque red 200x80 PNG as base64."""
    return base64.b64encode(make_png(200, 80, (255, 0, 0, 255))).decode()


@pytest.fixture
def signature_asset(sample_png_base64):
    return SignatureAsset(
        id="sig_RED",
        image_data="data:image/png;base64," + sample_png_base64,
        owner_name="Ana Maria Lopez",
        owner_email="ana@example.com",
        kind=SignatureKind.UPLOAD,
    )


@pytest.fixture
def image_source():
    """White 800x1000 PNG document (CDS equals native size)."""
    return DocumentSource(
        id="doc_IMAGE",
        name="scan.png",
        mime_type="image/png",
        byte_source=make_png(800, 1000, mode="RGB", color=(255, 255, 255)),
    )


@pytest.fixture
def pdf_source():
    """Two-page 400x500pt PDF (only the first page is shown)."""
    return DocumentSource(
        id="doc_PDF",
        name="contract.pdf",
        mime_type="application/pdf",
        byte_source=make_pdf(400, 500, pages=2),
    )


@pytest.fixture
def generic_source():
    return DocumentSource(
        id="doc_DOCX",
        name="report.docx",
        mime_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        byte_source=b"PK\x03\x04 not really a zip",
        uploaded_by_name="Carlos Ruiz",
    )
