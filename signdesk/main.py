"""
SignDesk - Main FastAPI Application
Signature overlay viewing and compositing service.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from signdesk.config import get_cors_origins, get_settings
from signdesk.core.registry import get_session_registry
from signdesk.exceptions import (
    AppException,
    app_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from signdesk.routers import export, health, placements, sessions
from signdesk.utils.logging import RequestIdMiddleware, get_logger, setup_logging

logger = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(
        environment=settings.environment,
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    logger.info(f"Starting {settings.app_name} v{VERSION} ({settings.environment})")
    yield
    registry = get_session_registry()
    logger.info(f"Shutting down {settings.app_name} ({len(registry)} open session(s) discarded)")
    registry.clear()


app = FastAPI(
    title="SignDesk",
    description="""Signature overlay viewing and compositing service.

Documents (images, the first page of PDFs, or an information card for other
files) are rendered once into a canonical document space (CDS). Signature
placements are stored in CDS units, displayed at any zoom factor, and baked
into the document at full working resolution on export.
""",
    version=VERSION,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "sessions", "description": "Viewing sessions, documents and zoom"},
        {"name": "placements", "description": "Signatures, placement mode, pointer input"},
        {"name": "export", "description": "Signed artifact export and download"},
        {"name": "health", "description": "Health check endpoints"},
    ],
)

app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-CDS-Width", "X-CDS-Height", "Content-Disposition"],
)

# Exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(placements.router)
app.include_router(export.router)


# Run with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "signdesk.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=get_settings().debug,
    )
