"""
Configuration module - loads settings from environment variables / .env file.
Geometry defaults mirror the document viewer (800x1000 container, 250x100 signature box).
"""
import json
import logging
from functools import lru_cache
from typing import Any, List, Optional

from pydantic_settings import BaseSettings
from pydantic import Field, model_validator, field_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = Field(default="SignDesk", alias="APP_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Canonical document space (fit-to-viewport)
    container_width: int = Field(default=800, gt=0, alias="CONTAINER_WIDTH")
    container_height: int = Field(default=1000, gt=0, alias="CONTAINER_HEIGHT")
    max_scale_multiplier: float = Field(
        default=2.0,
        gt=0,
        alias="MAX_SCALE_MULTIPLIER",
        description="Upper bound for the fit scale (small documents are never blown up past this)"
    )
    min_cds_dimension: int = Field(
        default=400,
        gt=0,
        alias="MIN_CDS_DIMENSION",
        description="Floor for the longest CDS side in pixels"
    )
    generic_page_width: int = Field(default=800, gt=0, alias="GENERIC_PAGE_WIDTH")
    generic_page_height: int = Field(default=1000, gt=0, alias="GENERIC_PAGE_HEIGHT")

    # Zoom
    zoom_min: float = Field(default=0.5, gt=0, alias="ZOOM_MIN")
    zoom_max: float = Field(default=3.0, gt=0, alias="ZOOM_MAX")
    zoom_step: float = Field(default=0.25, gt=0, alias="ZOOM_STEP")

    # Placement geometry (CDS units)
    default_placement_width: float = Field(default=250.0, gt=0, alias="DEFAULT_PLACEMENT_WIDTH")
    default_placement_height: float = Field(default=100.0, gt=0, alias="DEFAULT_PLACEMENT_HEIGHT")
    min_placement_width: float = Field(default=50.0, gt=0, alias="MIN_PLACEMENT_WIDTH")
    min_placement_height: float = Field(default=30.0, gt=0, alias="MIN_PLACEMENT_HEIGHT")
    handle_size: float = Field(
        default=12.0,
        gt=0,
        alias="HANDLE_SIZE",
        description="Resize handle hit box edge in screen pixels"
    )

    # Export (working resolution)
    pdf_working_scale: float = Field(default=2.0, gt=0, alias="PDF_WORKING_SCALE")
    generic_working_scale: float = Field(default=2.0, gt=0, alias="GENERIC_WORKING_SCALE")
    image_working_scale: float = Field(default=1.0, gt=0, alias="IMAGE_WORKING_SCALE")
    max_working_dimension: int = Field(default=10000, gt=0, alias="MAX_WORKING_DIMENSION")

    # Sources
    source_fetch_timeout_seconds: float = Field(default=15.0, gt=0, alias="SOURCE_FETCH_TIMEOUT_SECONDS")
    max_source_bytes: int = Field(default=25 * 1024 * 1024, gt=0, alias="MAX_SOURCE_BYTES")

    # Artifact persistence
    storage_dir: str = Field(default="/tmp/signdesk", alias="STORAGE_DIR")
    remote_store_url: str = Field(default="", alias="REMOTE_STORE_URL")
    remote_store_api_key: str = Field(default="", alias="REMOTE_STORE_API_KEY")

    # Sessions
    session_ttl_seconds: int = Field(
        default=1800,
        gt=0,
        alias="SESSION_TTL_SECONDS",
        description="Idle sessions older than this are closed"
    )
    session_cleanup_interval_seconds: int = Field(default=60, ge=0, alias="SESSION_CLEANUP_INTERVAL_SECONDS")

    # CORS
    allowed_origins: List[str] = Field(default=[], alias="ALLOWED_ORIGINS")

    @field_validator("allowed_origins", mode='before')
    @classmethod
    def _parse_allowed_origins(cls, v: Any) -> List[str]:
        """Parse ALLOWED_ORIGINS from JSON list, CSV, semicolon-separated string, or list."""
        if v is None:
            return []
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    return json.loads(s)
                except json.JSONDecodeError:
                    pass  # Fall through to delimiter parsing
            parts = [p.strip() for p in s.replace(",", ";").split(";")]
            return [p for p in parts if p]
        return []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @model_validator(mode='after')
    def validate_bounds(self) -> 'Settings':
        """Fix up inconsistent geometry bounds instead of failing startup."""
        if self.zoom_min > self.zoom_max:
            logger.warning(
                f"Configuration Warning: ZOOM_MIN ({self.zoom_min}) > ZOOM_MAX ({self.zoom_max}), swapping"
            )
            self.zoom_min, self.zoom_max = self.zoom_max, self.zoom_min

        if self.min_placement_width > self.default_placement_width:
            logger.warning(
                f"Configuration Warning: MIN_PLACEMENT_WIDTH ({self.min_placement_width}) exceeds "
                f"DEFAULT_PLACEMENT_WIDTH ({self.default_placement_width})"
            )
        if self.min_placement_height > self.default_placement_height:
            logger.warning(
                f"Configuration Warning: MIN_PLACEMENT_HEIGHT ({self.min_placement_height}) exceeds "
                f"DEFAULT_PLACEMENT_HEIGHT ({self.default_placement_height})"
            )

        if self.environment == "production" and not self.remote_store_url:
            logger.warning(
                "REMOTE_STORE_URL is not set in production - signed artifacts are kept "
                f"only in local storage ({self.storage_dir})"
            )

        return self

    def viewer_limits(self) -> dict:
        """Geometry limits exposed to clients."""
        return {
            "zoom_min": self.zoom_min,
            "zoom_max": self.zoom_max,
            "zoom_step": self.zoom_step,
            "min_placement_width": self.min_placement_width,
            "min_placement_height": self.min_placement_height,
            "handle_size": self.handle_size,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# =============================================================================
# CORS Configuration
# =============================================================================

# Development origins (only in non-production)
DEV_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8080",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def get_cors_origins(settings: Optional[Settings] = None) -> List[str]:
    """
    Get list of allowed CORS origins.

    Combines:
    1. Origins from ALLOWED_ORIGINS env variable
    2. Development origins (if not in production)
    """
    settings = settings or get_settings()
    origins = set(settings.allowed_origins)

    if settings.environment != "production":
        origins.update(DEV_CORS_ORIGINS)

    return sorted(origins)
