from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class BaseRequest(BaseModel):
    """Base class for all request models - ignores extra fields."""
    model_config = ConfigDict(extra="ignore")


# Request Models
class LoadDocumentRequest(BaseRequest):
    """Document handed over by the upload collaborator: inline base64 content or a URL."""
    id: Optional[str] = Field(default=None, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(default="", max_length=255)
    content_base64: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    uploaded_by: Optional[str] = None
    uploaded_by_name: Optional[str] = None
    upload_date: Optional[datetime] = None

    @field_validator("mime_type")
    @classmethod
    def normalize_mime_type(cls, v: str) -> str:
        return v.lower().strip()

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.lower().startswith(("http://", "https://")):
            raise ValueError("url must be an http(s) URL")
        return v

    @model_validator(mode="after")
    def require_one_source(self) -> "LoadDocumentRequest":
        if bool(self.content_base64) == bool(self.url):
            raise ValueError("Exactly one of content_base64 or url is required")
        return self


class ZoomRequest(BaseRequest):
    # Out-of-range values are clamped, not rejected
    zoom: float = Field(..., gt=0)


class SignatureUploadRequest(BaseRequest):
    image_data: str = Field(..., min_length=1, description="PNG/JPEG as base64 or data URL")
    owner_name: str = Field(..., min_length=1, max_length=200)
    owner_email: Optional[str] = Field(default=None, max_length=320)
    file_name: Optional[str] = Field(default=None, max_length=255)


class AutoSignatureRequest(BaseRequest):
    owner_name: str = Field(..., min_length=1, max_length=200)
    owner_email: Optional[str] = Field(default=None, max_length=320)


class PlacementModeRequest(BaseRequest):
    signature_id: str = Field(..., min_length=1)


class SurfaceModel(BaseRequest):
    """Displayed surface: CSS bounding box and raster buffer size."""
    left: float = 0.0
    top: float = 0.0
    css_width: float = Field(..., gt=0)
    css_height: float = Field(..., gt=0)
    buffer_width: float = Field(..., gt=0)
    buffer_height: float = Field(..., gt=0)


class PointerEvent(BaseRequest):
    """
    Pointer position.

    Without `surface`, x/y are screen coordinates (CDS * zoom).
    With `surface`, x/y are client (page) coordinates.
    """
    x: float
    y: float
    surface: Optional[SurfaceModel] = None


class ExportRequest(BaseRequest):
    signed_by: Optional[str] = Field(default=None, max_length=200)


# Response Models
class RectModel(BaseModel):
    x: float
    y: float
    width: float
    height: float


class PlacementResponse(BaseModel):
    id: str
    signature_asset_ref: str
    x: float
    y: float
    width: float
    height: float
    created_at: datetime
    screen: Optional[RectModel] = None
    selected: bool = False


class PlacementListResponse(BaseModel):
    zoom: float
    placements: List[PlacementResponse]


class DocumentInfo(BaseModel):
    id: str
    name: str
    mime_category: str
    mime_type: str
    native_width: float
    native_height: float
    cds_width: int
    cds_height: int
    scale: float
    error: Optional[str] = None


class SessionResponse(BaseModel):
    id: str
    status: str
    zoom: float
    interaction_state: str
    armed_signature_id: Optional[str] = None
    selected_placement_id: Optional[str] = None
    exporting: bool = False
    document: Optional[DocumentInfo] = None
    placement_count: int = 0
    signature_ids: List[str] = []
    created_at: datetime
    limits: Dict[str, Any] = {}


class ZoomResponse(BaseModel):
    zoom: float


class SignatureResponse(BaseModel):
    id: str
    owner_name: str
    kind: str
    file_name: Optional[str] = None
    created_at: datetime
    image_data: Optional[str] = None


class PointerResponse(BaseModel):
    state: str
    placement: Optional[PlacementResponse] = None
    selected_placement_id: Optional[str] = None


class ClearResponse(BaseModel):
    removed: int


class ExportResponse(BaseModel):
    artifact_id: str
    name: str
    mime_type: str
    size: int
    width: int
    height: int
    sha256: str
    working_scale: List[float]
    placements: int
    download_url: str
