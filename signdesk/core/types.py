"""
Core value types of the viewing/compositing pipeline.

Geometry on Placement is always in CDS units of the document instance the
placement belongs to - never in zoomed/screen units.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, TYPE_CHECKING

from signdesk.core.geometry import Rect, Size
from signdesk.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from PIL import Image


class MimeCategory(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    GENERIC = "generic"


class SignatureKind(str, Enum):
    AUTO = "auto"      # Generated from name + date
    UPLOAD = "upload"  # Uploaded image


@dataclass(frozen=True)
class DocumentSource:
    """Document as supplied by the upload collaborator."""
    id: str
    name: str
    mime_type: str
    byte_source: object  # bytes, base64 / data URL, local path or http(s) URL
    size: Optional[int] = None
    uploaded_by: Optional[str] = None
    uploaded_by_name: Optional[str] = None
    upload_date: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class DocumentDescriptor:
    """Immutable description of the open document."""
    id: str
    name: str
    mime_category: MimeCategory
    mime_type: str
    source_handle: bytes = field(repr=False)
    native_width: float
    native_height: float
    size: int = 0
    uploaded_by_name: Optional[str] = None
    upload_date: datetime = field(default_factory=utc_now)
    decode_error: Optional[str] = None  # Set when the source could not be measured

    @property
    def native_size(self) -> Size:
        return Size(self.native_width, self.native_height)


@dataclass
class RenderedDocument:
    """CDS raster of the open document."""
    cds_width: int
    cds_height: int
    raster: "Image.Image" = field(repr=False)
    scale: float
    error: Optional[Exception] = None

    @property
    def cds_size(self) -> Size:
        return Size(self.cds_width, self.cds_height)

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class SignatureAsset:
    """Signature image produced by the signing-identity collaborator."""
    id: str
    image_data: str = field(repr=False)  # base64 or data URL
    owner_name: str
    owner_email: Optional[str]
    kind: SignatureKind
    created_at: datetime = field(default_factory=utc_now)
    file_name: Optional[str] = None


@dataclass(frozen=True)
class Placement:
    """One signature overlay; geometry in CDS units."""
    id: str
    signature_asset_ref: str
    x: float
    y: float
    width: float
    height: float
    created_at: datetime = field(default_factory=utc_now)

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "signature_asset_ref": self.signature_asset_ref,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Artifact:
    """Final exported raster/document."""
    id: str
    content: bytes = field(repr=False)
    mime_type: str
    suggested_name: str
    width: int
    height: int
    sha256: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ExportResult:
    """Artifact plus the placement snapshot used to produce it."""
    artifact: Artifact
    placements: Tuple[Placement, ...]
    working_scale: Tuple[float, float]
