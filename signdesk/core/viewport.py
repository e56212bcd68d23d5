"""
Viewport transform: CDS <-> screen space under a zoom factor.

Screen geometry for any placement is always `cds_value * zoom`; the inverse
divides by the *current* zoom. Pointer events arrive in client (page) CSS
pixels and pass through two distinct ratios before reaching CDS:

1. CSS box -> raster buffer pixels (the displayed surface may be scaled by
   the page, e.g. HiDPI buffers or CSS max-width), giving screen space;
2. screen space -> CDS, dividing by the zoom factor.

The export path uses a separate working scale (working raster / CDS raster);
zoom never enters export math.
"""
from dataclasses import dataclass
from typing import Tuple

from signdesk.core.geometry import Point, Rect, Size, clamp

ZOOM_MIN = 0.5
ZOOM_MAX = 3.0
ZOOM_STEP = 0.25
DEFAULT_ZOOM = 1.0


@dataclass(frozen=True)
class SurfaceGeometry:
    """Bounding box of the displayed document surface and its raster buffer size."""
    left: float
    top: float
    css_width: float
    css_height: float
    buffer_width: float
    buffer_height: float

    @property
    def ratio_x(self) -> float:
        return self.buffer_width / self.css_width

    @property
    def ratio_y(self) -> float:
        return self.buffer_height / self.css_height

    @classmethod
    def unscaled(cls, cds: Size, zoom: float, left: float = 0.0, top: float = 0.0) -> "SurfaceGeometry":
        """Surface displayed 1:1 (CSS size equals buffer size equals cds * zoom)."""
        width = cds.width * zoom
        height = cds.height * zoom
        return cls(left, top, width, height, width, height)


def to_screen(cds_rect: Rect, zoom: float) -> Rect:
    return cds_rect.scaled(zoom)


def to_cds(screen_rect: Rect, zoom: float) -> Rect:
    return Rect(
        screen_rect.x / zoom,
        screen_rect.y / zoom,
        screen_rect.width / zoom,
        screen_rect.height / zoom,
    )


def point_to_screen(point: Point, zoom: float) -> Point:
    return Point(point.x * zoom, point.y * zoom)


def point_to_cds(point: Point, zoom: float) -> Point:
    return Point(point.x / zoom, point.y / zoom)


def client_to_screen(client_x: float, client_y: float, surface: SurfaceGeometry) -> Point:
    """Map client (page) CSS coordinates to screen (raster buffer) coordinates."""
    if surface.css_width <= 0 or surface.css_height <= 0:
        raise ValueError("Surface has no visible area")
    return Point(
        (client_x - surface.left) * surface.ratio_x,
        (client_y - surface.top) * surface.ratio_y,
    )


def pointer_to_cds(client_x: float, client_y: float, surface: SurfaceGeometry, zoom: float) -> Point:
    """Map a raw pointer event into CDS: CSS -> buffer ratio first, then zoom."""
    return point_to_cds(client_to_screen(client_x, client_y, surface), zoom)


def clamp_zoom(zoom: float, low: float = ZOOM_MIN, high: float = ZOOM_MAX) -> float:
    """Out-of-range zoom requests are clamped to the nearest bound, never rejected."""
    return clamp(float(zoom), low, high)


def step_zoom(
    zoom: float,
    direction: int,
    step: float = ZOOM_STEP,
    low: float = ZOOM_MIN,
    high: float = ZOOM_MAX,
) -> float:
    """Zoom in (direction > 0) or out (direction < 0) by one step."""
    delta = step if direction > 0 else -step
    return clamp_zoom(zoom + delta, low, high)


@dataclass(frozen=True)
class WorkingScale:
    """CDS -> working-resolution scale, per axis (equal up to integer rounding)."""
    sx: float
    sy: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.sx, self.sy)


def working_scale(working: Size, cds: Size) -> WorkingScale:
    """workingScale = workingDimension / onScreenCdsDimension."""
    if cds.width <= 0 or cds.height <= 0:
        raise ValueError(f"CDS size must be positive, got {cds.width}x{cds.height}")
    return WorkingScale(working.width / cds.width, working.height / cds.height)


def to_working(cds_rect: Rect, scale: WorkingScale) -> Rect:
    return cds_rect.scaled(scale.sx, scale.sy)
