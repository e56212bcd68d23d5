"""
Geometry primitives shared by the viewer and the compositor.

Coordinate convention: origin top-left, x grows right, y grows down
(the raster/browser convention). All document geometry lives in the
canonical document space (CDS) of the open document.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    @property
    def longest(self) -> float:
        return max(self.width, self.height)


class Corner(str, Enum):
    """Resize handle / rectangle corner."""
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"

    @property
    def opposite(self) -> "Corner":
        return _OPPOSITE[self]

    @property
    def is_west(self) -> bool:
        return self in (Corner.NW, Corner.SW)

    @property
    def is_north(self) -> bool:
        return self in (Corner.NW, Corner.NE)


_OPPOSITE = {
    Corner.NW: Corner.SE,
    Corner.SE: Corner.NW,
    Corner.NE: Corner.SW,
    Corner.SW: Corner.NE,
}


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle: top-left corner plus size."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def corner(self, corner: Corner) -> Point:
        return Point(
            self.x if corner.is_west else self.right,
            self.y if corner.is_north else self.bottom,
        )

    def contains(self, point: Point) -> bool:
        return self.x <= point.x <= self.right and self.y <= point.y <= self.bottom

    def scaled(self, sx: float, sy: Optional[float] = None) -> "Rect":
        """Multiply every component; sy defaults to sx (uniform)."""
        if sy is None:
            sy = sx
        return Rect(self.x * sx, self.y * sy, self.width * sx, self.height * sy)

    def approx_equal(self, other: "Rect", tolerance: float = 1e-9) -> bool:
        return (
            abs(self.x - other.x) <= tolerance
            and abs(self.y - other.y) <= tolerance
            and abs(self.width - other.width) <= tolerance
            and abs(self.height - other.height) <= tolerance
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]; when low > high the lower bound wins."""
    return max(low, min(value, high))


def clamp_rect(rect: Rect, bounds: Size) -> Rect:
    """
    Return a rectangle confined within (0, 0, bounds.width, bounds.height).

    The rectangle is translated back inside; if it is larger than the bounds
    it is first shrunk to fit.
    """
    width = min(rect.width, bounds.width)
    height = min(rect.height, bounds.height)
    x = clamp(rect.x, 0.0, bounds.width - width)
    y = clamp(rect.y, 0.0, bounds.height - height)
    return Rect(x, y, width, height)


def fit_scale(
    native: Size,
    container: Size,
    max_multiplier: float,
    min_dimension: float,
) -> float:
    """
    Uniform fit-to-viewport scale for a document of `native` size.

    scale = min(containerW / nativeW, containerH / nativeH, max_multiplier),
    then raised so the longest side is at least `min_dimension` pixels.
    A single factor is used for both axes so the aspect ratio is preserved.

    Raises:
        ValueError: If the native size is not positive
    """
    if native.width <= 0 or native.height <= 0:
        raise ValueError(f"Native size must be positive, got {native.width}x{native.height}")

    scale = min(
        container.width / native.width,
        container.height / native.height,
        max_multiplier,
    )

    if native.longest * scale < min_dimension:
        scale = min_dimension / native.longest

    return scale


def scaled_size(native: Size, scale: float) -> Tuple[int, int]:
    """Integer raster size for native * scale (never below 1x1)."""
    return (
        max(1, round(native.width * scale)),
        max(1, round(native.height * scale)),
    )
