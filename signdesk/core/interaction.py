"""
Interaction controller: click-to-place, drag and resize as an explicit state machine.

States:
    IDLE             - nothing in progress
    PLACEMENT_ARMED  - a signature asset is selected and awaits a click
    DRAGGING         - pointer is moving a placement body
    RESIZING         - pointer is moving one corner handle of a placement

Pointer input arrives in screen space (CDS * zoom). Every geometry change is
converted back through the current zoom factor and written to the overlay
store in CDS units, clamped to the document bounds on every move (not only
on release). Only one gesture can be active; a second pointer-down is
ignored until the active gesture's pointer-up.
"""
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from signdesk.core.geometry import Corner, Point, Rect, Size, clamp, clamp_rect
from signdesk.core.overlay_store import OverlayStore
from signdesk.core.types import Placement, SignatureAsset
from signdesk.core.viewport import point_to_cds, to_screen

logger = logging.getLogger(__name__)


class GestureState(str, Enum):
    IDLE = "idle"
    PLACEMENT_ARMED = "placement_armed"
    DRAGGING = "dragging"
    RESIZING = "resizing"


@dataclass(frozen=True)
class InteractionLimits:
    """Placement geometry limits (CDS units, handle size in screen pixels)."""
    default_width: float = 250.0
    default_height: float = 100.0
    min_width: float = 50.0
    min_height: float = 30.0
    handle_size: float = 12.0

    @classmethod
    def from_settings(cls, settings) -> "InteractionLimits":
        return cls(
            default_width=settings.default_placement_width,
            default_height=settings.default_placement_height,
            min_width=settings.min_placement_width,
            min_height=settings.min_placement_height,
            handle_size=settings.handle_size,
        )


@dataclass(frozen=True)
class Gesture:
    """An active drag or resize, anchored at its starting geometry."""
    state: GestureState
    placement_id: str
    start_pointer: Point  # CDS
    start_rect: Rect
    handle: Optional[Corner] = None


class PointerCapture:
    """
    Pointer move/up listeners held for the duration of one gesture.

    Listeners are attached when a gesture starts and detached when it ends,
    on every exit path.
    """

    def __init__(self):
        self._on_move: Optional[Callable[[Point], Optional[Placement]]] = None
        self._on_up: Optional[Callable[[Point], Optional[Placement]]] = None

    @property
    def active(self) -> bool:
        return self._on_move is not None

    def acquire(
        self,
        on_move: Callable[[Point], Optional[Placement]],
        on_up: Callable[[Point], Optional[Placement]],
    ) -> None:
        if self.active:
            raise RuntimeError("Pointer capture already held by another gesture")
        self._on_move = on_move
        self._on_up = on_up

    def release(self) -> None:
        self._on_move = None
        self._on_up = None

    def dispatch_move(self, point: Point) -> Optional[Placement]:
        if self._on_move is None:
            return None
        return self._on_move(point)

    def dispatch_up(self, point: Point) -> Optional[Placement]:
        if self._on_up is None:
            return None
        return self._on_up(point)


class InteractionController:
    """Drag/resize/place state machine for one open document."""

    def __init__(
        self,
        store: OverlayStore,
        bounds: Size,
        zoom_provider: Callable[[], float],
        limits: Optional[InteractionLimits] = None,
    ):
        self.store = store
        self.bounds = bounds
        self._zoom = zoom_provider
        self.limits = limits or InteractionLimits()
        self.capture = PointerCapture()

        self._armed: Optional[SignatureAsset] = None
        self._gesture: Optional[Gesture] = None
        self.selected_id: Optional[str] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> GestureState:
        if self._gesture is not None:
            return self._gesture.state
        if self._armed is not None:
            return GestureState.PLACEMENT_ARMED
        return GestureState.IDLE

    @property
    def armed_asset(self) -> Optional[SignatureAsset]:
        return self._armed

    @property
    def gesture(self) -> Optional[Gesture]:
        return self._gesture

    def reset(self, bounds: Optional[Size] = None) -> None:
        """Drop selection, armed asset and any gesture (document switch)."""
        self._end_gesture()
        self._armed = None
        self.selected_id = None
        if bounds is not None:
            self.bounds = bounds

    # ------------------------------------------------------------------
    # Placement mode
    # ------------------------------------------------------------------

    def arm(self, asset: SignatureAsset) -> bool:
        """Enter placement mode with `asset`. Ignored while a gesture is active."""
        if self._gesture is not None:
            logger.debug("arm ignored: gesture in progress")
            return False
        self._armed = asset
        logger.info(f"Placement mode armed with signature {asset.id}")
        return True

    def disarm(self) -> None:
        if self._armed is not None:
            logger.info("Placement mode disarmed")
        self._armed = None

    def click(self, screen_point: Point) -> Optional[Placement]:
        """
        Click on the document surface.

        In placement mode creates a placement centered on the click point and
        returns it; otherwise updates the selection and returns None.
        """
        if self._gesture is not None:
            return None

        if self._armed is None:
            hit = self._placement_at(screen_point)
            self.selected_id = hit.id if hit else None
            return None

        asset = self._armed
        center = point_to_cds(screen_point, self._zoom())
        width = min(self.limits.default_width, self.bounds.width)
        height = min(self.limits.default_height, self.bounds.height)
        rect = clamp_rect(
            Rect(center.x - width / 2, center.y - height / 2, width, height),
            self.bounds,
        )

        placement = Placement(
            id=f"plc_{uuid.uuid4().hex[:12]}",
            signature_asset_ref=asset.id,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
        )
        self.store.add(placement)
        self._armed = None
        self.selected_id = placement.id

        logger.info(
            f"Placement {placement.id} created at ({rect.x:.1f}, {rect.y:.1f}) "
            f"size ({rect.width:.1f}x{rect.height:.1f})"
        )
        return placement

    def select(self, placement_id: Optional[str]) -> None:
        if placement_id is not None:
            self.store.get(placement_id)
        self.selected_id = placement_id

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def hit_test(self, screen_point: Point) -> Optional[Tuple[Placement, Optional[Corner]]]:
        """Return (placement, handle) under the point; handle is None for a body hit."""
        selected = self.store.find(self.selected_id)
        if selected is not None:
            handle = self._handle_at(selected, screen_point)
            if handle is not None:
                return selected, handle

        body = self._placement_at(screen_point)
        if body is not None:
            return body, None
        return None

    def pointer_down(self, screen_point: Point) -> Optional[GestureState]:
        """Start a drag or resize. Returns the new state, or None if ignored."""
        if self._gesture is not None or self._armed is not None:
            return None

        hit = self.hit_test(screen_point)
        if hit is None:
            return None

        placement, handle = hit
        state = GestureState.RESIZING if handle is not None else GestureState.DRAGGING
        gesture = Gesture(
            state=state,
            placement_id=placement.id,
            start_pointer=point_to_cds(screen_point, self._zoom()),
            start_rect=placement.rect,
            handle=handle,
        )
        self.capture.acquire(self._on_move, self._on_up)
        self._gesture = gesture
        self.selected_id = placement.id

        logger.debug(
            f"{state.value} started on {placement.id}"
            + (f" (handle {handle.value})" if handle else "")
        )
        return state

    def pointer_move(self, screen_point: Point) -> Optional[Placement]:
        return self.capture.dispatch_move(screen_point)

    def pointer_up(self, screen_point: Point) -> Optional[Placement]:
        return self.capture.dispatch_up(screen_point)

    def cancel(self) -> Optional[Placement]:
        """Abort the active gesture and restore the placement's starting geometry."""
        gesture = self._gesture
        if gesture is None:
            return None
        try:
            if gesture.placement_id not in self.store:
                return None
            rect = gesture.start_rect
            return self.store.update(
                gesture.placement_id,
                x=rect.x, y=rect.y, width=rect.width, height=rect.height,
            )
        finally:
            self._end_gesture()

    def _on_move(self, screen_point: Point) -> Optional[Placement]:
        gesture = self._gesture
        if gesture is None:
            return None
        if gesture.placement_id not in self.store:
            # Placement removed underneath the gesture
            self._end_gesture()
            return None

        pointer = point_to_cds(screen_point, self._zoom())
        dx = pointer.x - gesture.start_pointer.x
        dy = pointer.y - gesture.start_pointer.y

        if gesture.state == GestureState.DRAGGING:
            rect = self._dragged(gesture.start_rect, dx, dy)
        else:
            rect = self._resized(gesture.start_rect, gesture.handle, dx, dy)

        return self.store.update(
            gesture.placement_id,
            x=rect.x, y=rect.y, width=rect.width, height=rect.height,
        )

    def _on_up(self, screen_point: Point) -> Optional[Placement]:
        gesture = self._gesture
        try:
            placement = self._on_move(screen_point)
            if placement is not None:
                logger.info(
                    f"{gesture.state.value} committed on {placement.id}: "
                    f"({placement.x:.1f}, {placement.y:.1f}) size ({placement.width:.1f}x{placement.height:.1f})"
                )
            return placement
        finally:
            self._end_gesture()

    def _end_gesture(self) -> None:
        self._gesture = None
        self.capture.release()

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def _dragged(self, start: Rect, dx: float, dy: float) -> Rect:
        """Move without resizing, kept inside the document."""
        return Rect(
            clamp(start.x + dx, 0.0, self.bounds.width - start.width),
            clamp(start.y + dy, 0.0, self.bounds.height - start.height),
            start.width,
            start.height,
        )

    def _resized(self, start: Rect, handle: Corner, dx: float, dy: float) -> Rect:
        """
        Move `handle` while the opposite corner stays fixed.

        The dragged corner is clamped to the document and the size is floored
        to the minimum where the document leaves room for it.
        """
        anchor = start.corner(handle.opposite)
        moving = start.corner(handle)
        cx = clamp(moving.x + dx, 0.0, self.bounds.width)
        cy = clamp(moving.y + dy, 0.0, self.bounds.height)

        if handle.is_west:
            left = max(min(cx, anchor.x - self.limits.min_width), 0.0)
            x, width = left, anchor.x - left
        else:
            right = min(max(cx, anchor.x + self.limits.min_width), self.bounds.width)
            x, width = anchor.x, right - anchor.x

        if handle.is_north:
            top = max(min(cy, anchor.y - self.limits.min_height), 0.0)
            y, height = top, anchor.y - top
        else:
            bottom = min(max(cy, anchor.y + self.limits.min_height), self.bounds.height)
            y, height = anchor.y, bottom - anchor.y

        return Rect(x, y, width, height)

    def _placement_at(self, screen_point: Point) -> Optional[Placement]:
        zoom = self._zoom()
        for placement in reversed(self.store.list()):
            if to_screen(placement.rect, zoom).contains(screen_point):
                return placement
        return None

    def _handle_at(self, placement: Placement, screen_point: Point) -> Optional[Corner]:
        screen_rect = to_screen(placement.rect, self._zoom())
        half = self.limits.handle_size / 2
        for corner in Corner:
            c = screen_rect.corner(corner)
            if abs(screen_point.x - c.x) <= half and abs(screen_point.y - c.y) <= half:
                return corner
        return None
