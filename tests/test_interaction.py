"""
Tests for the interaction controller: click-to-place, drag and resize.
"""
import pytest

from signdesk.core.geometry import Corner, Point, Rect, Size
from signdesk.core.interaction import GestureState, InteractionController, PointerCapture
from signdesk.core.overlay_store import OverlayStore
from signdesk.core.types import Placement, SignatureAsset, SignatureKind

BOUNDS = Size(800, 1000)


class Zoom:
    def __init__(self, value: float = 1.0):
        self.value = value

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def zoom():
    return Zoom()


@pytest.fixture
def store():
    return OverlayStore()


@pytest.fixture
def controller(store, zoom):
    return InteractionController(store, BOUNDS, zoom)


@pytest.fixture
def asset():
    return SignatureAsset(
        id="sig_A",
        image_data="",
        owner_name="Test Signer",
        owner_email=None,
        kind=SignatureKind.UPLOAD,
    )


def add(store, pid="plc_A", x=100.0, y=100.0, width=250.0, height=100.0) -> Placement:
    return store.add(Placement(id=pid, signature_asset_ref="sig_A", x=x, y=y, width=width, height=height))


def assert_inside(placement: Placement):
    assert placement.x >= 0
    assert placement.y >= 0
    assert placement.x + placement.width <= BOUNDS.width
    assert placement.y + placement.height <= BOUNDS.height


class TestPlacement:
    """Click-to-place in placement mode."""

    def test_click_centers_default_box(self, controller, asset):
        """CDS 800x1000, click at (400,500) -> {275,450,250,100}."""
        controller.arm(asset)
        assert controller.state == GestureState.PLACEMENT_ARMED

        placement = controller.click(Point(400, 500))

        assert placement.rect == Rect(275, 450, 250, 100)
        assert placement.signature_asset_ref == "sig_A"
        assert controller.state == GestureState.IDLE
        assert controller.selected_id == placement.id

    def test_click_under_zoom_maps_to_cds(self, controller, asset, zoom):
        """At zoom 2 the screen point is halved before placing."""
        zoom.value = 2.0
        controller.arm(asset)
        placement = controller.click(Point(800, 1000))
        assert placement.rect == Rect(275, 450, 250, 100)

    def test_click_near_edge_clamped(self, controller, asset):
        controller.arm(asset)
        placement = controller.click(Point(790, 990))
        assert placement.rect == Rect(550, 900, 250, 100)

    def test_default_box_shrunk_on_small_document(self, store, zoom, asset):
        controller = InteractionController(store, Size(200, 80), zoom)
        controller.arm(asset)
        placement = controller.click(Point(100, 40))
        assert placement.rect == Rect(0, 0, 200, 80)

    def test_each_click_needs_arming(self, controller, store, asset):
        controller.arm(asset)
        controller.click(Point(400, 500))
        assert controller.click(Point(100, 100)) is None
        assert len(store) == 1

    def test_disarm(self, controller, asset):
        controller.arm(asset)
        controller.disarm()
        assert controller.state == GestureState.IDLE
        assert controller.click(Point(400, 500)) is None

    def test_idle_click_selects_topmost(self, controller, store):
        add(store, "plc_A", 100, 100)
        add(store, "plc_B", 200, 150)
        controller.click(Point(250, 160))
        assert controller.selected_id == "plc_B"
        controller.click(Point(700, 900))
        assert controller.selected_id is None


class TestDrag:
    """Dragging moves without resizing and stays inside the document."""

    def test_drag_moves_by_delta(self, controller, store):
        add(store)
        assert controller.pointer_down(Point(200, 150)) == GestureState.DRAGGING
        moved = controller.pointer_move(Point(260, 190))
        assert moved.rect == Rect(160, 140, 250, 100)

    def test_drag_under_zoom_divides_delta(self, controller, store, zoom):
        """Screen delta 100 at zoom 2 is a CDS delta of 50."""
        zoom.value = 2.0
        add(store)
        controller.pointer_down(Point(300, 300))
        moved = controller.pointer_move(Point(400, 300))
        assert moved.rect == Rect(150, 100, 250, 100)

    def test_drag_clamped_continuously(self, controller, store):
        """Clamping happens on every move, not only on release."""
        add(store)
        controller.pointer_down(Point(200, 150))
        moved = controller.pointer_move(Point(5000, -5000))
        assert moved.rect == Rect(550, 0, 250, 100)
        assert_inside(store.get("plc_A"))

    def test_pointer_up_outside_bounds_releases_capture(self, controller, store):
        add(store)
        controller.pointer_down(Point(200, 150))
        assert controller.capture.active

        final = controller.pointer_up(Point(-300, -300))

        assert final.rect == Rect(0, 0, 250, 100)
        assert controller.state == GestureState.IDLE
        assert not controller.capture.active

    def test_second_pointer_down_ignored(self, controller, store):
        add(store, "plc_A", 100, 100)
        add(store, "plc_B", 400, 600)
        controller.pointer_down(Point(200, 150))
        assert controller.pointer_down(Point(450, 650)) is None
        assert controller.gesture.placement_id == "plc_A"

    def test_pointer_down_ignored_while_armed(self, controller, store, asset):
        add(store)
        controller.arm(asset)
        assert controller.pointer_down(Point(200, 150)) is None
        assert controller.state == GestureState.PLACEMENT_ARMED

    def test_pointer_down_on_empty_area(self, controller, store):
        add(store)
        assert controller.pointer_down(Point(700, 900)) is None
        assert not controller.capture.active

    def test_cancel_restores_start(self, controller, store):
        add(store)
        controller.pointer_down(Point(200, 150))
        controller.pointer_move(Point(400, 400))
        restored = controller.cancel()
        assert restored.rect == Rect(100, 100, 250, 100)
        assert not controller.capture.active

    def test_placement_removed_mid_gesture(self, controller, store):
        add(store)
        controller.pointer_down(Point(200, 150))
        store.remove("plc_A")
        assert controller.pointer_move(Point(300, 300)) is None
        assert controller.state == GestureState.IDLE
        assert not controller.capture.active


class TestResize:
    """Corner resize keeps the opposite corner fixed."""

    @pytest.fixture
    def selected(self, controller, store):
        add(store)
        controller.select("plc_A")
        return store.get("plc_A")

    def test_se_handle(self, controller, selected):
        assert controller.pointer_down(Point(350, 200)) == GestureState.RESIZING
        assert controller.gesture.handle == Corner.SE
        resized = controller.pointer_move(Point(450, 260))
        assert resized.rect == Rect(100, 100, 350, 160)

    def test_nw_handle_keeps_se_corner(self, controller, selected):
        controller.pointer_down(Point(100, 100))
        resized = controller.pointer_move(Point(50, 80))
        assert resized.rect == Rect(50, 80, 300, 120)
        assert resized.rect.corner(Corner.SE) == Point(350, 200)

    @pytest.mark.parametrize("corner", list(Corner))
    def test_opposite_corner_fixed(self, controller, selected, corner):
        start = selected.rect
        anchor = start.corner(corner.opposite)
        handle = start.corner(corner)
        controller.pointer_down(handle)
        resized = controller.pointer_move(Point(handle.x + 37, handle.y - 23))
        assert resized.rect.corner(corner.opposite) == anchor

    def test_minimum_size_enforced(self, controller, selected):
        controller.pointer_down(Point(350, 200))
        resized = controller.pointer_move(Point(110, 105))
        assert resized.rect == Rect(100, 100, 50, 30)

    def test_nw_past_opposite_corner_floors_size(self, controller, selected):
        controller.pointer_down(Point(100, 100))
        resized = controller.pointer_move(Point(400, 300))
        assert resized.rect == Rect(300, 170, 50, 30)

    def test_resize_clamped_to_document(self, controller, selected):
        controller.pointer_down(Point(350, 200))
        resized = controller.pointer_move(Point(2000, 2000))
        assert resized.rect == Rect(100, 100, 700, 900)
        assert_inside(resized)

    def test_resize_under_zoom(self, controller, selected, zoom):
        """Handles are hit in screen space; deltas are committed in CDS."""
        zoom.value = 1.5
        controller.pointer_down(Point(525, 300))  # SE corner at zoom 1.5
        resized = controller.pointer_move(Point(600, 300))
        assert resized.rect.width == pytest.approx(300)
        assert resized.rect.height == pytest.approx(100)

    def test_handle_only_on_selected(self, controller, store):
        """An unselected placement's corner starts a drag, not a resize."""
        add(store)
        assert controller.pointer_down(Point(350, 200)) == GestureState.DRAGGING


class TestPointerCapture:
    """Pointer capture lifecycle."""

    def test_acquire_twice_fails(self):
        capture = PointerCapture()
        capture.acquire(lambda p: None, lambda p: None)
        with pytest.raises(RuntimeError):
            capture.acquire(lambda p: None, lambda p: None)

    def test_released_when_commit_fails(self, controller, store, monkeypatch):
        """pointer_up releases capture even when the commit raises."""
        add(store)
        controller.pointer_down(Point(200, 150))

        def broken_update(*args, **kwargs):
            raise ValueError("boom")

        monkeypatch.setattr(store, "update", broken_update)
        with pytest.raises(ValueError):
            controller.pointer_up(Point(210, 160))
        assert not controller.capture.active
        assert controller.state == GestureState.IDLE

    def test_dispatch_without_gesture(self, controller):
        assert controller.pointer_move(Point(1, 1)) is None
        assert controller.pointer_up(Point(1, 1)) is None


class TestInvariants:
    """Bounds hold after arbitrary gesture sequences."""

    def test_random_gestures_stay_inside(self, controller, store):
        import random

        rng = random.Random(1234)
        add(store)
        for _ in range(200):
            controller.select("plc_A")
            rect = store.get("plc_A").rect
            corner = rng.choice(list(Corner) + [None])
            start = rect.center if corner is None else rect.corner(corner)
            assert controller.pointer_down(start) is not None
            for _ in range(3):
                controller.pointer_move(Point(rng.uniform(-500, 1300), rng.uniform(-500, 1500)))
            controller.pointer_up(Point(rng.uniform(-500, 1300), rng.uniform(-500, 1500)))
            assert_inside(store.get("plc_A"))
            assert not controller.capture.active
