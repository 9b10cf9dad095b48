"""Pointer-driven move / resize / rotate of placed signatures.

A gesture captures a :class:`GestureSnapshot` at pointer-down. Every
pointer-move recomputes the whole frame from that snapshot and the current
pointer position, so nothing accumulates between events.

Pointer coordinates are viewport pixels relative to the page's top-left
corner.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .config import (
    HANDLE_SIZE_PX, HIT_TOLERANCE_PX, MIN_SIZE_PTS, ROTATE_HANDLE_OFFSET_PX,
)
from .coordinates import clamp, normalize_angle, pixels_to_units, units_to_pixels
from .errors import ValidationFailure
from .models import Geometry, PlacedSignature

logger = logging.getLogger(__name__)


class DragMode(Enum):
    MOVE = "move"
    RESIZE_TOP_LEFT = "resize-tl"
    RESIZE_TOP_RIGHT = "resize-tr"
    RESIZE_BOTTOM_LEFT = "resize-bl"
    RESIZE_BOTTOM_RIGHT = "resize-br"
    ROTATE = "rotate"

    @property
    def is_resize(self) -> bool:
        return self.value.startswith("resize")


# Corner -> normalized position on the box, (-1, -1) is top-left.
CORNERS: Dict[DragMode, Tuple[int, int]] = {
    DragMode.RESIZE_TOP_LEFT: (-1, -1),
    DragMode.RESIZE_TOP_RIGHT: (1, -1),
    DragMode.RESIZE_BOTTOM_LEFT: (-1, 1),
    DragMode.RESIZE_BOTTOM_RIGHT: (1, 1),
}


@dataclass(frozen=True)
class PageBounds:
    width: float
    height: float


@dataclass(frozen=True)
class GestureSnapshot:
    item_id: str
    mode: DragMode
    geometry: Geometry
    start_x: float
    start_y: float

    @property
    def aspect(self) -> float:
        return self.geometry.height / self.geometry.width


# ---------------- Frame computation

def move_frame(snapshot: GestureSnapshot, pointer_x: float, pointer_y: float,
               bounds: PageBounds, scale: float) -> Geometry:
    g = snapshot.geometry
    dx = pixels_to_units(pointer_x - snapshot.start_x, scale)
    dy = pixels_to_units(pointer_y - snapshot.start_y, scale)
    return dataclasses.replace(
        g,
        x=clamp(g.x + dx, 0, bounds.width - g.width),
        y=clamp(g.y + dy, 0, bounds.height - g.height),
    )


def width_limits(aspect: float, bounds: PageBounds, min_size: float = MIN_SIZE_PTS) -> Tuple[float, float]:
    """Smallest and largest aspect-locked width that keeps both sides legal."""
    lo = max(min_size, min_size / aspect)
    hi = min(bounds.width, bounds.height / aspect)
    return lo, max(lo, hi)


def resize_frame(snapshot: GestureSnapshot, pointer_x: float, pointer_y: float,
                 bounds: PageBounds, scale: float, min_size: float = MIN_SIZE_PTS) -> Geometry:
    """
    Aspect-locked resize anchored on the corner opposite the dragged one.

    Only horizontal pointer motion counts; height follows the width. Top
    corners move Y so the bottom edge stays put, bottom corners leave Y alone.
    """
    g = snapshot.geometry
    mode = snapshot.mode
    aspect = snapshot.aspect
    dx = pixels_to_units(pointer_x - snapshot.start_x, scale)

    grabs_right = mode in (DragMode.RESIZE_TOP_RIGHT, DragMode.RESIZE_BOTTOM_RIGHT)
    grabs_top = mode in (DragMode.RESIZE_TOP_LEFT, DragMode.RESIZE_TOP_RIGHT)

    lo, hi = width_limits(aspect, bounds, min_size)
    width = clamp(g.width + dx if grabs_right else g.width - dx, lo, hi)
    height = width * aspect

    x = g.x if grabs_right else g.x + (g.width - width)
    y = g.y - (height - g.height) if grabs_top else g.y

    return Geometry(
        x=clamp(x, 0, bounds.width - width),
        y=clamp(y, 0, bounds.height - height),
        width=width,
        height=height,
        rotation=g.rotation,
    )


def rotate_frame(snapshot: GestureSnapshot, pointer_x: float, pointer_y: float, scale: float) -> Geometry:
    """Whole-degree angle from the snapshot centre to the pointer.

    The handle sits at 12 o'clock, atan2 measures from 3 o'clock, hence +90.
    """
    cx_pts, cy_pts = snapshot.geometry.center
    cx = units_to_pixels(cx_pts, scale)
    cy = units_to_pixels(cy_pts, scale)
    angle = math.degrees(math.atan2(pointer_y - cy, pointer_x - cx)) + 90
    snapped = int(round(normalize_angle(angle))) % 360
    return dataclasses.replace(snapshot.geometry, rotation=snapped)


def compute_frame(snapshot: GestureSnapshot, pointer_x: float, pointer_y: float,
                  bounds: PageBounds, scale: float) -> Geometry:
    if snapshot.mode is DragMode.MOVE:
        return move_frame(snapshot, pointer_x, pointer_y, bounds, scale)
    if snapshot.mode is DragMode.ROTATE:
        return rotate_frame(snapshot, pointer_x, pointer_y, scale)
    return resize_frame(snapshot, pointer_x, pointer_y, bounds, scale)


# ---------------- Handles / hit testing

def _rotate_vec(x: float, y: float, degrees: float) -> Tuple[float, float]:
    # Y points down, so a positive angle turns clockwise on screen.
    rad = math.radians(degrees)
    cos_r, sin_r = math.cos(rad), math.sin(rad)
    return x * cos_r - y * sin_r, x * sin_r + y * cos_r


def handle_positions(item: PlacedSignature, scale: float) -> Dict[DragMode, Tuple[float, float]]:
    """Pixel positions of the corner and rotate handles, rotation applied."""
    cx_pts, cy_pts = item.center
    cx, cy = units_to_pixels(cx_pts, scale), units_to_pixels(cy_pts, scale)
    hw = units_to_pixels(item.width, scale) / 2
    hh = units_to_pixels(item.height, scale) / 2

    positions = {}
    for mode, (nx, ny) in CORNERS.items():
        ox, oy = _rotate_vec(nx * hw, ny * hh, item.rotation)
        positions[mode] = (cx + ox, cy + oy)
    ox, oy = _rotate_vec(0, -hh - ROTATE_HANDLE_OFFSET_PX, item.rotation)
    positions[DragMode.ROTATE] = (cx + ox, cy + oy)
    return positions


def outline_points(item: PlacedSignature, scale: float) -> list:
    """Rotated box corners, clockwise from top-left, as a flat list."""
    pos = handle_positions(item, scale)
    points = []
    for mode in (DragMode.RESIZE_TOP_LEFT, DragMode.RESIZE_TOP_RIGHT,
                 DragMode.RESIZE_BOTTOM_RIGHT, DragMode.RESIZE_BOTTOM_LEFT):
        points.extend(pos[mode])
    return points


def handle_at(item: PlacedSignature, pointer_x: float, pointer_y: float, scale: float,
              selected: bool = True) -> Optional[DragMode]:
    """Which part of ``item`` is under the pointer.

    Handles are only live on the selected item. Order: rotate, corners, body.
    """
    if selected:
        reach = HANDLE_SIZE_PX / 2 + HIT_TOLERANCE_PX
        positions = handle_positions(item, scale)
        for mode in (DragMode.ROTATE,) + tuple(CORNERS):
            hx, hy = positions[mode]
            if abs(pointer_x - hx) <= reach and abs(pointer_y - hy) <= reach:
                return mode

    cx_pts, cy_pts = item.center
    lx, ly = _rotate_vec(
        pointer_x - units_to_pixels(cx_pts, scale),
        pointer_y - units_to_pixels(cy_pts, scale),
        -item.rotation,
    )
    if abs(lx) <= units_to_pixels(item.width, scale) / 2 and abs(ly) <= units_to_pixels(item.height, scale) / 2:
        return DragMode.MOVE
    return None


def item_at(items: Iterable[PlacedSignature], pointer_x: float, pointer_y: float, scale: float,
            selected_id: Optional[str] = None) -> Optional[Tuple[PlacedSignature, DragMode]]:
    """Topmost item (and the grabbed part) under the pointer."""
    ordered = sorted(items, key=lambda i: i.z_index, reverse=True)
    # Handles of the selection stick out of its box, check them first
    for item in ordered:
        if item.id == selected_id:
            mode = handle_at(item, pointer_x, pointer_y, scale, selected=True)
            if mode is not None and mode is not DragMode.MOVE:
                return item, mode
    for item in ordered:
        if handle_at(item, pointer_x, pointer_y, scale, selected=False) is DragMode.MOVE:
            return item, DragMode.MOVE
    return None


# ---------------- State machine

class ManipulationController:
    """
    idle -> dragging(mode, snapshot) -> idle.

    Writes each frame to the store through the named operation for the mode.
    """

    def __init__(self, store) -> None:
        self._store = store
        self._snapshot: Optional[GestureSnapshot] = None

    @property
    def dragging(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> Optional[GestureSnapshot]:
        return self._snapshot

    @property
    def mode(self) -> Optional[DragMode]:
        return self._snapshot.mode if self._snapshot else None

    def begin(self, item_id: str, mode: DragMode, pointer_x: float, pointer_y: float) -> GestureSnapshot:
        if self._snapshot is not None:
            self.end()
        if self._store.document is None:
            raise ValidationFailure("No document loaded")
        item = self._store.get_item(item_id)
        if item is None:
            raise ValidationFailure(f"Unknown signature {item_id}")

        self._store.select(item_id)
        self._snapshot = GestureSnapshot(
            item_id=item_id,
            mode=mode,
            geometry=item.geometry,
            start_x=float(pointer_x),
            start_y=float(pointer_y),
        )
        logger.debug("Gesture %s started on %s", mode.value, item_id)
        return self._snapshot

    def update(self, pointer_x: float, pointer_y: float, scale: float) -> Optional[Geometry]:
        snap = self._snapshot
        if snap is None:
            return None
        doc = self._store.document
        if doc is None or self._store.get_item(snap.item_id) is None:
            logger.debug("Signature %s vanished mid-gesture", snap.item_id)
            self.end()
            return None

        frame = compute_frame(snap, pointer_x, pointer_y, PageBounds(doc.page_width, doc.page_height), scale)
        if snap.mode is DragMode.MOVE:
            self._store.move_item(snap.item_id, frame.x, frame.y)
        elif snap.mode is DragMode.ROTATE:
            self._store.rotate_item(snap.item_id, frame.rotation)
        else:
            self._store.resize_item(snap.item_id, frame.x, frame.y, frame.width, frame.height)
        return frame

    def end(self) -> None:
        if self._snapshot is not None:
            logger.debug("Gesture %s ended on %s", self._snapshot.mode.value, self._snapshot.item_id)
        self._snapshot = None
