from __future__ import annotations

import dataclasses
import logging
from typing import Callable, List, Optional, Tuple

from .config import (
    DUPLICATE_OFFSET_PTS, MIN_SIZE_PTS, ZOOM_MAX, ZOOM_MIN, ZOOM_STEP,
)
from .coordinates import clamp, normalize_angle
from .errors import ValidationFailure
from .models import DocumentMeta, PlacedSignature, SignatureAsset, new_id

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class EditorStore:
    """
    Editor state: the loaded document, uploaded assets, placed signatures,
    selection and zoom.

    Every change goes through a named method. Listeners are called after each
    change, so a drag is observed frame by frame.
    """

    def __init__(self) -> None:
        self.document: Optional[DocumentMeta] = None
        self.document_data: Optional[bytes] = None
        self._assets: List[SignatureAsset] = []
        self._items: List[PlacedSignature] = []
        self.selected_id: Optional[str] = None
        self.zoom: float = 1.0
        self._last_z = 0
        self._listeners: List[Listener] = []

    # ---------------- Observers
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    # ---------------- Document
    def set_document(self, meta: DocumentMeta, data: bytes) -> None:
        """Replace the document. Placed signatures are dropped, assets kept."""
        self.document = meta
        self.document_data = data
        self._items = []
        self.selected_id = None
        self._changed()

    def reset_document(self) -> None:
        self.document = None
        self.document_data = None
        self._items = []
        self.selected_id = None
        self._changed()

    # ---------------- Assets
    @property
    def assets(self) -> Tuple[SignatureAsset, ...]:
        return tuple(self._assets)

    def get_asset(self, asset_id: str) -> Optional[SignatureAsset]:
        for asset in self._assets:
            if asset.id == asset_id:
                return asset
        return None

    def add_asset(self, asset: SignatureAsset) -> SignatureAsset:
        if self.get_asset(asset.id) is not None:
            raise ValidationFailure(f"Duplicate asset id {asset.id}")
        self._assets.append(asset)
        self._changed()
        return asset

    def remove_asset(self, asset_id: str) -> None:
        """Remove an asset and every signature placed from it."""
        self._assets = [a for a in self._assets if a.id != asset_id]
        removed = [i.id for i in self._items if i.asset_id == asset_id]
        self._items = [i for i in self._items if i.asset_id != asset_id]
        if self.selected_id in removed:
            self.selected_id = None
        if removed:
            logger.info("Removed asset %s and %d placed signature(s)", asset_id, len(removed))
        self._changed()

    # ---------------- Items
    @property
    def items(self) -> Tuple[PlacedSignature, ...]:
        return tuple(self._items)

    def items_by_z(self) -> List[PlacedSignature]:
        return sorted(self._items, key=lambda i: i.z_index)

    def get_item(self, item_id: str) -> Optional[PlacedSignature]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    @property
    def selected_item(self) -> Optional[PlacedSignature]:
        return self.get_item(self.selected_id) if self.selected_id else None

    def _next_z(self) -> int:
        self._last_z = max([self._last_z] + [i.z_index for i in self._items]) + 1
        return self._last_z

    def _fit(self, x: float, y: float, w: float, h: float) -> Tuple[float, float, float, float]:
        if self.document is None:
            return x, y, w, h
        pw, ph = self.document.page_width, self.document.page_height
        w = clamp(w, MIN_SIZE_PTS, pw)
        h = clamp(h, MIN_SIZE_PTS, ph)
        return clamp(x, 0, pw - w), clamp(y, 0, ph - h), w, h

    def _replace(self, item_id: str, **changes) -> Optional[PlacedSignature]:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                updated = dataclasses.replace(item, **changes)
                self._items[idx] = updated
                self._changed()
                return updated
        return None

    def add_item(
        self,
        asset_id: str,
        x: float,
        y: float,
        width: float,
        height: float,
        rotation: float = 0,
    ) -> PlacedSignature:
        if self.get_asset(asset_id) is None:
            raise ValidationFailure(f"Unknown signature asset {asset_id}")
        x, y, width, height = self._fit(x, y, width, height)
        item = PlacedSignature(
            id=new_id(),
            asset_id=asset_id,
            x=x,
            y=y,
            width=width,
            height=height,
            rotation=int(round(normalize_angle(rotation))) % 360,
            z_index=self._next_z(),
            opacity=1.0,
        )
        self._items.append(item)
        self.selected_id = item.id
        self._changed()
        return item

    def move_item(self, item_id: str, x: float, y: float) -> Optional[PlacedSignature]:
        item = self.get_item(item_id)
        if item is None:
            return None
        x, y, _, _ = self._fit(x, y, item.width, item.height)
        return self._replace(item_id, x=x, y=y)

    def resize_item(self, item_id: str, x: float, y: float, width: float, height: float) -> Optional[PlacedSignature]:
        x, y, width, height = self._fit(x, y, width, height)
        return self._replace(item_id, x=x, y=y, width=width, height=height)

    def rotate_item(self, item_id: str, rotation: float) -> Optional[PlacedSignature]:
        return self._replace(item_id, rotation=int(round(normalize_angle(rotation))) % 360)

    def set_opacity(self, item_id: str, opacity: float) -> Optional[PlacedSignature]:
        return self._replace(item_id, opacity=clamp(float(opacity), 0.0, 1.0))

    def remove_item(self, item_id: str) -> None:
        self._items = [i for i in self._items if i.id != item_id]
        if self.selected_id == item_id:
            self.selected_id = None
        self._changed()

    def duplicate_item(self, item_id: str) -> Optional[PlacedSignature]:
        item = self.get_item(item_id)
        if item is None:
            return None
        x, y, w, h = self._fit(
            item.x + DUPLICATE_OFFSET_PTS, item.y + DUPLICATE_OFFSET_PTS, item.width, item.height
        )
        dup = dataclasses.replace(item, id=new_id(), x=x, y=y, width=w, height=h, z_index=self._next_z())
        self._items.append(dup)
        self.selected_id = dup.id
        self._changed()
        return dup

    # ---------------- Selection
    def select(self, item_id: Optional[str]) -> None:
        if item_id is not None and self.get_item(item_id) is None:
            return
        if self.selected_id != item_id:
            self.selected_id = item_id
            self._changed()

    def deselect_all(self) -> None:
        self.select(None)

    # ---------------- Zoom
    def set_zoom(self, zoom: float) -> None:
        self.zoom = clamp(float(zoom), ZOOM_MIN, ZOOM_MAX)
        self._changed()

    def zoom_in(self) -> None:
        self.set_zoom(round(min(self.zoom + ZOOM_STEP, ZOOM_MAX) * 100) / 100)

    def zoom_out(self) -> None:
        self.set_zoom(round(max(self.zoom - ZOOM_STEP, ZOOM_MIN) * 100) / 100)
