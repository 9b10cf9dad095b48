from __future__ import annotations

import io
import uuid
from dataclasses import dataclass, field
from typing import Tuple

from PIL import Image


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class DocumentMeta:
    """The loaded PDF. Page 1 sets the page size for every page."""
    file_name_base: str
    page_count: int
    page_width: float
    page_height: float


@dataclass(frozen=True)
class SignatureAsset:
    """An uploaded signature image. Never changes after upload."""
    id: str
    name: str
    data: bytes = field(repr=False)
    mime_type: str
    natural_width: int
    natural_height: int

    @property
    def aspect(self) -> float:
        return self.natural_height / self.natural_width if self.natural_width else 1.0

    def thumbnail(self, max_px: int) -> Image.Image:
        """Display copy no larger than ``max_px`` on either side, with alpha."""
        img = self.to_image().convert("RGBA")
        img.thumbnail((max_px, max_px))
        return img

    def to_image(self) -> Image.Image:
        img = Image.open(io.BytesIO(self.data))
        img.load()
        return img


@dataclass(frozen=True)
class Geometry:
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


@dataclass(frozen=True)
class PlacedSignature:
    """A signature instance on the page (points, top-left origin)."""
    id: str
    asset_id: str
    x: float
    y: float
    width: float
    height: float
    rotation: int
    z_index: int
    opacity: float = 1.0

    @property
    def geometry(self) -> Geometry:
        return Geometry(self.x, self.y, self.width, self.height, self.rotation)

    @property
    def center(self) -> Tuple[float, float]:
        return self.geometry.center
