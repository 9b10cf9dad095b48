from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import DEFAULT_WIDTH_RATIO
from .coordinates import clamp
from .errors import ExportFailure, ValidationFailure
from .export import EXPORT_MIME_TYPE, export_file_name, export_pdf
from .loaders import IMAGE_MIME_TYPES, guess_mime_type, load_document, load_signature_asset
from .manipulation import PageBounds, width_limits
from .models import DocumentMeta, PlacedSignature
from .store import EditorStore

logger = logging.getLogger(__name__)


class EditorSession:
    """Open / add signature / export, on top of one :class:`EditorStore`."""

    def __init__(self, store: Optional[EditorStore] = None) -> None:
        self.store = store or EditorStore()

    @property
    def document(self) -> Optional[DocumentMeta]:
        return self.store.document

    def open_document(self, path) -> DocumentMeta:
        """Load a PDF. On failure the current document stays as it was."""
        meta, data = load_document(path)
        self.store.set_document(meta, data)
        return meta

    def add_signature(self, path) -> PlacedSignature:
        """Upload an image and place it centred at a quarter of the page width."""
        path = Path(path)
        if guess_mime_type(path) not in IMAGE_MIME_TYPES:
            raise ValidationFailure(f"{path.name}: only PNG or JPEG images can be used as signatures")
        if self.store.document is None:
            raise ValidationFailure("Load a PDF before adding signatures")

        asset = load_signature_asset(path)
        self.store.add_asset(asset)
        return self.place_asset(asset.id)

    def place_asset(self, asset_id: str) -> PlacedSignature:
        """Place another copy of an uploaded image at the default position."""
        meta = self.store.document
        if meta is None:
            raise ValidationFailure("Load a PDF before adding signatures")
        asset = self.store.get_asset(asset_id)
        if asset is None:
            raise ValidationFailure(f"Unknown signature asset {asset_id}")

        lo, hi = width_limits(asset.aspect, PageBounds(meta.page_width, meta.page_height))
        width = clamp(meta.page_width * DEFAULT_WIDTH_RATIO, lo, hi)
        height = width * asset.aspect
        return self.store.add_item(
            asset.id,
            x=(meta.page_width - width) / 2,
            y=(meta.page_height - height) / 2,
            width=width,
            height=height,
        )

    @property
    def can_export(self) -> bool:
        return self.store.document is not None and bool(self.store.items)

    @property
    def default_export_name(self) -> Optional[str]:
        meta = self.store.document
        return export_file_name(meta.file_name_base) if meta else None

    def export_bytes(self) -> bytes:
        meta = self.store.document
        if meta is None or self.store.document_data is None:
            raise ValidationFailure("No PDF loaded")
        if not self.store.items:
            raise ValidationFailure("Place at least one signature before saving")
        return export_pdf(self.store.document_data, self.store.assets, self.store.items, meta.page_height)

    def export_to(self, path) -> Path:
        """Write the stamped PDF. Nothing is written if the name is not a .pdf or composing fails."""
        path = Path(path)
        if guess_mime_type(path) != EXPORT_MIME_TYPE:
            raise ValidationFailure(f"{path.name}: the stamped copy must be saved as a .pdf file")
        data = self.export_bytes()
        try:
            with path.open("wb") as f:
                f.write(data)
        except OSError as e:
            raise ExportFailure(f"Cannot write {path.name}: {e}") from e
        logger.info("Saved %s", path)
        return path
