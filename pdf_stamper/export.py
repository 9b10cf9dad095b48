from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, Iterable, List, Tuple

from pypdf import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .config import EXPORT_SUFFIX
from .coordinates import flip_vertical_origin
from .errors import ExportFailure
from .models import PlacedSignature, SignatureAsset

logger = logging.getLogger(__name__)

EXPORT_MIME_TYPE = "application/pdf"


def export_file_name(file_name_base: str) -> str:
    return f"{file_name_base}{EXPORT_SUFFIX}.pdf"


@dataclass(frozen=True)
class DrawPlacement:
    """Where to draw an image in PDF space (bottom-left origin).

    ``rotate`` turns the image counter-clockwise about (x, y).
    """
    x: float
    y: float
    width: float
    height: float
    rotate: float
    opacity: float


def draw_placement(item: PlacedSignature, page_height: float) -> DrawPlacement:
    """
    Map an on-screen signature to PDF drawing parameters.

    On screen the signature turns clockwise about its centre; the PDF canvas
    turns the image about its draw origin. The origin is therefore moved so
    the rotated image ends up centred where the user left it.
    """
    y_bl = flip_vertical_origin(item.y, item.height, page_height)

    if item.rotation == 0:
        return DrawPlacement(item.x, y_bl, item.width, item.height, 0, item.opacity)

    cx = item.x + item.width / 2
    cy = y_bl + item.height / 2
    rad = -item.rotation * math.pi / 180

    half_w, half_h = item.width / 2, item.height / 2
    cos_r, sin_r = math.cos(rad), math.sin(rad)
    draw_x = cx - half_w * cos_r + half_h * sin_r
    draw_y = cy - half_w * sin_r - half_h * cos_r

    return DrawPlacement(draw_x, draw_y, item.width, item.height, -item.rotation, item.opacity)


def _drawable(asset: SignatureAsset):
    img = asset.to_image()
    if img.mode not in ("RGB", "RGBA"):
        keep_alpha = "A" in img.mode or "transparency" in img.info
        img = img.convert("RGBA" if keep_alpha else "RGB")
    return img


def _page_frame(page) -> Tuple[float, float, float, float]:
    """Visible box of a writer page as (left, bottom, width, height).

    ``/Rotate`` is folded into the content first, so the box matches what
    PyMuPDF reports as the page rect.
    """
    if page.rotation:
        page.transfer_rotation_to_content()
    box = page.cropbox
    return float(box.left), float(box.bottom), float(box.width), float(box.height)


def _make_overlay(frame: Tuple[float, float, float, float], draws: List[tuple]) -> bytes:
    """One overlay page in the target page's user space with every signature on it."""
    left, bottom, width, height = frame
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(max(width, left + width), max(height, bottom + height)))
    c.translate(left, bottom)
    for image, placement in draws:
        c.saveState()
        c.translate(placement.x, placement.y)
        if placement.rotate:
            c.rotate(placement.rotate)
        if placement.opacity < 1:
            c.setFillAlpha(placement.opacity)
        c.drawImage(image, 0, 0, width=placement.width, height=placement.height, mask="auto")
        c.restoreState()
    c.showPage()
    c.save()
    return buf.getvalue()


def export_pdf(
    document_bytes: bytes,
    assets: Iterable[SignatureAsset],
    items: Iterable[PlacedSignature],
    page_height: float,
) -> bytes:
    """
    Composite every placed signature onto every page and return the new PDF.

    Signatures are drawn in ascending stacking order. A signature whose asset
    is gone is skipped. Pages sharing a box share one overlay, and identical
    objects are merged before writing, so each image is stored once however
    many pages it lands on. Raises :class:`ExportFailure` if the document
    cannot be read or the output cannot be produced.
    """
    ordered = sorted(items, key=lambda i: i.z_index)
    by_id = {a.id: a for a in assets}

    try:
        writer = PdfWriter(clone_from=PdfReader(BytesIO(document_bytes)))
        images: Dict[str, ImageReader] = {}
        for item in ordered:
            asset = by_id.get(item.asset_id)
            if asset is not None and asset.id not in images:
                images[asset.id] = ImageReader(_drawable(asset))

        draws = []
        for item in ordered:
            image = images.get(item.asset_id)
            if image is None:
                logger.warning("Skipping signature %s: asset %s is missing", item.id, item.asset_id)
                continue
            draws.append((image, draw_placement(item, page_height)))

        if draws:
            overlays: Dict[Tuple[float, float, float, float], PdfReader] = {}
            for page in writer.pages:
                frame = _page_frame(page)
                if frame not in overlays:
                    overlays[frame] = PdfReader(BytesIO(_make_overlay(frame, draws)))
                page.merge_page(overlays[frame].pages[0])
            writer.compress_identical_objects(remove_identicals=True, remove_orphans=True)

        out = BytesIO()
        writer.write(out)
    except Exception as e:
        raise ExportFailure(f"Could not write PDF: {e}") from e

    logger.info("Exported %d page(s) with %d signature(s)", len(writer.pages), len(draws))
    return out.getvalue()
