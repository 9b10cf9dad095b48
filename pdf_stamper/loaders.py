from __future__ import annotations

import io
import logging
import mimetypes
import re
from pathlib import Path
from typing import Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image

from .errors import LoadFailure, ValidationFailure
from .models import DocumentMeta, SignatureAsset, new_id

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
IMAGE_MIME_TYPES = ("image/png", "image/jpeg", "image/jpg")


def guess_mime_type(path) -> Optional[str]:
    mime, _ = mimetypes.guess_type(str(path))
    return mime


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise LoadFailure(f"Cannot read {path.name}: {e}") from e


def read_document_meta(data: bytes, file_name: str) -> DocumentMeta:
    """Open PDF bytes with PyMuPDF and describe them. Page 1 sets the page size."""
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            page_count = len(doc)
            # CropBox with /Rotate applied; export places stamps in the same box
            rect = doc[0].rect if page_count else None
    except Exception as e:
        raise LoadFailure(f"Cannot open {file_name} as PDF: {e}") from e

    if not page_count or rect is None or rect.width <= 0 or rect.height <= 0:
        raise LoadFailure(f"{file_name} has no usable pages")

    return DocumentMeta(
        file_name_base=re.sub(r"\.pdf$", "", file_name, flags=re.IGNORECASE),
        page_count=page_count,
        page_width=float(rect.width),
        page_height=float(rect.height),
    )


def load_document(path) -> Tuple[DocumentMeta, bytes]:
    path = Path(path)
    if guess_mime_type(path) != PDF_MIME_TYPE:
        raise ValidationFailure(f"{path.name} is not a PDF file")
    data = _read_bytes(path)
    meta = read_document_meta(data, path.name)
    logger.info("Loaded %s (%d pages, %.1f x %.1f pt)", path.name, meta.page_count, meta.page_width, meta.page_height)
    return meta, data


def read_signature_asset(data: bytes, name: str, mime_type: str) -> SignatureAsset:
    if mime_type not in IMAGE_MIME_TYPES:
        raise ValidationFailure(f"{name}: only PNG or JPEG images can be used as signatures")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            width, height = img.size
    except Exception as e:
        raise LoadFailure(f"Cannot read image {name}: {e}") from e
    if width <= 0 or height <= 0:
        raise LoadFailure(f"Image {name} is empty")

    return SignatureAsset(
        id=new_id(),
        name=name,
        data=data,
        mime_type=mime_type,
        natural_width=width,
        natural_height=height,
    )


def load_signature_asset(path) -> SignatureAsset:
    path = Path(path)
    mime = guess_mime_type(path)
    if mime not in IMAGE_MIME_TYPES:
        raise ValidationFailure(f"{path.name}: only PNG or JPEG images can be used as signatures")
    asset = read_signature_asset(_read_bytes(path), path.name, mime)
    logger.info("Loaded signature %s (%dx%d px)", asset.name, asset.natural_width, asset.natural_height)
    return asset
