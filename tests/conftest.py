"""
Shared fixtures: small PDFs built with PyMuPDF, signature images built with
Pillow, and a store with one placed signature.
"""
import io

import fitz  # PyMuPDF
import pytest
from PIL import Image

from pdf_stamper.models import DocumentMeta, SignatureAsset
from pdf_stamper.store import EditorStore

LETTER = (612.0, 792.0)


def make_pdf(pages=2, width=LETTER[0], height=LETTER[1]) -> bytes:
    doc = fitz.open()
    for pno in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"Page {pno + 1}")
    data = doc.tobytes()
    doc.close()
    return data


def make_image(fmt="PNG", size=(300, 100), color="black") -> bytes:
    mode = "RGBA" if fmt == "PNG" else "RGB"
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, fmt)
    return buf.getvalue()


@pytest.fixture
def pdf_bytes():
    return make_pdf()


@pytest.fixture
def png_bytes():
    return make_image("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image("JPEG")


@pytest.fixture
def pdf_file(tmp_path, pdf_bytes):
    path = tmp_path / "contract.pdf"
    path.write_bytes(pdf_bytes)
    return path


@pytest.fixture
def png_file(tmp_path, png_bytes):
    path = tmp_path / "sign.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def asset(png_bytes):
    return SignatureAsset(
        id="asset-1", name="sign.png", data=png_bytes, mime_type="image/png",
        natural_width=300, natural_height=100,
    )


@pytest.fixture
def store(pdf_bytes, asset):
    s = EditorStore()
    s.set_document(DocumentMeta("contract", 2, *LETTER), pdf_bytes)
    s.add_asset(asset)
    return s


@pytest.fixture
def item(store, asset):
    """150 x 50 pt signature at (100, 100), aspect 1:3."""
    return store.add_item(asset.id, x=100, y=100, width=150, height=50)
