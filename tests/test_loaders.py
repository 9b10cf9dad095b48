import pytest

from pdf_stamper.errors import LoadFailure, ValidationFailure
from pdf_stamper.loaders import (
    load_document, load_signature_asset, read_document_meta, read_signature_asset,
)

from tests.conftest import make_pdf


def test_document_meta(pdf_bytes):
    meta = read_document_meta(pdf_bytes, "Contract.PDF")
    assert meta.file_name_base == "Contract"
    assert meta.page_count == 2
    assert (meta.page_width, meta.page_height) == (612, 792)


def test_first_page_sets_size():
    meta = read_document_meta(make_pdf(pages=1, width=300, height=400), "small.pdf")
    assert (meta.page_width, meta.page_height) == (300, 400)


def test_load_document(pdf_file, pdf_bytes):
    meta, data = load_document(pdf_file)
    assert meta.file_name_base == "contract"
    assert data == pdf_bytes


def test_non_pdf_rejected_before_reading(tmp_path):
    # the file does not exist, so reading it would be a LoadFailure
    with pytest.raises(ValidationFailure):
        load_document(tmp_path / "notes.txt")


def test_garbage_pdf(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"%PDF-1.7 this is not really a pdf")
    with pytest.raises(LoadFailure):
        load_document(path)


def test_missing_pdf(tmp_path):
    with pytest.raises(LoadFailure):
        load_document(tmp_path / "gone.pdf")


def test_signature_asset(png_file):
    asset = load_signature_asset(png_file)
    assert asset.name == "sign.png"
    assert asset.mime_type == "image/png"
    assert (asset.natural_width, asset.natural_height) == (300, 100)
    assert asset.aspect == pytest.approx(1 / 3)
    thumb = asset.thumbnail(48)
    assert thumb.size == (48, 16)
    assert thumb.mode == "RGBA"


def test_jpeg_asset(jpeg_bytes):
    asset = read_signature_asset(jpeg_bytes, "sign.jpg", "image/jpeg")
    assert asset.to_image().size == (300, 100)


def test_unsupported_image_type(tmp_path):
    with pytest.raises(ValidationFailure):
        load_signature_asset(tmp_path / "sign.gif")


def test_unreadable_image():
    with pytest.raises(LoadFailure):
        read_signature_asset(b"nope", "sign.png", "image/png")
