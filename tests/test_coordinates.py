import pytest

from pdf_stamper.coordinates import (
    clamp, compute_scale, flip_vertical_origin, normalize_angle,
    pixels_to_units, units_to_pixels,
)


@pytest.mark.parametrize('scale', [0.1, 0.5, 1.0, 800 / 612, 3.75])
@pytest.mark.parametrize('px', [0, 1, 13.37, 250, 1999.5])
def test_pixel_unit_round_trip(px, scale):
    assert units_to_pixels(pixels_to_units(px, scale), scale) == pytest.approx(px)


def test_width_fit_scale_and_mapping():
    scale = compute_scale(800, 612, 1.0)
    assert scale == pytest.approx(1.307, abs=1e-3)

    assert units_to_pixels(100, scale) == pytest.approx(130.7, abs=0.1)
    assert units_to_pixels(150, scale) == pytest.approx(196.1, abs=0.1)
    assert units_to_pixels(50, scale) == pytest.approx(65.3, abs=0.1)


def test_zoom_multiplies_fit_scale():
    assert compute_scale(800, 612, 1.5) == pytest.approx(compute_scale(800, 612, 1.0) * 1.5)


def test_flip_vertical_origin():
    assert flip_vertical_origin(50, 40, 800) == 710
    assert flip_vertical_origin(0, 800, 800) == 0


def test_clamp():
    assert clamp(5, 0, 10) == 5
    assert clamp(-1, 0, 10) == 0
    assert clamp(11, 0, 10) == 10


@pytest.mark.parametrize('angle,expected', [
    (0, 0), (90, 90), (360, 0), (-90, 270), (725, 5), (-450, 270),
])
def test_normalize_angle(angle, expected):
    assert normalize_angle(angle) == expected
