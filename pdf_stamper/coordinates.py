"""Conversions between PDF points and on-screen pixels.

The editor works in a top-left origin with Y growing downwards; PDF drawing
uses a bottom-left origin with Y growing upwards.
"""


def pixels_to_units(px: float, scale: float) -> float:
    """Convert viewport pixels to PDF points."""
    return px / scale


def units_to_pixels(units: float, scale: float) -> float:
    """Convert PDF points to viewport pixels."""
    return units * scale


def compute_scale(available_width_px: float, page_width_units: float, zoom: float) -> float:
    """Pixels per point: fit the page to the available width, then apply zoom."""
    return (available_width_px / page_width_units) * zoom


def flip_vertical_origin(y_top_left: float, object_height: float, page_height: float) -> float:
    """Convert a top-left Y to the bottom-left Y of the same box."""
    return page_height - y_top_left - object_height


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def normalize_angle(degrees: float) -> float:
    """Map any angle into [0, 360)."""
    return ((degrees % 360) + 360) % 360
