"""Place signature images on PDF pages and export a stamped copy."""

__version__ = "0.1.0"
