"""Editor constants. Units are PDF points unless the name says ``_PX``."""

# -------- CONFIG --------
MIN_SIZE_PTS = 20.0          # smallest width/height a signature can be resized to
DEFAULT_WIDTH_RATIO = 0.25   # new signatures start at 25% of the page width
DUPLICATE_OFFSET_PTS = 20.0  # duplicates land down-right of the original

ZOOM_MIN = 0.5
ZOOM_MAX = 2.0
ZOOM_STEP = 0.1
ZOOM_OPTIONS = (0.5, 0.75, 1.0, 1.25, 1.5, 1.75, 2.0)

HANDLE_SIZE_PX = 10           # corner handle square
ROTATE_HANDLE_OFFSET_PX = 28  # rotate handle sits this far above the top edge
HIT_TOLERANCE_PX = 4          # extra grab distance around handles
THUMBNAIL_PX = 48             # asset strip previews
EDITOR_PADDING_PX = 24
PREVIEW_PADDING_PX = 16

UI_POLL_MS = 30               # how often the Tk loop drains render completions
EXPORT_SUFFIX = "-edit"
LOG_DIR_ENV = "PDF_STAMPER_LOG_DIR"
# ------------------------
