"""
Page rasterization and the render generation guard.

``PageRasterizer`` turns a PDF page into a Pillow image on a worker thread.
``RenderGuard`` owns one drawing surface and makes sure only the most recent
render request ever reaches it: every request gets a higher generation
number, and a completion is committed only when its generation is still the
current one.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import fitz  # PyMuPDF
from PIL import Image

logger = logging.getLogger(__name__)


class CancellationToken:
    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class RenderStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class RenderOutcome:
    status: RenderStatus
    image: Optional[Image.Image] = None
    width: int = 0
    height: int = 0
    error: Optional[BaseException] = None

    @classmethod
    def completed(cls, image: Image.Image) -> "RenderOutcome":
        return cls(RenderStatus.COMPLETED, image=image, width=image.width, height=image.height)

    @classmethod
    def cancelled(cls) -> "RenderOutcome":
        return cls(RenderStatus.CANCELLED)

    @classmethod
    def failed(cls, error: BaseException) -> "RenderOutcome":
        return cls(RenderStatus.FAILED, error=error)


@dataclass
class RenderHandle:
    generation: int
    page_number: int
    scale: float
    future: Future
    token: CancellationToken

    def cancel(self) -> None:
        self.token.cancel()
        # Only succeeds if the worker has not picked the job up yet
        self.future.cancel()

    def outcome(self) -> RenderOutcome:
        """Outcome of a finished render. Call only once the future is done."""
        if self.future.cancelled() or self.token.cancelled:
            return RenderOutcome.cancelled()
        exc = self.future.exception()
        if exc is not None:
            return RenderOutcome.failed(exc)
        return self.future.result()


def render_page_to_pil(page, zoom: float) -> Image.Image:
    mat = fitz.Matrix(zoom, zoom)
    pix = page.get_pixmap(matrix=mat, alpha=False)
    mode = "RGB" if pix.n < 4 else "RGBA"
    img = Image.frombytes(mode, (pix.width, pix.height), pix.samples)
    if mode == "RGBA":
        img = img.convert("RGB")
    return img


class PageRasterizer:
    """Renders pages of one PDF on a single worker thread.

    PyMuPDF documents are not thread-safe, so the document is only touched by
    that one worker.
    """

    def __init__(self, data: bytes, executor: Optional[ThreadPoolExecutor] = None) -> None:
        self._doc = fitz.open(stream=data, filetype="pdf")
        self._closing = False
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="rasterizer")

    @property
    def page_count(self) -> int:
        return len(self._doc)

    def render(self, page_number: int, scale: float, token: CancellationToken) -> Future:
        return self._executor.submit(self._rasterize, page_number, scale, token)

    @property
    def closed(self) -> bool:
        return self._doc.is_closed

    def _rasterize(self, page_number: int, scale: float, token: CancellationToken) -> RenderOutcome:
        if token.cancelled or self._closing:
            return RenderOutcome.cancelled()
        page = self._doc.load_page(page_number - 1)
        if token.cancelled:
            return RenderOutcome.cancelled()
        img = render_page_to_pil(page, scale)
        if token.cancelled:
            return RenderOutcome.cancelled()
        logger.debug("Rasterized page %d at %.3f -> %dx%d", page_number, scale, img.width, img.height)
        return RenderOutcome.completed(img)

    def close(self) -> None:
        """Release the document without waiting for a render in progress.

        The close runs as the last job on the worker, after any queued renders
        have returned as cancelled.
        """
        if self._closing:
            return
        self._closing = True
        self._executor.submit(self._doc.close)
        if self._owns_executor:
            self._executor.shutdown(wait=False)


class RenderGuard:
    """
    Gatekeeper for a single drawing surface.

    ``on_commit`` receives the outcome of the newest successful render and is
    the only code allowed to write to the surface. ``dispatch`` moves the
    completion onto the UI thread; by default it runs the callback in place.
    """

    def __init__(
        self,
        rasterizer,
        on_commit: Callable[[RenderOutcome], None],
        *,
        on_failure: Optional[Callable[[RenderOutcome], None]] = None,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
        name: str = "surface",
    ) -> None:
        self._rasterizer = rasterizer
        self._on_commit = on_commit
        self._on_failure = on_failure
        self._dispatch = dispatch or (lambda fn: fn())
        self._name = name
        self._generation = 0
        self._current: Optional[RenderHandle] = None
        self.loading = False

    @property
    def current(self) -> Optional[RenderHandle]:
        return self._current

    def is_current(self, handle: RenderHandle) -> bool:
        return self._current is not None and self._current.generation == handle.generation

    def set_rasterizer(self, rasterizer) -> None:
        self.cancel()
        self._rasterizer = rasterizer

    def request(self, page_number: int, scale: float) -> RenderHandle:
        """Start a render, superseding whatever was in flight."""
        self.cancel()
        self._generation += 1
        token = CancellationToken()
        self.loading = True
        handle = RenderHandle(
            generation=self._generation,
            page_number=page_number,
            scale=scale,
            future=self._rasterizer.render(page_number, scale, token),
            token=token,
        )
        self._current = handle
        logger.debug("%s: render #%d page %d scale %.3f", self._name, handle.generation, page_number, scale)
        handle.future.add_done_callback(lambda _f: self._dispatch(lambda: self._settle(handle)))
        return handle

    def cancel(self) -> None:
        if self._current is not None:
            self._current.cancel()
            self._current = None
        self.loading = False

    def _settle(self, handle: RenderHandle) -> None:
        if not self.is_current(handle):
            logger.debug("%s: dropping stale render #%d", self._name, handle.generation)
            return
        outcome = handle.outcome()
        if outcome.status is RenderStatus.CANCELLED:
            return
        self.loading = False
        if outcome.status is RenderStatus.FAILED:
            logger.warning("%s: render of page %d failed: %s", self._name, handle.page_number, outcome.error)
            if self._on_failure is not None:
                self._on_failure(outcome)
            return
        self._on_commit(outcome)
