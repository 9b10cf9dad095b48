import threading
from concurrent.futures import Future, ThreadPoolExecutor

import pytest
from PIL import Image

from pdf_stamper.rendering import (
    CancellationToken, PageRasterizer, RenderGuard, RenderHandle, RenderOutcome, RenderStatus,
)


class FakeRasterizer:
    """Hands out futures that the test completes by hand, already 'running'."""

    def __init__(self):
        self.jobs = []

    def render(self, page_number, scale, token):
        future = Future()
        future.set_running_or_notify_cancel()
        self.jobs.append((page_number, scale, token, future))
        return future

    def finish(self, index, size=(10, 20)):
        self.jobs[index][3].set_result(RenderOutcome.completed(Image.new("RGB", size)))

    def fail(self, index, exc=None):
        self.jobs[index][3].set_exception(exc or RuntimeError("boom"))


@pytest.fixture
def engine():
    return FakeRasterizer()


@pytest.fixture
def commits():
    return []


@pytest.fixture
def failures():
    return []


@pytest.fixture
def guard(engine, commits, failures):
    return RenderGuard(engine, commits.append, on_failure=failures.append)


def test_single_render_commits(guard, engine, commits):
    guard.request(1, 1.0)
    assert guard.loading
    engine.finish(0, size=(612, 792))
    assert [(c.width, c.height) for c in commits] == [(612, 792)]
    assert not guard.loading


def test_superseded_render_is_cancelled(guard, engine):
    first = guard.request(1, 1.0)
    second = guard.request(1, 1.5)
    assert first.token.cancelled
    assert not second.token.cancelled
    assert second.generation > first.generation
    assert guard.is_current(second) and not guard.is_current(first)


def test_late_stale_completion_is_ignored(guard, engine, commits):
    guard.request(1, 1.0)
    guard.request(1, 1.5)
    engine.finish(1, size=(30, 40))
    engine.finish(0, size=(10, 20))
    assert [(c.width, c.height) for c in commits] == [(30, 40)]


def test_stale_completion_before_current_does_not_paint(guard, engine, commits):
    guard.request(1, 1.0)
    guard.request(1, 1.5)
    engine.finish(0)
    assert commits == []
    assert guard.loading
    engine.finish(1, size=(30, 40))
    assert len(commits) == 1


def test_current_failure_reports_not_loading(guard, engine, commits, failures):
    guard.request(3, 1.0)
    engine.fail(0)
    assert commits == []
    assert not guard.loading
    assert len(failures) == 1
    assert failures[0].status is RenderStatus.FAILED
    assert isinstance(failures[0].error, RuntimeError)


def test_stale_failure_is_swallowed(guard, engine, commits, failures):
    guard.request(1, 1.0)
    guard.request(2, 1.0)
    engine.fail(0)
    assert failures == []
    engine.finish(1)
    assert len(commits) == 1


def test_cancel_abandons_current(guard, engine, commits):
    handle = guard.request(1, 1.0)
    guard.cancel()
    assert handle.token.cancelled
    assert guard.current is None
    engine.finish(0)
    assert commits == []
    assert not guard.loading


def test_dispatch_defers_commit(engine, commits):
    pending = []
    guard = RenderGuard(engine, commits.append, dispatch=pending.append)
    guard.request(1, 1.0)
    engine.finish(0)
    assert commits == []
    for callback in pending:
        callback()
    assert len(commits) == 1


def test_cancelled_token_wins_over_result():
    token = CancellationToken()
    engine = FakeRasterizer()
    future = engine.render(1, 1.0, token)
    token.cancel()
    engine.finish(0)
    handle = RenderHandle(generation=1, page_number=1, scale=1.0, future=future, token=token)
    assert handle.outcome().status is RenderStatus.CANCELLED


def test_pending_future_is_cancelled_with_handle():
    class Idle:
        def render(self, page_number, scale, token):
            return Future()

    guard = RenderGuard(Idle(), lambda outcome: None)
    handle = guard.request(1, 1.0)
    guard.request(1, 2.0)
    assert handle.future.cancelled()


# ---------------- PyMuPDF rasterizer

def test_rasterizer_renders_page(pdf_bytes):
    rasterizer = PageRasterizer(pdf_bytes)
    try:
        outcome = rasterizer.render(1, 1.0, CancellationToken()).result(timeout=30)
    finally:
        rasterizer.close()
    assert outcome.status is RenderStatus.COMPLETED
    assert (outcome.width, outcome.height) == (612, 792)
    assert outcome.image.mode == "RGB"


def test_rasterizer_honours_cancelled_token(pdf_bytes):
    rasterizer = PageRasterizer(pdf_bytes)
    token = CancellationToken()
    token.cancel()
    try:
        outcome = rasterizer.render(2, 1.0, token).result(timeout=30)
    finally:
        rasterizer.close()
    assert outcome.status is RenderStatus.CANCELLED
    assert outcome.image is None


def test_guard_reports_engine_error(pdf_bytes):
    rasterizer = PageRasterizer(pdf_bytes)
    done = threading.Event()
    failures = []

    def on_failure(outcome):
        failures.append(outcome)
        done.set()

    guard = RenderGuard(rasterizer, lambda outcome: done.set(), on_failure=on_failure)
    try:
        guard.request(99, 1.0)
        assert done.wait(timeout=30)
    finally:
        rasterizer.close()
    assert len(failures) == 1
    assert failures[0].status is RenderStatus.FAILED


def test_close_does_not_wait_for_worker(pdf_bytes):
    executor = ThreadPoolExecutor(max_workers=1)
    busy = threading.Event()
    executor.submit(busy.wait)
    rasterizer = PageRasterizer(pdf_bytes, executor=executor)
    try:
        pending = rasterizer.render(1, 1.0, CancellationToken())
        # the worker is still busy, so a blocking close would hang here
        rasterizer.close()
        assert not rasterizer.closed
    finally:
        busy.set()
    assert pending.result(timeout=30).status is RenderStatus.CANCELLED
    executor.submit(lambda: None).result(timeout=30)
    assert rasterizer.closed
    executor.shutdown()


def test_close_twice(pdf_bytes):
    rasterizer = PageRasterizer(pdf_bytes)
    rasterizer.close()
    rasterizer.close()
