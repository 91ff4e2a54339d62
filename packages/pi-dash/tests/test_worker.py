"""Tests for pi.dash.worker.DeferredWorker -- ordered, exclusive execution."""

from __future__ import annotations

import logging
import queue
import threading
import time

import pytest

from pi.dash.worker import DeferredWorker

from .fake_driver import wait_until


@pytest.fixture
def worker():
    w = DeferredWorker(poll_interval=0.01)
    w.start()
    yield w
    w.cancel()
    w.join(1.0)


# ---------------------------------------------------------------------------
# Ordering and exclusivity
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_items_run_in_submission_order(self, worker: DeferredWorker) -> None:
        seen: list[int] = []
        for i in range(50):
            worker.submit(lambda i=i: seen.append(i))
        assert worker.wait(2.0)
        assert seen == list(range(50))

    def test_concurrent_submitters_keep_fifo_and_never_overlap(self, worker: DeferredWorker) -> None:
        submit_lock = threading.Lock()
        counter = iter(range(10_000))
        executed: list[int] = []
        spans: list[tuple[float, float]] = []
        active = [0]
        overlaps = [0]

        def make_item(seq: int):
            def item() -> None:
                active[0] += 1
                if active[0] != 1:
                    overlaps[0] += 1
                start = time.perf_counter()
                executed.append(seq)
                time.sleep(0.0005)
                spans.append((start, time.perf_counter()))
                active[0] -= 1

            return item

        def producer() -> None:
            for _ in range(25):
                with submit_lock:
                    worker.submit(make_item(next(counter)))

        threads = [threading.Thread(target=producer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert worker.wait(5.0)
        assert executed == sorted(executed)
        assert len(executed) == 200
        assert overlaps[0] == 0
        for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
            assert prev_end <= next_start

    def test_items_run_on_the_worker_thread(self, worker: DeferredWorker) -> None:
        names: list[str] = []
        worker.submit(lambda: names.append(threading.current_thread().name))
        assert worker.wait(1.0)
        assert names == ["pi-dash-worker"]

    def test_wait_from_worker_thread_does_not_deadlock(self, worker: DeferredWorker) -> None:
        results: list[bool] = []
        worker.submit(lambda: results.append(worker.wait(0.1)))
        assert worker.wait(1.0)
        assert results == [True]


# ---------------------------------------------------------------------------
# Failure semantics
# ---------------------------------------------------------------------------


class TestFailures:
    def test_failing_item_does_not_stop_the_loop(
        self, worker: DeferredWorker, caplog: pytest.LogCaptureFixture
    ) -> None:
        seen: list[str] = []

        def boom() -> None:
            raise RuntimeError("terminal write failed")

        with caplog.at_level(logging.ERROR, logger="pi.dash.worker"):
            worker.submit(boom)
            worker.submit(lambda: seen.append("after"))
            assert worker.wait(1.0)

        assert seen == ["after"]
        assert worker.running
        assert "failed" in caplog.text


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    def test_cancel_finishes_in_flight_item_but_skips_queued(self) -> None:
        w = DeferredWorker(poll_interval=0.01)
        w.start()
        started = threading.Event()
        release = threading.Event()
        seen: list[str] = []

        def blocking() -> None:
            started.set()
            release.wait(2.0)
            seen.append("in-flight")

        w.submit(blocking)
        assert started.wait(1.0)
        w.submit(lambda: seen.append("queued-1"))
        w.submit(lambda: seen.append("queued-2"))
        w.cancel()
        release.set()
        w.join(1.0)

        assert not w.running
        assert seen == ["in-flight"]

    def test_shared_cancel_signal_stops_loop(self) -> None:
        signal = threading.Event()
        w = DeferredWorker(cancel=signal, poll_interval=0.01)
        w.start()
        signal.set()
        w.join(1.0)
        assert not w.running
        assert w.cancelled

    def test_submit_after_cancel_is_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        w = DeferredWorker(poll_interval=0.01)
        w.start()
        w.cancel()
        w.join(1.0)
        with caplog.at_level(logging.WARNING, logger="pi.dash.worker"):
            w.submit(lambda: None)
        assert w.pending == 0
        assert "after cancellation" in caplog.text
        assert w.wait(0.1) is False


# ---------------------------------------------------------------------------
# Backpressure
# ---------------------------------------------------------------------------


class TestBoundedQueue:
    def test_submit_blocks_while_bounded_queue_is_full(self) -> None:
        w = DeferredWorker(maxsize=1, poll_interval=0.01)
        w.submit(lambda: None)
        second_done = threading.Event()

        def second() -> None:
            w.submit(lambda: None)
            second_done.set()

        t = threading.Thread(target=second)
        t.start()
        assert not second_done.wait(0.1)

        w.start()
        assert second_done.wait(1.0)
        t.join(1.0)
        assert wait_until(lambda: w.pending == 0)
        w.cancel()
        w.join(1.0)

    def test_submit_with_timeout_raises_full(self) -> None:
        w = DeferredWorker(maxsize=1, poll_interval=0.01)
        w.submit(lambda: None)
        start = time.monotonic()
        with pytest.raises(queue.Full):
            w.submit(lambda: None, timeout=0.05)
        assert time.monotonic() - start < 1.0
        assert w.pending == 1

    def test_unbounded_by_default(self) -> None:
        w = DeferredWorker()
        for _ in range(100):
            w.submit(lambda: None)
        assert w.pending == 100
