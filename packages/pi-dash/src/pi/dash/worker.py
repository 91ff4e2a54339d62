"""The deferred worker: one thread that owns every terminal mutation.

Work items are zero-argument callables.  They run strictly in submission
order, one at a time, on a single long-lived daemon thread.  A failing item
is logged and dropped; the loop keeps going.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

logger = logging.getLogger(__name__)

WorkItem = Callable[[], None]


class DeferredWorker:
    """FIFO executor backed by :class:`queue.Queue` and one thread.

    Parameters
    ----------
    cancel:
        Cancellation signal shared with the owner.  When it is set the loop
        exits after the in-flight item; queued items are not drained.
    maxsize:
        Queue capacity; 0 means unbounded.  When bounded, :meth:`submit`
        blocks while the queue is full.
    poll_interval:
        How often an idle loop re-checks *cancel*, in seconds.
    """

    def __init__(
        self,
        cancel: threading.Event | None = None,
        maxsize: int = 0,
        name: str = "pi-dash-worker",
        poll_interval: float = 0.05,
    ) -> None:
        self._cancel = cancel if cancel is not None else threading.Event()
        self._queue: queue.Queue[WorkItem] = queue.Queue(maxsize=maxsize)
        self._poll_interval = poll_interval
        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)
        self._started = False

    # -- properties ---------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def pending(self) -> int:
        """Approximate number of queued, not yet started items."""
        return self._queue.qsize()

    @property
    def thread(self) -> threading.Thread:
        return self._thread

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._thread.start()
        logger.debug("Worker %s started", self._thread.name)

    def cancel(self) -> None:
        self._cancel.set()

    def join(self, timeout: float | None = None) -> None:
        if self._started and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    # -- submission ---------------------------------------------------------

    def submit(self, work: WorkItem, timeout: float | None = None) -> None:
        """Queue *work* and return; blocks only on a full bounded queue.

        With a *timeout*, raises :class:`queue.Full` if no slot frees up in
        time.
        """
        if self._cancel.is_set():
            logger.warning("Dropping work item %r submitted after cancellation", work)
            return
        self._queue.put(work, timeout=timeout)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until everything submitted so far has executed.

        Returns ``False`` if *timeout* expired first.  Calling this from the
        worker thread itself would deadlock, so it returns ``True`` at once.
        """
        if threading.current_thread() is self._thread:
            return True
        if self._cancel.is_set():
            return False
        done = threading.Event()
        self.submit(done.set)
        return done.wait(timeout)

    # -- run loop -----------------------------------------------------------

    def _loop(self) -> None:
        while not self._cancel.is_set():
            try:
                work = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            try:
                if self._cancel.is_set():
                    break
                work()
            except Exception:
                logger.exception("Deferred work item %r failed", work)
            finally:
                self._queue.task_done()
        logger.debug(
            "Worker %s stopped with %d item(s) left in queue",
            self._thread.name,
            self._queue.qsize(),
        )
