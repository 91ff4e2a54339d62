"""Compositing drawable surfaces onto the terminal.

``Renderer.render`` paints surfaces in painter's order: for each surface,
every cell inside its area is written at its own coordinate, so later
surfaces overwrite earlier ones.  Cell writes happen on the calling thread;
the flush that makes them visible is deferred onto the worker, which keeps
flushes serialised with every other terminal mutation.

``RenderJobLoop`` is the asynchronous entry point: it queues surface
lists and composites them on a background thread.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Sequence

from pi.dash.buffer import Bufferer, Rect
from pi.dash.theme import COLOR_DEFAULT, Attribute, Theme

if TYPE_CHECKING:
    from pi.dash.terminal import TerminalDriver
    from pi.dash.worker import DeferredWorker

logger = logging.getLogger(__name__)


class Renderer:
    """Render pipeline bound to one driver and one worker."""

    def __init__(self, driver: TerminalDriver, worker: DeferredWorker, theme: Theme | None = None) -> None:
        self._driver = driver
        self._worker = worker
        self.theme = theme if theme is not None else Theme()

    def render(self, *surfaces: Bufferer) -> None:
        """Composite *surfaces* left to right, then defer a flush."""
        driver = self._driver
        native = driver.native_attr
        for surface in surfaces:
            buf = surface.buffer()
            area = buf.area
            for p, cell in list(buf.cell_map.items()):
                if area.contains(p):
                    driver.set_cell(p.x, p.y, cell.ch, native(cell.fg), native(cell.bg))
        self._worker.submit(driver.flush)

    def clear(self) -> None:
        """Defer filling the screen with the theme background, then flush."""
        driver = self._driver
        fg = driver.native_attr(COLOR_DEFAULT)
        bg = driver.native_attr(self.theme.attr("bg"))

        def work() -> None:
            driver.clear(fg, bg)
            driver.flush()

        self._worker.submit(work)

    def clear_area(self, rect: Rect, bg: Attribute) -> None:
        """Defer blanking *rect* with background *bg*, then flush."""
        driver = self._driver
        fg_native = driver.native_attr(COLOR_DEFAULT)
        bg_native = driver.native_attr(bg)

        def work() -> None:
            for x in range(rect.min_x, rect.max_x):
                for y in range(rect.min_y, rect.max_y):
                    driver.set_cell(x, y, " ", fg_native, bg_native)
            driver.flush()

        self._worker.submit(work)


class RenderJobLoop:
    """Background thread that drains queued render jobs."""

    def __init__(self, renderer: Renderer, poll_interval: float = 0.05) -> None:
        self._renderer = renderer
        self._jobs: queue.Queue[tuple[Bufferer, ...] | _Marker] = queue.Queue()
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="pi-dash-render-jobs", daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def submit(self, surfaces: Sequence[Bufferer]) -> None:
        self._jobs.put(tuple(surfaces))

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every job submitted so far has been composited."""
        done = threading.Event()
        self._jobs.put(_Marker(done))
        return done.wait(timeout)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                job = self._jobs.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if isinstance(job, _Marker):
                job.done.set()
                continue
            try:
                self._renderer.render(*job)
            except Exception:
                logger.exception("Render job failed")


class _Marker:
    __slots__ = ("done",)

    def __init__(self, done: threading.Event) -> None:
        self.done = done
