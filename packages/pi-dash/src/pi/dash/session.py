"""Session lifecycle: bring the terminal up, wire everything, tear it down.

A :class:`Session` is the process-wide context the rest of the toolkit
hangs off: the driver, the deferred worker, the render pipeline, the
geometry cache, the root ``body`` grid and the event stream.  It moves
through ``UNINITIALIZED -> RUNNING -> CLOSED`` exactly once.

The module also keeps one default session behind the package-level
functions (``pi.dash.init()``, ``pi.dash.render()`` and friends) for
applications that only ever need one terminal.
"""

from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from typing import Any, Callable

from pi.dash.buffer import Bufferer, Rect
from pi.dash.config import Config
from pi.dash.errors import SessionStateError
from pi.dash.events import (
    CustomSource,
    Event,
    EventStream,
    EvtWnd,
    Handler,
    SysEventSource,
    TimerSource,
    default_handler,
)
from pi.dash.geometry import GeometryCache
from pi.dash.render import Renderer, RenderJobLoop
from pi.dash.terminal import ProcessTerminal, TerminalDriver
from pi.dash.theme import Attribute, Theme
from pi.dash.widgets import Grid, WidgetManager
from pi.dash.worker import DeferredWorker

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    CLOSED = "closed"


class Session:
    """One terminal session.

    Parameters
    ----------
    driver:
        Terminal driver; defaults to a :class:`ProcessTerminal` on the
        process's stdin/stdout.
    config:
        Runtime settings; defaults to :meth:`Config.from_env`.
    theme:
        Attribute theme used for the background of ``clear`` and ``body``.
    """

    def __init__(
        self,
        driver: TerminalDriver | None = None,
        config: Config | None = None,
        theme: Theme | None = None,
    ) -> None:
        self.config = config if config is not None else Config.from_env()
        self.driver: TerminalDriver = (
            driver
            if driver is not None
            else ProcessTerminal(
                write_log_path=self.config.write_log_path,
                poll_interval=self.config.poll_interval,
            )
        )
        self.theme = theme if theme is not None else Theme()
        self.geometry = GeometryCache(self.driver)
        self.state = SessionState.UNINITIALIZED

        self.worker: DeferredWorker | None = None
        self.renderer: Renderer | None = None
        self.render_jobs: RenderJobLoop | None = None
        self.evt_stream: EventStream | None = None
        self.custom_source: CustomSource | None = None
        self.wgt_mgr: WidgetManager | None = None
        self.body: Grid | None = None

        self._cancel = threading.Event()
        self._close_lock = threading.Lock()
        self._close_latched = False
        self._closed = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Initialise the terminal and start every background component.

        A driver failure propagates unchanged and leaves the session
        ``UNINITIALIZED`` with nothing running.
        """
        if self.state is not SessionState.UNINITIALIZED:
            raise SessionStateError(f"cannot init a session that is {self.state.value}")

        self.driver.init()
        try:
            self._start()
        except Exception:
            logger.error("Session start-up failed; rolling back", exc_info=True)
            self._abort_start()
            raise
        self.state = SessionState.RUNNING
        logger.info("Session started (%dx%d)", *self.geometry.cached)

    def _start(self) -> None:
        config = self.config

        worker = DeferredWorker(
            cancel=self._cancel,
            maxsize=config.worker_queue_size,
            poll_interval=config.poll_interval,
        )
        self.worker = worker
        worker.start()
        self.renderer = Renderer(self.driver, worker, self.theme)

        self.geometry.reset()
        self.body = Grid(x=0, y=0, bg_color=self.theme.attr("bg"))
        self.body.width = self.geometry.width()

        stream = EventStream(poll_interval=config.poll_interval)
        self.evt_stream = stream
        self.custom_source = CustomSource()
        stream.merge("terminal", SysEventSource(self.driver))
        stream.merge("timer", TimerSource(config.timer_interval))
        stream.merge("custom", self.custom_source)
        stream.handle("/", default_handler)
        stream.handle("/sys/wnd/resize", self._on_resize)

        self.wgt_mgr = WidgetManager()
        stream.hook(self.wgt_mgr.handlers_hook())

        self.render_jobs = RenderJobLoop(self.renderer, poll_interval=config.poll_interval)
        self.render_jobs.start()

    def _abort_start(self) -> None:
        timeout = self.config.close_timeout
        if self.render_jobs is not None:
            self.render_jobs.stop()
            self.render_jobs.join(timeout)
        if self.evt_stream is not None:
            self.evt_stream.stop(timeout)
        if self.worker is not None:
            self.worker.cancel()
            self.worker.join(timeout)
        try:
            self.driver.close()
        except Exception:
            logger.exception("Driver close failed during start-up rollback")
        self.worker = None
        self.renderer = None
        self.render_jobs = None
        self.evt_stream = None
        self.custom_source = None
        self.wgt_mgr = None
        self.body = None
        self._cancel.clear()

    def close(self) -> None:
        """Tear the session down exactly once.

        The driver shutdown is deferred onto the worker as its final item,
        and this call blocks until it has run (bounded by
        ``config.close_timeout``).  Concurrent callers block until the first
        caller's teardown has finished; each of its steps is itself bounded.
        """
        with self._close_lock:
            first = not self._close_latched
            self._close_latched = True

        if not first:
            if self.worker is None or threading.current_thread() is not self.worker.thread:
                self._closed.wait()
            return

        try:
            self._teardown()
        finally:
            self._closed.set()

    def _teardown(self) -> None:
        if self.state is not SessionState.RUNNING:
            self.state = SessionState.CLOSED
            return

        timeout = self.config.close_timeout
        assert self.evt_stream is not None
        assert self.render_jobs is not None
        assert self.worker is not None

        self.evt_stream.stop(timeout)
        self.render_jobs.stop()
        self.render_jobs.join(timeout)

        done = threading.Event()

        def shutdown() -> None:
            try:
                self.driver.close()
            finally:
                done.set()

        if threading.current_thread() is self.worker.thread:
            shutdown()
        else:
            try:
                self.worker.submit(shutdown, timeout=timeout)
            except queue.Full:
                logger.warning("Worker queue still full after %.1fs; terminal shutdown not queued", timeout)
            else:
                if not done.wait(timeout):
                    logger.warning("Terminal shutdown did not finish within %.1fs", timeout)

        self.worker.cancel()
        self.worker.join(timeout)
        # Worker stopped without reaching the shutdown item
        if not done.is_set() and not self.worker.running:
            try:
                shutdown()
            except Exception:
                logger.exception("Terminal shutdown failed")
        self.state = SessionState.CLOSED
        logger.info("Session closed")

    def __enter__(self) -> Session:
        self.init()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, *surfaces: Bufferer) -> None:
        """Composite *surfaces* in order (later ones win) and flush."""
        self._running_renderer().render(*surfaces)

    def render_async(self, *surfaces: Bufferer) -> None:
        """Queue *surfaces* for the background render-job loop."""
        self._require_running()
        assert self.render_jobs is not None
        self.render_jobs.submit(surfaces)

    def clear(self) -> None:
        self._running_renderer().clear()

    def clear_area(self, rect: Rect, bg: Attribute) -> None:
        self._running_renderer().clear_area(rect, bg)

    def defer(self, work: Callable[[], None]) -> None:
        """Run *work* on the worker, after everything deferred before it."""
        self._require_running()
        assert self.worker is not None
        self.worker.submit(work)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def term_width(self) -> int:
        self._require_running()
        return self.geometry.width()

    def term_height(self) -> int:
        self._require_running()
        return self.geometry.height()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def handle(self, path: str, handler: Handler) -> None:
        self._running_stream().handle(path, handler)

    def loop(self) -> None:
        """Dispatch events on the calling thread until :meth:`stop_loop`."""
        self._running_stream().loop()

    def stop_loop(self, event: Event | None = None) -> None:
        """Stop :meth:`loop`; usable directly as an event handler."""
        if self.evt_stream is not None:
            self.evt_stream.stop_loop()

    def send_custom_event(self, path: str, data: Any = None) -> None:
        self._require_running()
        assert self.custom_source is not None
        self.custom_source.send(path, data)

    def _on_resize(self, event: Event) -> None:
        wnd: EvtWnd = event.data
        self.geometry.update(wnd.width, wnd.height)
        if self.body is not None:
            self.body.width = wnd.width

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_running(self) -> None:
        if self.state is not SessionState.RUNNING:
            raise SessionStateError(f"session is {self.state.value}")

    def _running_renderer(self) -> Renderer:
        self._require_running()
        assert self.renderer is not None
        return self.renderer

    def _running_stream(self) -> EventStream:
        self._require_running()
        assert self.evt_stream is not None
        return self.evt_stream


# ---------------------------------------------------------------------------
# Process-wide default session
# ---------------------------------------------------------------------------

_default: Session | None = None
_default_lock = threading.Lock()


def init(
    driver: TerminalDriver | None = None,
    config: Config | None = None,
    theme: Theme | None = None,
) -> Session:
    """Create and start the default session.  Call before anything else."""
    global _default
    with _default_lock:
        if _default is not None and _default.state is SessionState.RUNNING:
            raise SessionStateError("default session is already running")
        session = Session(driver, config, theme)
        session.init()
        _default = session
        return session


def close() -> None:
    """Close the default session; repeated calls are no-ops."""
    session = _default
    if session is not None:
        session.close()


def default_session() -> Session:
    session = _default
    if session is None:
        raise SessionStateError("pi.dash.init() has not been called")
    return session


def render(*surfaces: Bufferer) -> None:
    default_session().render(*surfaces)


def render_async(*surfaces: Bufferer) -> None:
    default_session().render_async(*surfaces)


def clear() -> None:
    default_session().clear()


def clear_area(rect: Rect, bg: Attribute) -> None:
    default_session().clear_area(rect, bg)


def defer(work: Callable[[], None]) -> None:
    default_session().defer(work)


def term_width() -> int:
    return default_session().term_width()


def term_height() -> int:
    return default_session().term_height()


def handle(path: str, handler: Handler) -> None:
    default_session().handle(path, handler)


def loop() -> None:
    default_session().loop()


def stop_loop(event: Event | None = None) -> None:
    default_session().stop_loop(event)


def send_custom_event(path: str, data: Any = None) -> None:
    default_session().send_custom_event(path, data)
