"""Event bus: merge several event sources into one path-dispatched stream.

Each merged source gets a pump thread that feeds one central queue.
:meth:`EventStream.loop` drains that queue on the caller's thread, runs
every hook, then calls the handler registered for the most specific path
pattern matching the event.

Paths look like ``/sys/kbd/q``, ``/sys/wnd/resize``, ``/timer/1s`` and
``/usr/<anything>`` for custom events.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol

if TYPE_CHECKING:
    from pi.dash.terminal import TermEvent, TerminalDriver

logger = logging.getLogger(__name__)

__all__ = [
    "Event",
    "EvtKbd",
    "EvtWnd",
    "EvtTimer",
    "EvtErr",
    "EventSource",
    "SysEventSource",
    "TimerSource",
    "CustomSource",
    "EventStream",
    "Handler",
    "default_handler",
    "path_match",
]

# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EvtKbd:
    key: str


@dataclass(frozen=True)
class EvtWnd:
    width: int
    height: int


@dataclass(frozen=True)
class EvtTimer:
    duration: float
    count: int


@dataclass(frozen=True)
class EvtErr:
    message: str


@dataclass
class Event:
    type: str  # "keyboard" | "window" | "timer" | "error" | "custom"
    path: str
    from_: str = ""
    to: str = ""
    data: Any = None
    time: float = field(default_factory=time.time)


Handler = Callable[[Event], None]


def default_handler(event: Event) -> None:
    """Fallback handler registered on ``/``; does nothing."""


def path_match(pattern: str, path: str) -> bool:
    """Return ``True`` if handler *pattern* accepts event *path*.

    ``/`` matches everything, a trailing-slash pattern matches by prefix,
    any other pattern matches itself and its sub-paths.
    """
    if pattern == "/" or pattern == path:
        return True
    if pattern.endswith("/"):
        return path.startswith(pattern)
    return path.startswith(pattern + "/")


def _format_interval(seconds: float) -> str:
    if seconds >= 1 and float(seconds).is_integer():
        return f"{int(seconds)}s"
    return f"{round(seconds * 1000)}ms"


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class EventSource(Protocol):
    """Anything the stream can pull events from."""

    def get(self, timeout: float | None = None) -> Event | None: ...


class SysEventSource:
    """Translates the driver's raw :class:`TermEvent` values into events."""

    def __init__(self, driver: TerminalDriver) -> None:
        self._driver = driver

    def get(self, timeout: float | None = None) -> Event | None:
        raw = self._driver.poll_event(timeout)
        if raw is None:
            return None
        return self.translate(raw)

    @staticmethod
    def translate(raw: TermEvent) -> Event:
        if raw.kind == "key":
            return Event("keyboard", f"/sys/kbd/{raw.key}", from_="/sys", data=EvtKbd(raw.key))
        if raw.kind == "resize":
            return Event(
                "window",
                "/sys/wnd/resize",
                from_="/sys",
                data=EvtWnd(raw.width, raw.height),
            )
        return Event("error", "/sys/err", from_="/sys", data=EvtErr(raw.data))


class TimerSource:
    """Emits ``/timer/<interval>`` events every *interval* seconds."""

    def __init__(self, interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("timer interval must be positive")
        self.interval = interval
        self.path = f"/timer/{_format_interval(interval)}"
        self._count = 0
        self._next = time.monotonic() + interval

    def get(self, timeout: float | None = None) -> Event | None:
        now = time.monotonic()
        wait = self._next - now
        if wait > 0:
            if timeout is not None and timeout < wait:
                time.sleep(timeout)
                return None
            time.sleep(wait)
        self._next += self.interval
        # Skip ticks missed while nobody was pulling
        if self._next < time.monotonic():
            self._next = time.monotonic() + self.interval
        self._count += 1
        return Event(
            "timer",
            self.path,
            from_="/timer",
            data=EvtTimer(self.interval, self._count),
        )


class CustomSource:
    """User-injectable source; :meth:`send` queues events under ``/usr``."""

    def __init__(self) -> None:
        self._queue: queue.Queue[Event] = queue.Queue()

    def send(self, path: str, data: Any = None) -> None:
        path = path if path.startswith("/") else "/" + path
        if not path.startswith("/usr"):
            path = "/usr" + path
        self._queue.put(Event("custom", path, from_="/usr", data=data))

    def get(self, timeout: float | None = None) -> Event | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


# ---------------------------------------------------------------------------
# EventStream
# ---------------------------------------------------------------------------


class EventStream:
    """Fan-in multiplexer with path-based dispatch."""

    def __init__(self, poll_interval: float = 0.05) -> None:
        self._poll_interval = poll_interval
        self._queue: queue.Queue[Event] = queue.Queue()
        self._sources: dict[str, EventSource] = {}
        self._pumps: dict[str, threading.Thread] = {}
        self._handlers: dict[str, Handler] = {}
        self._hooks: list[Handler] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._loop_stop = threading.Event()

    # -- registration -------------------------------------------------------

    def merge(self, name: str, source: EventSource) -> None:
        """Start pumping *source* into the stream under *name*."""
        with self._lock:
            if name in self._sources:
                raise ValueError(f"event source already merged: {name}")
            self._sources[name] = source
            pump = threading.Thread(
                target=self._pump,
                args=(name, source),
                name=f"pi-dash-evt-{name}",
                daemon=True,
            )
            self._pumps[name] = pump
        pump.start()

    def handle(self, path: str, handler: Handler) -> None:
        with self._lock:
            self._handlers[path] = handler

    def remove_handle(self, path: str) -> None:
        with self._lock:
            self._handlers.pop(path, None)

    def hook(self, fn: Handler) -> None:
        with self._lock:
            self._hooks.append(fn)

    @property
    def sources(self) -> list[str]:
        with self._lock:
            return list(self._sources)

    # -- dispatch -----------------------------------------------------------

    def match(self, path: str) -> Handler | None:
        """Return the handler for the longest pattern matching *path*."""
        with self._lock:
            candidates = [p for p in self._handlers if path_match(p, path)]
            if not candidates:
                return None
            return self._handlers[max(candidates, key=len)]

    def dispatch(self, event: Event) -> None:
        """Run hooks then the best-matching handler; errors are logged."""
        with self._lock:
            hooks = list(self._hooks)
        for fn in hooks:
            try:
                fn(event)
            except Exception:
                logger.exception("Event hook failed for %s", event.path)
        handler = self.match(event.path)
        if handler is None:
            return
        try:
            handler(event)
        except Exception:
            logger.exception("Event handler failed for %s", event.path)

    def loop(self) -> None:
        """Dispatch events on the calling thread until :meth:`stop_loop`."""
        self._loop_stop.clear()
        while not self._loop_stop.is_set() and not self._stop.is_set():
            try:
                event = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            self.dispatch(event)

    def stop_loop(self) -> None:
        self._loop_stop.set()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the dispatch loop and every pump thread."""
        self._stop.set()
        self._loop_stop.set()
        with self._lock:
            pumps = list(self._pumps.values())
        for pump in pumps:
            if pump is not threading.current_thread():
                pump.join(timeout)

    # -- private ------------------------------------------------------------

    def _pump(self, name: str, source: EventSource) -> None:
        while not self._stop.is_set():
            try:
                event = source.get(self._poll_interval)
            except Exception:
                logger.exception("Event source %s failed; detaching it", name)
                return
            if event is not None and not self._stop.is_set():
                self._queue.put(event)
