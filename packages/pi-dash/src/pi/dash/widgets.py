"""Root layout container and the widget manager hook.

``Grid`` is the process-wide root container a session exposes as
``body``; the resize handler keeps its ``width`` in step with the
terminal.  ``WidgetManager`` lets widgets register their own event
handlers, dispatched through a hook on the session's event stream.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field

from pi.dash.buffer import Buffer, Bufferer, Rect
from pi.dash.events import Event, Handler, path_match
from pi.dash.theme import COLOR_DEFAULT, Attribute

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------


@dataclass
class Grid:
    """Root container: paints its rows in order, clipped to its width.

    Rows keep their own coordinates; placing them is the caller's job.
    """

    x: int = 0
    y: int = 0
    width: int = 0
    bg_color: Attribute = COLOR_DEFAULT
    rows: list[Bufferer] = field(default_factory=list)

    def add_rows(self, *rows: Bufferer) -> None:
        self.rows.extend(rows)

    def clear(self) -> None:
        self.rows.clear()

    def buffer(self) -> Buffer:
        merged = Buffer()
        for row in self.rows:
            merged.merge(row.buffer())
        span = Rect(self.x, self.y, self.x + self.width, max(merged.area.max_y, self.y))
        merged.set_area(merged.area.intersect(span))
        return merged


# ---------------------------------------------------------------------------
# WidgetManager
# ---------------------------------------------------------------------------


@dataclass
class WidgetInfo:
    id: str
    widget: object
    handlers: dict[str, Handler] = field(default_factory=dict)


class WidgetManager:
    """Registry of widgets and their per-path event handlers."""

    def __init__(self) -> None:
        self._widgets: dict[str, WidgetInfo] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def add(self, widget: object, id: str | None = None) -> str:
        """Register *widget* and return its id."""
        with self._lock:
            wid = id or getattr(widget, "id", None) or f"widget-{next(self._ids)}"
            self._widgets[wid] = WidgetInfo(wid, widget)
            return wid

    def remove(self, id: str) -> None:
        with self._lock:
            self._widgets.pop(id, None)

    def add_handler(self, id: str, path: str, handler: Handler) -> None:
        with self._lock:
            info = self._widgets.get(id)
            if info is None:
                raise KeyError(f"unknown widget: {id}")
            info.handlers[path] = handler

    def __contains__(self, id: object) -> bool:
        with self._lock:
            return id in self._widgets

    def __len__(self) -> int:
        with self._lock:
            return len(self._widgets)

    def handlers_hook(self) -> Handler:
        """Return the hook to register on an :class:`EventStream`."""

        def hook(event: Event) -> None:
            with self._lock:
                matched = [
                    (info.id, fn)
                    for info in self._widgets.values()
                    for path, fn in info.handlers.items()
                    if path_match(path, event.path)
                ]
            for wid, fn in matched:
                try:
                    fn(event)
                except Exception:
                    logger.exception("Handler of widget %s failed for %s", wid, event.path)

        return hook
