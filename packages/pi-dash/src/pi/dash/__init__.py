"""pi-dash: terminal dashboard core with serialised, cell-based rendering."""

# Cells, rectangles and drawable surfaces
from pi.dash.buffer import Buffer, Bufferer, Cell, Point, Rect, cells_of

# Configuration and errors
from pi.dash.config import Config
from pi.dash.errors import DashError, DriverError, SessionStateError

# Event bus
from pi.dash.events import (
    CustomSource,
    Event,
    EventStream,
    EvtErr,
    EvtKbd,
    EvtTimer,
    EvtWnd,
    SysEventSource,
    TimerSource,
    default_handler,
)

# Geometry
from pi.dash.geometry import GeometryCache

# Render pipeline
from pi.dash.render import Renderer, RenderJobLoop

# Session lifecycle and the process-wide default session
from pi.dash.session import (
    Session,
    SessionState,
    clear,
    clear_area,
    close,
    default_session,
    defer,
    handle,
    init,
    loop,
    render,
    render_async,
    send_custom_event,
    stop_loop,
    term_height,
    term_width,
)

# Terminal driver interface and implementation
from pi.dash.terminal import NativeAttr, ProcessTerminal, TermEvent, TerminalDriver

# Attributes and theme
from pi.dash.theme import (
    ATTR_BOLD,
    ATTR_REVERSE,
    ATTR_UNDERLINE,
    COLOR_BLACK,
    COLOR_BLUE,
    COLOR_CYAN,
    COLOR_DEFAULT,
    COLOR_GREEN,
    COLOR_MAGENTA,
    COLOR_RED,
    COLOR_WHITE,
    COLOR_YELLOW,
    Attribute,
    Theme,
    color_256,
)

# Root container and widget manager
from pi.dash.widgets import Grid, WidgetManager

# Deferred worker
from pi.dash.worker import DeferredWorker

__all__ = [
    # Buffer
    "Buffer",
    "Bufferer",
    "Cell",
    "Point",
    "Rect",
    "cells_of",
    # Config / errors
    "Config",
    "DashError",
    "DriverError",
    "SessionStateError",
    # Events
    "CustomSource",
    "Event",
    "EventStream",
    "EvtErr",
    "EvtKbd",
    "EvtTimer",
    "EvtWnd",
    "SysEventSource",
    "TimerSource",
    "default_handler",
    # Geometry
    "GeometryCache",
    # Render
    "Renderer",
    "RenderJobLoop",
    # Session
    "Session",
    "SessionState",
    "clear",
    "clear_area",
    "close",
    "default_session",
    "defer",
    "handle",
    "init",
    "loop",
    "render",
    "render_async",
    "send_custom_event",
    "stop_loop",
    "term_height",
    "term_width",
    # Terminal
    "NativeAttr",
    "ProcessTerminal",
    "TermEvent",
    "TerminalDriver",
    # Theme
    "ATTR_BOLD",
    "ATTR_REVERSE",
    "ATTR_UNDERLINE",
    "COLOR_BLACK",
    "COLOR_BLUE",
    "COLOR_CYAN",
    "COLOR_DEFAULT",
    "COLOR_GREEN",
    "COLOR_MAGENTA",
    "COLOR_RED",
    "COLOR_WHITE",
    "COLOR_YELLOW",
    "Attribute",
    "Theme",
    "color_256",
    # Widgets
    "Grid",
    "WidgetManager",
    # Worker
    "DeferredWorker",
]
