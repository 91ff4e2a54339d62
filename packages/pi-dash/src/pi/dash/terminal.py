"""Terminal driver abstraction for cell-based output.

Provides the ``TerminalDriver`` protocol the render pipeline writes
through, and a concrete ``ProcessTerminal`` that drives ``sys.stdin`` /
``sys.stdout`` with raw mode, the alternate screen, SIGWINCH-based resize
detection and diffed cell output via ANSI escape sequences.
"""

from __future__ import annotations

import logging
import os
import queue
import select
import signal
import sys
import termios
import threading
import tty
from dataclasses import dataclass
from typing import NamedTuple, Protocol

from pi.dash.errors import DriverError
from pi.dash.theme import (
    ATTR_BOLD,
    ATTR_REVERSE,
    ATTR_UNDERLINE,
    Attribute,
    color_of,
    styles_of,
)
from pi.dash.utils import grapheme_width

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_ALT_SCREEN_ENABLE = "\x1b[?1049h"
_ALT_SCREEN_DISABLE = "\x1b[?1049l"
_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"
_CLEAR_SCREEN = "\x1b[2J\x1b[H"
_CURSOR_TO_FMT = "\x1b[{};{}H"
_SGR_FMT = "\x1b[{}m"

_DEFAULT_SIZE = (80, 24)

# ---------------------------------------------------------------------------
# Events and native attributes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TermEvent:
    """A raw event read from the terminal.

    ``kind`` is ``"key"`` (``key`` set), ``"resize"`` (``width`` and
    ``height`` set) or ``"error"`` (``data`` holds the message).
    """

    kind: str
    key: str = ""
    width: int = 0
    height: int = 0
    data: str = ""


class NativeAttr(NamedTuple):
    """``ProcessTerminal``'s attribute: a palette index plus style bits.

    ``color`` is -1 for the terminal default, otherwise 0..255.
    """

    color: int = -1
    bold: bool = False
    underline: bool = False
    reverse: bool = False


# ---------------------------------------------------------------------------
# TerminalDriver protocol
# ---------------------------------------------------------------------------


class TerminalDriver(Protocol):
    """Interface the render pipeline and session require from a terminal."""

    def init(self) -> None: ...

    def close(self) -> None: ...

    def size(self) -> tuple[int, int]: ...

    def set_cell(self, x: int, y: int, ch: str, fg: object, bg: object) -> None: ...

    def flush(self) -> None: ...

    def clear(self, fg: object, bg: object) -> None: ...

    def sync(self) -> None: ...

    def native_attr(self, attr: Attribute) -> object: ...

    def poll_event(self, timeout: float | None = None) -> TermEvent | None: ...


# ---------------------------------------------------------------------------
# Key decoding
# ---------------------------------------------------------------------------

_ESCAPE_SEQUENCES: dict[str, str] = {
    "\x1b[A": "<up>",
    "\x1b[B": "<down>",
    "\x1b[C": "<right>",
    "\x1b[D": "<left>",
    "\x1bOA": "<up>",
    "\x1bOB": "<down>",
    "\x1bOC": "<right>",
    "\x1bOD": "<left>",
    "\x1b[H": "<home>",
    "\x1b[F": "<end>",
    "\x1bOH": "<home>",
    "\x1bOF": "<end>",
    "\x1b[1~": "<home>",
    "\x1b[4~": "<end>",
    "\x1b[2~": "<insert>",
    "\x1b[3~": "<delete>",
    "\x1b[5~": "<previous>",
    "\x1b[6~": "<next>",
    "\x1bOP": "<f1>",
    "\x1bOQ": "<f2>",
    "\x1bOR": "<f3>",
    "\x1bOS": "<f4>",
    "\x1b[15~": "<f5>",
    "\x1b[17~": "<f6>",
    "\x1b[18~": "<f7>",
    "\x1b[19~": "<f8>",
    "\x1b[20~": "<f9>",
    "\x1b[21~": "<f10>",
    "\x1b[23~": "<f11>",
    "\x1b[24~": "<f12>",
}

_SINGLE_KEYS: dict[str, str] = {
    "\r": "<enter>",
    "\n": "<enter>",
    "\t": "<tab>",
    " ": "<space>",
    "\x7f": "<backspace>",
    "\x08": "<backspace>",
}

# Longest sequences first so "\x1b[15~" is not read as "\x1b[1" + "5~"
_SEQUENCES_BY_LENGTH = sorted(_ESCAPE_SEQUENCES, key=len, reverse=True)


def parse_keys(data: str) -> list[str]:
    """Decode a chunk of terminal input into key names.

    Printable characters map to themselves, control characters to
    ``C-<letter>``, known escape sequences to ``<name>``, an ESC followed
    by a plain character to ``M-<char>`` and a lone ESC to ``<escape>``.
    """
    keys: list[str] = []
    i = 0
    while i < len(data):
        ch = data[i]
        if ch == "\x1b":
            for seq in _SEQUENCES_BY_LENGTH:
                if data.startswith(seq, i):
                    keys.append(_ESCAPE_SEQUENCES[seq])
                    i += len(seq)
                    break
            else:
                nxt = data[i + 1] if i + 1 < len(data) else ""
                if nxt and nxt != "\x1b" and nxt.isprintable():
                    keys.append(f"M-{nxt}")
                    i += 2
                else:
                    keys.append("<escape>")
                    i += 1
            continue
        if ch in _SINGLE_KEYS:
            keys.append(_SINGLE_KEYS[ch])
        elif ord(ch) < 0x20:
            keys.append(f"C-{chr(ord(ch) + 0x60)}")
        else:
            keys.append(ch)
        i += 1
    return keys


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Concrete driver backed by ``sys.stdin``/``sys.stdout``.

    Cells are written into a back buffer guarded by a lock; :meth:`flush`
    diffs it against what is already on screen and emits only the changed
    cells.
    """

    def __init__(self, write_log_path: str = "", poll_interval: float = 0.05) -> None:
        self._lock = threading.Lock()
        self._back: dict[tuple[int, int], tuple[str, NativeAttr, NativeAttr]] = {}
        self._front: dict[tuple[int, int], tuple[str, NativeAttr, NativeAttr]] = {}
        self._events: queue.Queue[TermEvent] = queue.Queue()
        self._saved_termios: list | None = None
        self._prev_sigwinch_handler: signal.Handlers | None = None
        self._reader: threading.Thread | None = None
        self._reader_stop = threading.Event()
        self._poll_interval = poll_interval
        self._write_log_path = write_log_path or os.environ.get("PI_DASH_WRITE_LOG", "")
        self._active = False

    # -- start / stop -------------------------------------------------------

    def init(self) -> None:
        """Enable raw mode and the alternate screen; start reading input."""
        if self._active:
            return
        try:
            fd = sys.stdin.fileno()
            if not os.isatty(fd):
                raise DriverError("stdin is not a terminal")
            self._saved_termios = termios.tcgetattr(fd)
            tty.setraw(fd)
        except (OSError, ValueError, termios.error) as exc:
            raise DriverError(f"cannot put terminal into raw mode: {exc}") from exc

        self._raw_write(_ALT_SCREEN_ENABLE + _HIDE_CURSOR + _CLEAR_SCREEN)
        self._active = True

        # signal.signal only works from the main thread
        if threading.current_thread() is threading.main_thread():
            self._prev_sigwinch_handler = signal.getsignal(signal.SIGWINCH)
            signal.signal(signal.SIGWINCH, self._on_sigwinch)

        self._reader_stop.clear()
        self._reader = threading.Thread(
            target=self._read_input, name="pi-dash-input", daemon=True
        )
        self._reader.start()
        logger.debug("Terminal initialised at %dx%d", *self.size())

    def close(self) -> None:
        """Restore terminal state and clean up all handlers."""
        if not self._active:
            return
        self._active = False

        self._reader_stop.set()
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(self._poll_interval * 4)
        self._reader = None

        if self._prev_sigwinch_handler is not None:
            try:
                signal.signal(signal.SIGWINCH, self._prev_sigwinch_handler)
            except ValueError:
                logger.debug("Cannot restore SIGWINCH handler off the main thread")
            self._prev_sigwinch_handler = None

        self._raw_write(_SGR_FMT.format(0) + _SHOW_CURSOR + _ALT_SCREEN_DISABLE)

        if self._saved_termios is not None:
            try:
                termios.tcsetattr(sys.stdin.fileno(), termios.TCSADRAIN, self._saved_termios)
            except (OSError, ValueError, termios.error):
                logger.exception("Failed to restore terminal attributes")
            self._saved_termios = None

        with self._lock:
            self._back.clear()
            self._front.clear()

    # -- geometry -----------------------------------------------------------

    def size(self) -> tuple[int, int]:
        try:
            sz = os.get_terminal_size(sys.stdout.fileno())
            return sz.columns, sz.lines
        except (ValueError, OSError):
            return _DEFAULT_SIZE

    # -- cells --------------------------------------------------------------

    def native_attr(self, attr: Attribute) -> NativeAttr:
        color = color_of(attr)
        styles = styles_of(attr)
        return NativeAttr(
            color=min(color, 256) - 1,
            bold=bool(styles & ATTR_BOLD),
            underline=bool(styles & ATTR_UNDERLINE),
            reverse=bool(styles & ATTR_REVERSE),
        )

    def set_cell(self, x: int, y: int, ch: str, fg: NativeAttr, bg: NativeAttr) -> None:
        if x < 0 or y < 0:
            return
        with self._lock:
            self._back[(x, y)] = (ch, fg, bg)

    def clear(self, fg: NativeAttr, bg: NativeAttr) -> None:
        width, height = self.size()
        blank = (" ", fg, bg)
        with self._lock:
            self._back = {(x, y): blank for y in range(height) for x in range(width)}

    def sync(self) -> None:
        """Forget the on-screen state so the next flush repaints everything."""
        with self._lock:
            self._front.clear()

    def flush(self) -> None:
        """Write every cell that differs from what is on screen."""
        width, height = self.size()
        with self._lock:
            changed = sorted(
                (p for p, cell in self._back.items() if self._front.get(p) != cell),
                key=lambda p: (p[1], p[0]),
            )
            out: list[str] = []
            cursor: tuple[int, int] | None = None
            attrs: tuple[NativeAttr, NativeAttr] | None = None
            for x, y in changed:
                if x >= width or y >= height:
                    continue
                ch, fg, bg = self._back[(x, y)]
                if cursor != (x, y):
                    out.append(_CURSOR_TO_FMT.format(y + 1, x + 1))
                if attrs != (fg, bg):
                    out.append(_sgr(fg, bg))
                    attrs = (fg, bg)
                w = grapheme_width(ch)
                out.append(ch if w > 0 else " ")
                cursor = (x + max(w, 1), y)
                self._front[(x, y)] = (ch, fg, bg)
        if out:
            self.write("".join(out))

    # -- events -------------------------------------------------------------

    def poll_event(self, timeout: float | None = None) -> TermEvent | None:
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    # -- write --------------------------------------------------------------

    def write(self, data: str) -> None:
        """Write data to stdout and optionally to the write log."""
        self._raw_write(data)

        if self._write_log_path:
            try:
                with open(self._write_log_path, "a") as f:
                    f.write(data)
            except OSError:
                logger.debug("Cannot append to write log %s", self._write_log_path)

    # -- private: input ----------------------------------------------------

    def _read_input(self) -> None:
        fd = sys.stdin.fileno()
        while not self._reader_stop.is_set():
            try:
                readable, _, _ = select.select([fd], [], [], self._poll_interval)
                if not readable:
                    continue
                raw = os.read(fd, 4096)
            except (OSError, ValueError) as exc:
                self._events.put(TermEvent("error", data=str(exc)))
                return
            if not raw:
                continue
            for key in parse_keys(raw.decode("utf-8", errors="replace")):
                self._events.put(TermEvent("key", key=key))

    # -- private: SIGWINCH -------------------------------------------------

    def _on_sigwinch(self, signum: int, frame: object) -> None:
        width, height = self.size()
        self._events.put(TermEvent("resize", width=width, height=height))

    # -- private: raw write ------------------------------------------------

    def _raw_write(self, data: str) -> None:
        """Write directly to stdout, bypassing buffering."""
        try:
            sys.stdout.write(data)
            sys.stdout.flush()
        except OSError:
            logger.debug("stdout write failed", exc_info=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _color_params(color: int, background: bool) -> list[str]:
    if color < 0:
        return ["49" if background else "39"]
    if color < 8:
        return [str((40 if background else 30) + color)]
    return ["48" if background else "38", "5", str(color)]


def _sgr(fg: NativeAttr, bg: NativeAttr) -> str:
    params = ["0"]
    if fg.bold:
        params.append("1")
    if fg.underline:
        params.append("4")
    if fg.reverse or bg.reverse:
        params.append("7")
    params += _color_params(fg.color, background=False)
    params += _color_params(bg.color, background=True)
    return _SGR_FMT.format(";".join(params))
