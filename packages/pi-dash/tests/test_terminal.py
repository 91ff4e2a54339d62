"""Tests for pi.dash.terminal -- key decoding, attributes and diffed flush."""

from __future__ import annotations

import pytest

from pi.dash.errors import DriverError
from pi.dash.terminal import NativeAttr, ProcessTerminal, parse_keys
from pi.dash.theme import (
    ATTR_BOLD,
    ATTR_UNDERLINE,
    COLOR_BLUE,
    COLOR_DEFAULT,
    COLOR_RED,
    color_256,
)


@pytest.fixture
def term(monkeypatch: pytest.MonkeyPatch) -> ProcessTerminal:
    monkeypatch.delenv("PI_DASH_WRITE_LOG", raising=False)
    t = ProcessTerminal()
    monkeypatch.setattr(t, "size", lambda: (10, 5))
    return t


# ---------------------------------------------------------------------------
# Key decoding
# ---------------------------------------------------------------------------


class TestParseKeys:
    def test_printable(self) -> None:
        assert parse_keys("ab") == ["a", "b"]

    def test_named_single_keys(self) -> None:
        assert parse_keys("\r\t \x7f") == ["<enter>", "<tab>", "<space>", "<backspace>"]

    def test_control_keys(self) -> None:
        assert parse_keys("\x03\x01") == ["C-c", "C-a"]

    def test_escape_sequences(self) -> None:
        assert parse_keys("\x1b[A\x1b[B\x1b[3~") == ["<up>", "<down>", "<delete>"]

    def test_longest_sequence_wins(self) -> None:
        assert parse_keys("\x1b[15~") == ["<f5>"]

    def test_lone_escape_and_meta(self) -> None:
        assert parse_keys("\x1b") == ["<escape>"]
        assert parse_keys("\x1bx") == ["M-x"]
        assert parse_keys("\x1b\x1b") == ["<escape>", "<escape>"]


# ---------------------------------------------------------------------------
# Attribute conversion
# ---------------------------------------------------------------------------


class TestNativeAttr:
    def test_default_color(self, term: ProcessTerminal) -> None:
        assert term.native_attr(COLOR_DEFAULT) == NativeAttr(color=-1)

    def test_basic_color_and_styles(self, term: ProcessTerminal) -> None:
        attr = term.native_attr(COLOR_RED | ATTR_BOLD | ATTR_UNDERLINE)
        assert attr == NativeAttr(color=1, bold=True, underline=True)

    def test_palette_color(self, term: ProcessTerminal) -> None:
        assert term.native_attr(color_256(200)).color == 200


# ---------------------------------------------------------------------------
# Flush
# ---------------------------------------------------------------------------


class TestFlush:
    def test_flush_writes_changed_cells(self, term: ProcessTerminal, capsys: pytest.CaptureFixture[str]) -> None:
        fg = term.native_attr(COLOR_RED)
        bg = term.native_attr(COLOR_BLUE)
        term.set_cell(0, 0, "a", fg, bg)
        term.set_cell(1, 0, "b", fg, bg)
        term.flush()

        out = capsys.readouterr().out
        assert "\x1b[1;1H" in out
        assert "\x1b[0;31;44m" in out
        assert out.endswith("ab")
        # Adjacent cells share one cursor move
        assert "\x1b[1;2H" not in out

    def test_unchanged_cells_are_not_rewritten(
        self, term: ProcessTerminal, capsys: pytest.CaptureFixture[str]
    ) -> None:
        attr = term.native_attr(COLOR_DEFAULT)
        term.set_cell(2, 1, "x", attr, attr)
        term.flush()
        capsys.readouterr()

        term.flush()
        assert capsys.readouterr().out == ""

        term.sync()
        term.flush()
        assert "x" in capsys.readouterr().out

    def test_cells_outside_screen_are_skipped(
        self, term: ProcessTerminal, capsys: pytest.CaptureFixture[str]
    ) -> None:
        attr = term.native_attr(COLOR_DEFAULT)
        term.set_cell(50, 50, "z", attr, attr)
        term.set_cell(-1, 0, "n", attr, attr)
        term.flush()
        assert capsys.readouterr().out == ""

    def test_wide_glyph_advances_cursor_by_two(
        self, term: ProcessTerminal, capsys: pytest.CaptureFixture[str]
    ) -> None:
        attr = term.native_attr(COLOR_DEFAULT)
        term.set_cell(0, 0, "中", attr, attr)
        term.set_cell(2, 0, "a", attr, attr)
        term.flush()
        out = capsys.readouterr().out
        assert "\x1b[1;3H" not in out
        assert out.endswith("中a")

    def test_clear_fills_screen(self, term: ProcessTerminal, capsys: pytest.CaptureFixture[str]) -> None:
        attr = term.native_attr(COLOR_DEFAULT)
        term.clear(attr, term.native_attr(COLOR_BLUE))
        term.flush()
        out = capsys.readouterr().out
        assert out.count(" ") == 50
        assert "44m" in out

    def test_write_log(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        log = tmp_path / "writes.log"
        t = ProcessTerminal(write_log_path=str(log))
        monkeypatch.setattr(t, "size", lambda: (10, 5))
        attr = t.native_attr(COLOR_DEFAULT)
        t.set_cell(0, 0, "w", attr, attr)
        t.flush()
        assert log.read_text().endswith("w")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_init_without_tty_raises_driver_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("pi.dash.terminal.os.isatty", lambda fd: False)
        t = ProcessTerminal()
        with pytest.raises(DriverError):
            t.init()

    def test_close_without_init_is_noop(self, capsys: pytest.CaptureFixture[str]) -> None:
        ProcessTerminal().close()
        assert capsys.readouterr().out == ""

    def test_poll_event_times_out(self) -> None:
        assert ProcessTerminal().poll_event(0.01) is None
