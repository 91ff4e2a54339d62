"""Tests for the demo entry point's argument parsing."""

from __future__ import annotations

from pi.dash.main import build_parser


class TestParser:
    def test_defaults(self) -> None:
        args = build_parser().parse_args([])
        assert args.interval is None
        assert args.log_file == "pi-dash.log"
        assert args.log_level == "info"

    def test_overrides(self) -> None:
        args = build_parser().parse_args(["--interval", "0.5", "--log-level", "debug"])
        assert args.interval == 0.5
        assert args.log_level == "debug"
