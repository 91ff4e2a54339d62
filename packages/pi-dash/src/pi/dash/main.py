"""Entry point for the pi-dash demo dashboard."""

from __future__ import annotations

import argparse
import logging
import time


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="pi-dash: terminal dashboard demo")
    parser.add_argument("--interval", type=float, default=None, help="Timer interval in seconds")
    parser.add_argument(
        "--log-file",
        default="pi-dash.log",
        help="Log file (stderr is unusable while the screen is in raw mode)",
    )
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        filename=args.log_file,
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from pi.dash.buffer import Buffer, Rect
    from pi.dash.config import Config
    from pi.dash.session import Session
    from pi.dash.theme import ATTR_BOLD, COLOR_BLUE, COLOR_RED, COLOR_WHITE, COLOR_YELLOW
    from pi.dash.utils import visible_width

    config = Config.from_env()
    if args.interval is not None:
        config.timer_interval = args.interval

    with Session(config=config) as session:
        left = Buffer.filled(Rect.from_size(2, 1, 30, 8), " ", COLOR_WHITE, COLOR_BLUE)
        left.set_string(4, 2, "pi-dash", COLOR_WHITE | ATTR_BOLD, COLOR_BLUE)
        right = Buffer.filled(Rect.from_size(20, 5, 30, 8), " ", COLOR_WHITE, COLOR_RED)
        right.set_string(22, 11, "q to quit", COLOR_WHITE, COLOR_RED)

        def clock() -> Buffer:
            width = session.term_width()
            stamp = time.strftime("%a %d %b  %H:%M:%S")
            buf = Buffer(Rect.from_size(0, 0, width, 1))
            buf.set_string(max(width - visible_width(stamp), 0), 0, stamp, COLOR_YELLOW)
            return buf

        def redraw(_event: object = None) -> None:
            session.clear()
            session.render(left, right, clock())

        session.handle("/sys/kbd/q", session.stop_loop)
        session.handle("/sys/kbd/C-c", session.stop_loop)
        session.handle("/timer/", lambda e: session.render_async(clock()))
        assert session.wgt_mgr is not None
        wid = session.wgt_mgr.add(right, "demo")
        session.wgt_mgr.add_handler(wid, "/sys/wnd/resize", redraw)

        redraw()
        session.loop()


if __name__ == "__main__":
    main()
