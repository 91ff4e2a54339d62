"""Terminal width/height, refreshed from the driver on every read."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pi.dash.terminal import TerminalDriver


class GeometryCache:
    """Pull-based terminal geometry.

    ``width()`` and ``height()`` each query the driver before answering, so
    a value is only authoritative at the instant it is returned.  The only
    other writer is :meth:`update`, used by the resize-event handler.
    """

    def __init__(self, driver: TerminalDriver) -> None:
        self._driver = driver
        self._width = 0
        self._height = 0

    @property
    def cached(self) -> tuple[int, int]:
        """The last stored pair, without querying the driver."""
        return self._width, self._height

    def reset(self) -> None:
        self._width = 0
        self._height = 0

    def refresh(self) -> tuple[int, int]:
        self._width, self._height = self._driver.size()
        return self._width, self._height

    def update(self, width: int, height: int) -> None:
        self._width = width
        self._height = height

    def width(self) -> int:
        return self.refresh()[0]

    def height(self) -> int:
        return self.refresh()[1]
