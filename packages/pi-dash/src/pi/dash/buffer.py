"""Cells, rectangles and the drawable-surface contract.

A drawable surface is anything with a ``buffer()`` method returning a
:class:`Buffer`: a sparse map from :class:`Point` to :class:`Cell` plus the
bounding :class:`Rect` that decides which of those cells are in scope when
the surface is composited onto the terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, NamedTuple, Protocol, runtime_checkable

from pi.dash.theme import COLOR_DEFAULT, Attribute
from pi.dash.utils import grapheme_width, graphemes

__all__ = [
    "Point",
    "Rect",
    "Cell",
    "Buffer",
    "Bufferer",
    "cells_of",
]


# ---------------------------------------------------------------------------
# Geometry primitives
# ---------------------------------------------------------------------------


class Point(NamedTuple):
    x: int
    y: int


class Rect(NamedTuple):
    """Half-open rectangle: ``min`` is inside, ``max`` is not."""

    min_x: int = 0
    min_y: int = 0
    max_x: int = 0
    max_y: int = 0

    @classmethod
    def from_size(cls, x: int, y: int, width: int, height: int) -> Rect:
        return cls(x, y, x + width, y + height)

    @property
    def width(self) -> int:
        return max(self.max_x - self.min_x, 0)

    @property
    def height(self) -> int:
        return max(self.max_y - self.min_y, 0)

    @property
    def empty(self) -> bool:
        return self.min_x >= self.max_x or self.min_y >= self.max_y

    def contains(self, p: tuple[int, int]) -> bool:
        x, y = p
        return self.min_x <= x < self.max_x and self.min_y <= y < self.max_y

    def intersect(self, other: Rect) -> Rect:
        r = Rect(
            max(self.min_x, other.min_x),
            max(self.min_y, other.min_y),
            min(self.max_x, other.max_x),
            min(self.max_y, other.max_y),
        )
        return Rect() if r.empty else r

    def union(self, other: Rect) -> Rect:
        if self.empty:
            return other
        if other.empty:
            return self
        return Rect(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def points(self) -> Iterator[Point]:
        """Yield every point inside the rectangle, row by row."""
        for y in range(self.min_y, self.max_y):
            for x in range(self.min_x, self.max_x):
                yield Point(x, y)


# ---------------------------------------------------------------------------
# Cell
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Cell:
    """One glyph with its foreground and background attributes."""

    ch: str = " "
    fg: Attribute = COLOR_DEFAULT
    bg: Attribute = COLOR_DEFAULT

    @property
    def width(self) -> int:
        return grapheme_width(self.ch)


def cells_of(text: str, fg: Attribute = COLOR_DEFAULT, bg: Attribute = COLOR_DEFAULT) -> list[Cell]:
    """Split *text* into one cell per grapheme cluster."""
    return [Cell(g, fg, bg) for g in graphemes(text)]


# ---------------------------------------------------------------------------
# Buffer
# ---------------------------------------------------------------------------


@dataclass
class Buffer:
    """Sparse cell map plus the area that is in scope for compositing.

    The map may hold cells outside ``area``; those are kept but never
    rendered.
    """

    area: Rect = field(default_factory=Rect)
    cell_map: dict[Point, Cell] = field(default_factory=dict)

    @classmethod
    def filled(cls, area: Rect, ch: str = " ", fg: Attribute = COLOR_DEFAULT, bg: Attribute = COLOR_DEFAULT) -> Buffer:
        buf = cls(area)
        buf.fill(ch, fg, bg)
        return buf

    def buffer(self) -> Buffer:
        return self

    def set(self, x: int, y: int, cell: Cell) -> None:
        self.cell_map[Point(x, y)] = cell

    def at(self, x: int, y: int) -> Cell:
        """Return the cell at (x, y), or a blank default cell."""
        return self.cell_map.get(Point(x, y), Cell())

    def bounds(self) -> Rect:
        """Smallest rectangle covering every stored point."""
        if not self.cell_map:
            return Rect()
        xs = [p.x for p in self.cell_map]
        ys = [p.y for p in self.cell_map]
        return Rect(min(xs), min(ys), max(xs) + 1, max(ys) + 1)

    def set_area(self, area: Rect) -> None:
        self.area = area

    def sync_area(self) -> None:
        self.area = self.bounds()

    def fill(self, ch: str = " ", fg: Attribute = COLOR_DEFAULT, bg: Attribute = COLOR_DEFAULT) -> None:
        """Write the same cell at every point of ``area``."""
        cell = Cell(ch, fg, bg)
        for p in self.area.points():
            self.cell_map[p] = cell

    def merge(self, *others: Buffer) -> None:
        """Copy every cell of *others* onto this buffer; later ones win."""
        for other in others:
            self.cell_map.update(other.cell_map)
            self.area = self.area.union(other.area)

    def set_string(
        self,
        x: int,
        y: int,
        text: str,
        fg: Attribute = COLOR_DEFAULT,
        bg: Attribute = COLOR_DEFAULT,
    ) -> int:
        """Lay *text* out from (x, y) and return the columns consumed.

        Wide glyphs occupy two columns; the second column's stale cell is
        dropped so it cannot paint over the glyph.
        """
        col = x
        for cell in cells_of(text, fg, bg):
            w = cell.width
            if w == 0:
                continue
            self.cell_map[Point(col, y)] = cell
            for extra in range(1, w):
                self.cell_map.pop(Point(col + extra, y), None)
            col += w
        return col - x


@runtime_checkable
class Bufferer(Protocol):
    """A drawable surface."""

    def buffer(self) -> Buffer: ...
