"""Abstract cell attributes and the dotted-name theme lookup.

An ``Attribute`` is a plain integer: the low 9 bits select a color
(``COLOR_DEFAULT`` is 0, the eight basic colors are 1..8 and the 256-color
palette is ``n + 1``), the bits above select text styles.  Drivers translate
attributes into their own native representation.
"""

from __future__ import annotations

Attribute = int

COLOR_DEFAULT: Attribute = 0
COLOR_BLACK: Attribute = 1
COLOR_RED: Attribute = 2
COLOR_GREEN: Attribute = 3
COLOR_YELLOW: Attribute = 4
COLOR_BLUE: Attribute = 5
COLOR_MAGENTA: Attribute = 6
COLOR_CYAN: Attribute = 7
COLOR_WHITE: Attribute = 8

ATTR_BOLD: Attribute = 1 << 9
ATTR_UNDERLINE: Attribute = 1 << 10
ATTR_REVERSE: Attribute = 1 << 11

COLOR_MASK: Attribute = 0x1FF
STYLE_MASK: Attribute = ATTR_BOLD | ATTR_UNDERLINE | ATTR_REVERSE


def color_256(n: int) -> Attribute:
    """Return the attribute for entry *n* (0..255) of the 256-color palette."""
    if not 0 <= n <= 255:
        raise ValueError(f"256-color index out of range: {n}")
    return n + 1


def color_of(attr: Attribute) -> Attribute:
    return attr & COLOR_MASK


def styles_of(attr: Attribute) -> Attribute:
    return attr & STYLE_MASK


# ---------------------------------------------------------------------------
# Theme
# ---------------------------------------------------------------------------

DEFAULT_THEME: dict[str, Attribute] = {
    "bg": COLOR_DEFAULT,
    "fg": COLOR_WHITE,
    "border.fg": COLOR_WHITE,
    "border.bg": COLOR_DEFAULT,
    "label.fg": COLOR_GREEN,
    "label.bg": COLOR_DEFAULT,
}


class Theme:
    """Dotted-name attribute table with suffix fallback.

    ``attr("par.border.fg")`` tries ``par.border.fg``, then ``border.fg``,
    then ``fg``; unknown names resolve to ``COLOR_DEFAULT``.
    """

    def __init__(self, values: dict[str, Attribute] | None = None) -> None:
        self._values: dict[str, Attribute] = dict(DEFAULT_THEME)
        if values:
            self._values.update(values)

    def attr(self, name: str) -> Attribute:
        parts = name.split(".")
        for i in range(len(parts)):
            key = ".".join(parts[i:])
            if key in self._values:
                return self._values[key]
        return COLOR_DEFAULT

    def set(self, name: str, value: Attribute) -> None:
        self._values[name] = value

    def names(self) -> list[str]:
        return sorted(self._values)
