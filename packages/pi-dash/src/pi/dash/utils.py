"""Glyph width measurement for terminal cells.

Splits text into grapheme clusters and measures how many terminal columns
each one occupies, so wide (CJK, emoji) glyphs take two cells.
"""

from __future__ import annotations

import unicodedata

import grapheme
import wcwidth as _wcwidth

# ---------------------------------------------------------------------------
# Width cache (capped at 512 entries)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


# ---------------------------------------------------------------------------
# Grapheme width
# ---------------------------------------------------------------------------


def graphemes(text: str) -> list[str]:
    """Split *text* into user-perceived characters."""
    return list(grapheme.graphemes(text))


def grapheme_width(g: str) -> int:
    """Return the terminal display width of a single grapheme cluster.

    Control characters and lone combining marks are 0 wide, emoji
    sequences are 2 wide, everything else is whatever wcwidth reports for
    the first codepoint.
    """
    if not g:
        return 0

    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or (0x7F <= cp <= 0x9F):
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    cached = _width_cache.get(g)
    if cached is not None:
        return cached

    for ch in g:
        cp = ord(ch)
        # VS16, ZWJ, skin tone modifiers, regional indicators
        if cp in (0xFE0F, 0x200D) or 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return _cache_width(g, 2)

    first = g[0]
    if ord(first) >= 0x1F000:
        return _cache_width(g, 2)

    cat = unicodedata.category(first)
    if cat.startswith("M") or cat == "Cf":
        return _cache_width(g, 0)

    return _cache_width(g, max(_wcwidth.wcwidth(first), 0))


def visible_width(text: str) -> int:
    """Total column width of *text* (no escape sequences expected)."""
    if text.isascii() and text.isprintable():
        return len(text)
    return sum(grapheme_width(g) for g in grapheme.graphemes(text))
