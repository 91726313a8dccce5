"""Cell-level text measurement and shaping.

Text on screen is a list of ``Cell`` values, one per code point with its
attribute. These helpers sanitize names for display and fit them to columns.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass

from .colors import NO_ATTR, Attr, AttrFlag

_MARKER = Attr(AttrFlag.REVERSE)


@dataclass(frozen=True)
class Cell:
    char: str
    attr: Attr = NO_ATTR


def char_display_width(ch: str) -> int:
    """Return terminal column width for one character.

    Combining marks consume no columns, and East Asian wide/fullwidth
    characters consume two.
    """
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def is_combining(ch: str) -> bool:
    return bool(unicodedata.combining(ch))


def cells(text: str, attr: Attr = NO_ATTR) -> list[Cell]:
    return [Cell(ch, attr) for ch in text]


def sanitize(text: str, attr: Attr = NO_ATTR) -> list[Cell]:
    """Turn ``text`` into cells, making control and undecodable bytes visible.

    C0 controls show as a reverse ``^X``; DEL and other non-printable code
    points (surrogate-escaped bytes included) show as a reverse ``?``.
    """
    out: list[Cell] = []
    marker = _MARKER.over(attr)
    for ch in text:
        code = ord(ch)
        if code < 32:
            out.append(Cell("^", marker))
            out.append(Cell(chr(code + 64), marker))
        elif code == 127 or unicodedata.category(ch).startswith("C"):
            out.append(Cell("?", marker))
        else:
            out.append(Cell(ch, attr))
    return out


def width(line: Iterable[Cell]) -> int:
    return sum(char_display_width(cell.char) for cell in line)


def clip(line: list[Cell], max_cols: int) -> list[Cell]:
    """Trim cells to at most ``max_cols`` display columns.

    A wide character that would straddle the edge is dropped; combining marks
    stay with the character they follow.
    """
    if max_cols <= 0:
        return []
    col = 0
    for index, cell in enumerate(line):
        w = char_display_width(cell.char)
        if col + w > max_cols:
            return line[:index]
        col += w
    return line


def align(line: list[Cell], cols: int, right: bool = False) -> list[Cell]:
    """Pad with plain spaces, or clip, to exactly ``cols`` columns."""
    line = clip(line, cols)
    padding = [Cell(" ")] * (cols - width(line))
    if right:
        return padding + line
    return line + padding


def with_attr(line: Iterable[Cell], attr: Attr) -> list[Cell]:
    """Composite ``attr`` over every cell, keeping each cell's own color."""
    return [Cell(cell.char, attr.over(cell.attr)) for cell in line]
