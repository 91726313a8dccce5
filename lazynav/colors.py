"""File coloring compatible with GNU ``ls`` plus UI element attributes.

Decodes ``LS_COLORS`` and SGR parameter lists into renderer attributes,
interns foreground/background pairs, and classifies entries into the same
categories ``ls`` uses. The classification logic follows GNU ls closely.
"""

from __future__ import annotations

import enum
import logging
import os
import stat
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .entries import Entry

logger = logging.getLogger(__name__)


class AttrFlag(enum.IntFlag):
    NONE = 0
    BOLD = enum.auto()
    DIM = enum.auto()
    UNDERLINE = enum.auto()
    BLINK = enum.auto()
    REVERSE = enum.auto()
    ITALIC = enum.auto()


@dataclass(frozen=True)
class Attr:
    """Renderer attribute: style flags plus an interned color pair slot.

    Pair slot 0 means the terminal's default colors.
    """

    flags: AttrFlag = AttrFlag.NONE
    pair: int = 0

    def __bool__(self) -> bool:
        return bool(self.flags) or self.pair != 0

    def over(self, base: Attr) -> Attr:
        """Composite this attribute on top of ``base`` without erasing its color."""
        return Attr(base.flags | self.flags, self.pair or base.pair)

    def without_color(self) -> Attr:
        return Attr(self.flags, 0)


NO_ATTR = Attr()


class ColorPairs:
    """Allocator of color pair slots keyed by first use."""

    def __init__(self, colors: int) -> None:
        self.colors = colors
        self._slots: dict[tuple[int, int], int] = {}
        self._pairs: list[tuple[int, int]] = [(-1, -1)]

    def allocate(self, fg: int, bg: int) -> int:
        key = (fg, bg)
        slot = self._slots.get(key)
        if slot is None:
            slot = len(self._pairs)
            self._pairs.append(key)
            self._slots[key] = slot
        return slot

    def pair(self, slot: int) -> tuple[int, int]:
        if 0 <= slot < len(self._pairs):
            return self._pairs[slot]
        return (-1, -1)

    def __len__(self) -> int:
        return len(self._pairs) - 1


def terminal_color_count(env: dict[str, str] | None = None) -> int:
    """Guess how many indexed colors the terminal offers from ``TERM``."""
    env = os.environ if env is None else env
    if env.get("NO_COLOR"):
        return 0
    term = env.get("TERM", "")
    if not term or term == "dumb":
        return 0
    if "256color" in term or env.get("COLORTERM"):
        return 256
    if "16color" in term:
        return 16
    return 8


class LsCategory(enum.IntEnum):
    NORMAL = 0
    FILE = enum.auto()
    RESET = enum.auto()
    DIRECTORY = enum.auto()
    SYMLINK = enum.auto()
    MULTIHARDLINK = enum.auto()
    FIFO = enum.auto()
    SOCKET = enum.auto()
    DOOR = enum.auto()
    BLOCK = enum.auto()
    CHARACTER = enum.auto()
    ORPHAN = enum.auto()
    MISSING = enum.auto()
    SETUID = enum.auto()
    SETGID = enum.auto()
    CAPABILITY = enum.auto()
    STICKY_OTHER_WRITABLE = enum.auto()
    OTHER_WRITABLE = enum.auto()
    STICKY = enum.auto()
    EXECUTABLE = enum.auto()


LS_KEYWORDS: dict[str, LsCategory] = {
    "no": LsCategory.NORMAL,
    "fi": LsCategory.FILE,
    "rs": LsCategory.RESET,
    "di": LsCategory.DIRECTORY,
    "ln": LsCategory.SYMLINK,
    "mh": LsCategory.MULTIHARDLINK,
    "pi": LsCategory.FIFO,
    "so": LsCategory.SOCKET,
    "do": LsCategory.DOOR,
    "bd": LsCategory.BLOCK,
    "cd": LsCategory.CHARACTER,
    "or": LsCategory.ORPHAN,
    "mi": LsCategory.MISSING,
    "su": LsCategory.SETUID,
    "sg": LsCategory.SETGID,
    "ca": LsCategory.CAPABILITY,
    "tw": LsCategory.STICKY_OTHER_WRITABLE,
    "ow": LsCategory.OTHER_WRITABLE,
    "st": LsCategory.STICKY,
    "ex": LsCategory.EXECUTABLE,
}

UI_ELEMENTS: tuple[str, ...] = ("cursor", "select", "bar", "cwd", "input", "info", "cmdline", "flash")

_DEFAULT_UI: dict[str, Attr] = {
    "cursor": Attr(AttrFlag.REVERSE),
    "select": Attr(AttrFlag.BOLD),
    "bar": Attr(AttrFlag.REVERSE),
    "cwd": Attr(AttrFlag.BOLD),
    "input": NO_ATTR,
    "info": Attr(AttrFlag.DIM),
    "cmdline": NO_ATTR,
    "flash": Attr(AttrFlag.REVERSE),
}

_ATTR_WORDS: dict[str, AttrFlag] = {
    "bold": AttrFlag.BOLD,
    "dim": AttrFlag.DIM,
    "ul": AttrFlag.UNDERLINE,
    "blink": AttrFlag.BLINK,
    "reverse": AttrFlag.REVERSE,
    "italic": AttrFlag.ITALIC,
}


def decode_ansi_sgr(params: Sequence[str | int], pairs: ColorPairs) -> Attr:
    """Decode an SGR parameter list into an attribute.

    Only 3-bit colors and the indexed ``38;5;N``/``48;5;N`` forms are
    understood. Any other extended color form, or an index the terminal
    cannot show, rejects the whole list and yields an empty attribute.
    """
    args: list[int] = []
    for param in params:
        if isinstance(param, int):
            value = param
        elif param == "":
            value = 0
        elif param.isascii() and param.isdigit():
            value = int(param)
        else:
            return NO_ATTR
        if value < 0 or value > 255:
            return NO_ATTR
        args.append(value)

    flags = AttrFlag.NONE
    fg = bg = -1
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == 0:
            flags, fg, bg = AttrFlag.NONE, -1, -1
        elif arg == 1:
            flags |= AttrFlag.BOLD
        elif arg == 4:
            flags |= AttrFlag.UNDERLINE
        elif arg == 5:
            flags |= AttrFlag.BLINK
        elif arg == 7:
            flags |= AttrFlag.REVERSE
        elif 30 <= arg <= 37:
            fg = arg - 30
        elif 40 <= arg <= 47:
            bg = arg - 40
        elif arg in (38, 48):
            if i + 1 < len(args) and args[i + 1] != 5:
                return NO_ATTR
            if i + 2 >= len(args):
                break
            index = args[i + 2]
            if index >= pairs.colors:
                return NO_ATTR
            if arg == 38:
                fg = index
            else:
                bg = index
            i += 2
        i += 1

    if fg != -1 or bg != -1:
        return Attr(flags, pairs.allocate(fg, bg))
    return Attr(flags)


def decode_attrs(tokens: Iterable[str], pairs: ColorPairs) -> Attr:
    """Decode look-file tokens: up to two color numbers then style words."""
    flags = AttrFlag.NONE
    fg = bg = -1
    colors = 0
    for token in tokens:
        try:
            number = int(token)
        except ValueError:
            flag = _ATTR_WORDS.get(token)
            if flag is None:
                logger.warning("look: unknown attribute: %s", token)
                continue
            flags |= flag
            continue
        if not -1 <= number < pairs.colors:
            logger.warning("look: color out of range: %s", token)
            continue
        colors += 1
        if colors == 1:
            fg = number
        elif colors == 2:
            bg = number
    if fg != -1 or bg != -1:
        return Attr(flags, pairs.allocate(fg, bg))
    return Attr(flags)


@dataclass
class ColorTable:
    """Per-category and per-extension attributes plus UI element styles."""

    pairs: ColorPairs
    categories: dict[LsCategory, Attr] = field(default_factory=dict)
    extensions: dict[str, Attr] = field(default_factory=dict)
    symlink_as_target: bool = False
    ui: dict[str, Attr] = field(default_factory=lambda: dict(_DEFAULT_UI))

    def load_ls_colors(self, spec: str) -> None:
        """Merge an ``LS_COLORS``-style ``key=value:...`` specification."""
        decoded: dict[str, Attr] = {}
        for item in spec.split(":"):
            key, sep, value = item.partition("=")
            if not sep or not key:
                continue
            if key == "ln" and value == "target":
                self.symlink_as_target = True
                continue
            decoded[key] = decode_ansi_sgr(value.split(";"), self.pairs)

        for keyword, category in LS_KEYWORDS.items():
            if keyword in decoded:
                self.categories[category] = decoded[keyword]
        for key, attr in decoded.items():
            if key.startswith("*.") and len(key) > 2:
                self.extensions[key[2:]] = attr

    def load_look(self, lines: Iterable[list[str]]) -> None:
        """Apply ``element attribute...`` lines from the look file."""
        for tokens in lines:
            if not tokens:
                continue
            name, *rest = tokens
            if name not in self.ui:
                logger.warning("look: unknown element: %s", name)
                continue
            self.ui[name] = decode_attrs(rest, self.pairs)

    def is_colored(self, category: LsCategory) -> bool:
        return bool(self.categories.get(category, NO_ATTR))

    def classify(self, entry: Entry, for_target: bool = False) -> LsCategory:
        """Return the ``ls`` category of ``entry`` or of its symlink target."""
        category = LsCategory.ORPHAN

        def claim(candidate: LsCategory) -> None:
            nonlocal category
            if self.is_colored(candidate):
                category = candidate

        if for_target or (self.symlink_as_target and entry.target_info is not None):
            info = entry.target_info
            mode = info.st_mode if info is not None else 0
            capable = entry.target_capable
        else:
            info = entry.info
            mode = entry.mode
            capable = entry.capable

        if for_target and info is None:
            claim(LsCategory.MISSING)
        elif stat.S_ISREG(mode):
            category = LsCategory.FILE
            if info is not None and info.st_nlink > 1:
                claim(LsCategory.MULTIHARDLINK)
            if mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
                claim(LsCategory.EXECUTABLE)
            if capable:
                claim(LsCategory.CAPABILITY)
            if mode & stat.S_ISGID:
                claim(LsCategory.SETGID)
            if mode & stat.S_ISUID:
                claim(LsCategory.SETUID)
        elif stat.S_ISDIR(mode):
            category = LsCategory.DIRECTORY
            if mode & stat.S_ISVTX:
                claim(LsCategory.STICKY)
            if mode & stat.S_IWOTH:
                claim(LsCategory.OTHER_WRITABLE)
            if mode & stat.S_ISVTX and mode & stat.S_IWOTH:
                claim(LsCategory.STICKY_OTHER_WRITABLE)
        elif stat.S_ISLNK(mode):
            category = LsCategory.SYMLINK
            if entry.target_info is None and (
                self.is_colored(LsCategory.ORPHAN) or self.symlink_as_target
            ):
                category = LsCategory.ORPHAN
        elif stat.S_ISFIFO(mode):
            category = LsCategory.FIFO
        elif stat.S_ISSOCK(mode):
            category = LsCategory.SOCKET
        elif stat.S_ISBLK(mode):
            category = LsCategory.BLOCK
        elif stat.S_ISCHR(mode):
            category = LsCategory.CHARACTER
        return category

    def attribute_for(self, entry: Entry, for_target: bool = False) -> Attr:
        category = self.classify(entry, for_target)
        attr = self.categories.get(category, NO_ATTR)
        if category != LsCategory.FILE:
            return attr

        name = entry.target_path if for_target and entry.target_path else entry.filename
        _, dot, extension = name.rpartition(".")
        if not dot or not extension:
            return attr
        override = self.extensions.get(extension)
        if override is None:
            folded = extension.casefold()
            for key, value in self.extensions.items():
                if key.casefold() == folded:
                    override = value
                    break
        return attr if override is None else override


def build_color_table(
    colors: int,
    ls_colors: str | None,
    look_lines: Iterable[list[str]] = (),
) -> ColorTable:
    """Assemble the session color table from the environment and look file."""
    table = ColorTable(pairs=ColorPairs(colors))
    if colors <= 0:
        return table
    if ls_colors:
        table.load_ls_colors(ls_colors)
    table.load_look(look_lines)
    return table
