"""Key values, key names, actions and the binding tables.

A key is an integer: a Unicode code point, or ``SYM | id`` for a special key.
``ALT`` is or-ed in for Escape-prefixed keys. Binding files map key names to
actions per context (``normal``, ``input``, ``search``) and may ``define``
names for extra terminal sequences.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

ALT = 1 << 24
SYM = 1 << 25
ESCAPE = 27

SpecialKey = enum.IntEnum(
    "SpecialKey",
    [
        "UP",
        "DOWN",
        "LEFT",
        "RIGHT",
        "HOME",
        "END",
        "PPAGE",
        "NPAGE",
        "IC",
        "DC",
        "BACKSPACE",
        "ENTER",
        "BTAB",
        *(f"F{n}" for n in range(1, 21)),
        "RESIZE",
    ],
)


def sym(special: SpecialKey) -> int:
    return SYM | special


def function_key(n: int) -> int:
    return SYM | SpecialKey[f"F{n}"]


_BUILTIN_NAMES: dict[str, int] = {
    "up": sym(SpecialKey.UP),
    "down": sym(SpecialKey.DOWN),
    "left": sym(SpecialKey.LEFT),
    "right": sym(SpecialKey.RIGHT),
    "home": sym(SpecialKey.HOME),
    "end": sym(SpecialKey.END),
    "pageup": sym(SpecialKey.PPAGE),
    "pagedown": sym(SpecialKey.NPAGE),
    "insert": sym(SpecialKey.IC),
    "delete": sym(SpecialKey.DC),
    "backspace": sym(SpecialKey.BACKSPACE),
    "enter": sym(SpecialKey.ENTER),
    "s-tab": sym(SpecialKey.BTAB),
    "resize": sym(SpecialKey.RESIZE),
    "escape": ESCAPE,
    "tab": 9,
    "space": 32,
    **{f"f{n}": function_key(n) for n in range(1, 21)},
}

_DISPLAY_NAMES: dict[int, str] = {
    sym(SpecialKey.UP): "Up",
    sym(SpecialKey.DOWN): "Down",
    sym(SpecialKey.LEFT): "Left",
    sym(SpecialKey.RIGHT): "Right",
    sym(SpecialKey.HOME): "Home",
    sym(SpecialKey.END): "End",
    sym(SpecialKey.PPAGE): "PageUp",
    sym(SpecialKey.NPAGE): "PageDown",
    sym(SpecialKey.IC): "Insert",
    sym(SpecialKey.DC): "Delete",
    sym(SpecialKey.BACKSPACE): "Backspace",
    sym(SpecialKey.ENTER): "Enter",
    sym(SpecialKey.BTAB): "S-Tab",
    sym(SpecialKey.RESIZE): "Resize",
    ESCAPE: "Escape",
    9: "Tab",
    32: "space",
    **{function_key(n): f"F{n}" for n in range(1, 21)},
}


def decode_caret(text: str) -> bytes:
    """Expand ``^X`` caret notation (``^[`` is Escape, ``^?`` is DEL)."""
    out = bytearray()
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "^" and i + 1 < len(text):
            nxt = text[i + 1]
            if nxt == "?":
                out.append(127)
                i += 2
                continue
            code = ord(nxt.upper())
            if 64 <= code < 96:
                out.append(code & 31)
                i += 2
                continue
        out.extend(ch.encode("utf-8", errors="surrogateescape"))
        i += 1
    return bytes(out)


@dataclass
class KeyNames:
    """Case-insensitive key names, built-in plus those added by ``define``."""

    names: dict[str, int] = field(default_factory=lambda: dict(_BUILTIN_NAMES))
    display: dict[int, str] = field(default_factory=lambda: dict(_DISPLAY_NAMES))
    sequences: dict[bytes, int] = field(default_factory=dict)
    next_id: int = len(SpecialKey) + 1

    def lookup(self, name: str) -> int | None:
        return self.names.get(name.casefold())

    def define(self, name: str, sequence: bytes) -> int:
        """Name a new terminal sequence, or rebind an existing name to it."""
        key = self.lookup(name)
        if key is None:
            key = SYM | self.next_id
            self.next_id += 1
            self.names[name.casefold()] = key
            self.display[key] = name
        self.sequences[sequence] = key
        return key


def parse_key(text: str, names: KeyNames) -> int | None:
    """Parse ``[M-](C-x | name | char)``; ``None`` for anything else."""
    key = 0
    if text.startswith("M-") and len(text) > 2:
        key |= ALT
        text = text[2:]
    if text.startswith("C-") and len(text) == 3:
        code = ord(text[2])
        if code < 32:
            return None
        return key | (code & 31)
    named = names.lookup(text)
    if named is not None:
        return key | named
    if len(text) == 1:
        return key | ord(text)
    return None


def format_key(key: int, names: KeyNames) -> str:
    prefix = "M-" if key & ALT else ""
    key &= ~ALT
    name = names.display.get(key)
    if name is not None:
        return prefix + name
    if key < 32:
        return f"{prefix}C-{chr(key + 96)}"
    if key == 127:
        return prefix + "DEL"
    return prefix + chr(key)


class Action(enum.Enum):
    NONE = "none"
    CHOOSE = "choose"
    CHOOSE_FULL = "choose-full"
    ENTER = "enter"
    VIEW_RAW = "view-raw"
    VIEW = "view"
    EDIT = "edit"
    HELP = "help"
    QUIT = "quit"
    QUIT_NO_CHDIR = "quit-no-chdir"
    SORT_LEFT = "sort-left"
    SORT_RIGHT = "sort-right"
    SELECT = "select"
    DESELECT = "deselect"
    SELECT_TOGGLE = "select-toggle"
    SELECT_ABORT = "select-abort"
    UP = "up"
    DOWN = "down"
    TOP = "top"
    BOTTOM = "bottom"
    HIGH = "high"
    MIDDLE = "middle"
    LOW = "low"
    PAGE_PREVIOUS = "page-previous"
    PAGE_NEXT = "page-next"
    SCROLL_UP = "scroll-up"
    SCROLL_DOWN = "scroll-down"
    CENTER = "center"
    CHDIR = "chdir"
    PARENT = "parent"
    GO_START = "go-start"
    GO_HOME = "go-home"
    SEARCH = "search"
    RENAME = "rename"
    RENAME_PREFILL = "rename-prefill"
    MKDIR = "mkdir"
    TOGGLE_FULL = "toggle-full"
    REVERSE_SORT = "reverse-sort"
    SHOW_HIDDEN = "show-hidden"
    TOGGLE_GRAVITY = "toggle-gravity"
    REDRAW = "redraw"
    RELOAD = "reload"
    INPUT_ABORT = "input-abort"
    INPUT_CONFIRM = "input-confirm"
    INPUT_B_DELETE = "input-b-delete"
    INPUT_DELETE = "input-delete"
    INPUT_B_KILL_WORD = "input-b-kill-word"
    INPUT_B_KILL_LINE = "input-b-kill-line"
    INPUT_KILL_LINE = "input-kill-line"
    INPUT_QUOTED_INSERT = "input-quoted-insert"
    INPUT_BACKWARD = "input-backward"
    INPUT_FORWARD = "input-forward"
    INPUT_BEGINNING = "input-beginning"
    INPUT_END = "input-end"

    @classmethod
    def from_name(cls, name: str) -> Action | None:
        try:
            return cls(name)
        except ValueError:
            return None


NORMAL_DEFAULTS: tuple[tuple[str, Action], ...] = (
    ("Enter", Action.ENTER),
    ("C-m", Action.ENTER),
    ("C-j", Action.CHOOSE),
    ("M-Enter", Action.CHOOSE_FULL),
    ("M-C-m", Action.CHOOSE_FULL),
    ("M-C-j", Action.CHOOSE_FULL),
    ("F1", Action.HELP),
    ("h", Action.HELP),
    ("F3", Action.VIEW),
    ("F13", Action.VIEW_RAW),
    ("M-F3", Action.VIEW_RAW),
    ("F4", Action.EDIT),
    ("q", Action.QUIT),
    ("M-q", Action.QUIT_NO_CHDIR),
    ("<", Action.SORT_LEFT),
    (">", Action.SORT_RIGHT),
    ("R", Action.REVERSE_SORT),
    ("+", Action.SELECT),
    ("-", Action.DESELECT),
    ("C-t", Action.SELECT_TOGGLE),
    ("Insert", Action.SELECT_TOGGLE),
    ("Escape", Action.SELECT_ABORT),
    ("C-g", Action.SELECT_ABORT),
    ("k", Action.UP),
    ("C-p", Action.UP),
    ("Up", Action.UP),
    ("j", Action.DOWN),
    ("C-n", Action.DOWN),
    ("Down", Action.DOWN),
    ("g", Action.TOP),
    ("M-<", Action.TOP),
    ("Home", Action.TOP),
    ("G", Action.BOTTOM),
    ("M->", Action.BOTTOM),
    ("End", Action.BOTTOM),
    ("H", Action.HIGH),
    ("M", Action.MIDDLE),
    ("L", Action.LOW),
    ("PageUp", Action.PAGE_PREVIOUS),
    ("C-b", Action.PAGE_PREVIOUS),
    ("PageDown", Action.PAGE_NEXT),
    ("C-f", Action.PAGE_NEXT),
    ("C-y", Action.SCROLL_UP),
    ("C-e", Action.SCROLL_DOWN),
    ("z", Action.CENTER),
    ("c", Action.CHDIR),
    ("M-Up", Action.PARENT),
    ("Left", Action.PARENT),
    ("Backspace", Action.PARENT),
    ("Right", Action.ENTER),
    ("l", Action.ENTER),
    ("&", Action.GO_START),
    ("~", Action.GO_HOME),
    ("/", Action.SEARCH),
    ("s", Action.SEARCH),
    ("C-s", Action.SEARCH),
    ("e", Action.RENAME),
    ("M-e", Action.RENAME_PREFILL),
    ("F6", Action.RENAME_PREFILL),
    ("F7", Action.MKDIR),
    ("t", Action.TOGGLE_FULL),
    ("M-t", Action.TOGGLE_FULL),
    ("M-.", Action.SHOW_HIDDEN),
    ("M-g", Action.TOGGLE_GRAVITY),
    ("C-l", Action.REDRAW),
    ("r", Action.RELOAD),
)

INPUT_DEFAULTS: tuple[tuple[str, Action], ...] = (
    ("Escape", Action.INPUT_ABORT),
    ("C-g", Action.INPUT_ABORT),
    ("C-m", Action.INPUT_CONFIRM),
    ("C-j", Action.INPUT_CONFIRM),
    ("Enter", Action.INPUT_CONFIRM),
    ("Backspace", Action.INPUT_B_DELETE),
    ("C-h", Action.INPUT_B_DELETE),
    ("Delete", Action.INPUT_DELETE),
    ("C-d", Action.INPUT_DELETE),
    ("C-w", Action.INPUT_B_KILL_WORD),
    ("C-u", Action.INPUT_B_KILL_LINE),
    ("C-k", Action.INPUT_KILL_LINE),
    ("C-v", Action.INPUT_QUOTED_INSERT),
    ("Left", Action.INPUT_BACKWARD),
    ("C-b", Action.INPUT_BACKWARD),
    ("Right", Action.INPUT_FORWARD),
    ("C-f", Action.INPUT_FORWARD),
    ("Home", Action.INPUT_BEGINNING),
    ("C-a", Action.INPUT_BEGINNING),
    ("End", Action.INPUT_END),
    ("C-e", Action.INPUT_END),
)

SEARCH_DEFAULTS: tuple[tuple[str, Action], ...] = (
    ("Up", Action.UP),
    ("C-p", Action.UP),
    ("Down", Action.DOWN),
    ("C-n", Action.DOWN),
    ("/", Action.ENTER),
)

CONTEXTS = ("normal", "input", "search")


def _table(defaults: Iterable[tuple[str, Action]], names: KeyNames) -> dict[int, Action]:
    table: dict[int, Action] = {}
    for name, action in defaults:
        key = parse_key(name, names)
        assert key is not None, name
        table[key] = action
    return table


@dataclass
class BindingTables:
    normal: dict[int, Action]
    input: dict[int, Action]
    search: dict[int, Action]

    @classmethod
    def defaults(cls, names: KeyNames) -> BindingTables:
        return cls(
            normal=_table(NORMAL_DEFAULTS, names),
            input=_table(INPUT_DEFAULTS, names),
            search=_table(SEARCH_DEFAULTS, names),
        )

    def context(self, name: str) -> dict[int, Action] | None:
        if name in CONTEXTS:
            return getattr(self, name)
        return None


def load_bindings(lines: Iterable[list[str]], tables: BindingTables, names: KeyNames) -> None:
    """Apply ``CONTEXT KEY ACTION`` and ``define NAME SEQUENCE`` lines.

    Each malformed line logs one warning and is skipped.
    """
    for tokens in lines:
        if not tokens:
            continue
        if tokens[0] == "define":
            if len(tokens) != 3 or not tokens[1] or not tokens[2]:
                logger.warning("bindings: malformed define: %s", " ".join(tokens))
                continue
            names.define(tokens[1], decode_caret(tokens[2]))
            continue
        if len(tokens) != 3:
            logger.warning("bindings: expected CONTEXT KEY ACTION: %s", " ".join(tokens))
            continue
        context_name, key_name, action_name = tokens
        table = tables.context(context_name)
        if table is None:
            logger.warning("bindings: unknown context: %s", context_name)
            continue
        key = parse_key(key_name, names)
        if key is None:
            logger.warning("bindings: unknown key: %s", key_name)
            continue
        action = Action.from_name(action_name)
        if action is None:
            logger.warning("bindings: unknown action: %s", action_name)
            continue
        table[key] = action
