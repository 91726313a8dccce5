"""Shared navigation state owned by the event loop.

One ``NavigationState`` carries the listing, cursor, selection, level stack
and transient UI fields that every other module reads and updates.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from .entries import Column, Entry
from .line_editor import LineEditor

MESSAGE_TICKS = 30
FLASH_TICKS = 2


@dataclass(frozen=True)
class Level:
    """Snapshot of a directory left downward, restored when coming back up."""

    path: str
    offset: int
    cursor: int
    filename: str
    selection: frozenset[str] = frozenset()


@dataclass
class NavigationState:
    """Mutable session state for one navigator instance."""

    cwd: str
    start_dir: str
    entries: list[Entry] = field(default_factory=list)
    cursor: int = 0
    offset: int = 0
    selection: set[str] = field(default_factory=set)
    sort_column: Column = Column.FILENAME
    reverse_sort: bool = False
    full_view: bool = False
    show_hidden: bool = False
    gravity: bool = False
    ext_helpers: bool = False
    levels: list[Level] = field(default_factory=list)
    chosen: list[str] = field(default_factory=list)
    no_chdir: bool = False
    ext_helper: str = ""
    quitting: bool = False
    out_of_date: bool = False
    editor: LineEditor | None = None
    message: str = ""
    message_ttl: int = 0
    sort_flash_ttl: int = 0
    max_widths: tuple[int, ...] = (0, 0, 0, 0, 0)
    rows: int = 24
    columns: int = 80
    cmdline: str = ""
    cmdline_cursor: int = 0
    dirty: bool = True
    rewatch: Callable[[str], None] | None = None

    @property
    def visible_rows(self) -> int:
        """Listing rows left after the status bar and input line."""
        return max(1, self.rows - 2)

    @property
    def current(self) -> Entry | None:
        """Entry under the cursor, or ``None`` for an empty listing."""
        if 0 <= self.cursor < len(self.entries):
            return self.entries[self.cursor]
        return None

    @property
    def current_name(self) -> str:
        entry = self.current
        return entry.filename if entry is not None else ""

    def show_message(self, text: str) -> None:
        """Show ``text`` on the input line for a few ticks."""
        self.message = text
        self.message_ttl = MESSAGE_TICKS
        self.dirty = True
