"""Directory navigation over ``NavigationState``.

The working directory is tracked as a logical path string, resolved like
``cd -L``. Descending pushes a ``Level``; ascending pops levels and restores
the saved cursor, offset and selection of the directory returned to.
"""

from __future__ import annotations

import logging
import os
import stat
from fnmatch import fnmatchcase

from .ansi import sanitize, width
from .entries import COLUMN_NAMES, PARENT, Column, Entry, scan_directory, sort_entries
from .state import FLASH_TICKS, Level, NavigationState

logger = logging.getLogger(__name__)


def resolve_logical(cwd: str, path: str) -> tuple[str | None, str | None]:
    """Resolve ``path`` against ``cwd`` without following symlinks.

    Returns ``(resolved, None)`` or ``(None, error_text)``. Every ``..`` is
    checked to pop a real directory before the component is dropped.
    """
    path = os.path.join(cwd, path)
    prefix = "//" if path.startswith("//") and not path.startswith("///") else "/"
    parts: list[str] = []
    for component in path.split("/"):
        if component in ("", "."):
            continue
        if component != PARENT:
            parts.append(component)
            continue
        current = prefix + "/".join(parts)
        try:
            info = os.stat(current)
        except OSError as exc:
            return None, f"{current}: {exc.strerror}"
        if not stat.S_ISDIR(info.st_mode):
            return None, f"{current}: not a directory"
        if parts:
            parts.pop()
    return prefix + "/".join(parts), None


def is_strict_ancestor(ancestor: str, path: str) -> bool:
    if ancestor == path:
        return False
    if ancestor.endswith("/"):
        return path.startswith(ancestor)
    return path.startswith(ancestor + "/")


def ascended_component(old: str, new: str) -> str | None:
    """Name of the child of ``new`` that leads back down to ``old``."""
    if not is_strict_ancestor(new, old):
        return None
    rest = old[len(new) :].lstrip("/")
    return rest.split("/", 1)[0] or None


def compute_max_widths(entries: list[Entry]) -> tuple[int, ...]:
    widths = [0] * Column.FILENAME
    for entry in entries:
        for index, text in enumerate(entry.columns):
            widths[index] = max(widths[index], width(sanitize(text)))
    return tuple(widths)


def fix_cursor(state: NavigationState) -> None:
    """Clamp the cursor and scroll the offset so the cursor stays visible."""
    count = len(state.entries)
    visible = state.visible_rows
    state.cursor = max(0, min(state.cursor, count - 1))
    state.offset = max(0, min(state.offset, count - visible))
    if state.cursor < state.offset:
        state.offset = state.cursor
    elif state.cursor >= state.offset + visible:
        state.offset = state.cursor - visible + 1
    state.offset = max(0, state.offset)


def find(state: NavigationState, filename: str) -> int | None:
    """Index of ``filename`` in the listing, if present."""
    for index, entry in enumerate(state.entries):
        if entry.filename == filename:
            return index
    return None


def focus(state: NavigationState, filename: str) -> bool:
    """Move the cursor to ``filename``; return whether it was found."""
    index = find(state, filename)
    if index is None:
        return False
    state.cursor = index
    fix_cursor(state)
    return True


def _common_prefix(a: str, b: str) -> int:
    length = 0
    for x, y in zip(a, b):
        if x != y:
            break
        length += 1
    return length


def lookup(state: NavigationState, text: str) -> int:
    """Index of the entry sharing the longest literal prefix with ``text``.

    Ties keep the current cursor.
    """
    if not state.entries:
        return 0
    best = min(max(state.cursor, 0), len(state.entries) - 1)
    best_length = _common_prefix(state.entries[best].filename, text)
    for index, entry in enumerate(state.entries):
        length = _common_prefix(entry.filename, text)
        if length > best_length:
            best, best_length = index, length
    return best


def focus_or_lookup(state: NavigationState, filename: str) -> None:
    """Focus ``filename``, or the entry sharing its longest prefix."""
    if not focus(state, filename):
        state.cursor = lookup(state, filename)
        fix_cursor(state)


def resort(state: NavigationState) -> None:
    """Re-sort the listing, keeping the cursor on the same entry."""
    anchor = state.current_name
    state.entries = sort_entries(state.entries, state.sort_column, state.reverse_sort)
    if anchor:
        focus(state, anchor)
    state.dirty = True


def prune_selection(state: NavigationState) -> None:
    """Drop selected names that are no longer listed."""
    state.selection &= {entry.filename for entry in state.entries}


def reload(state: NavigationState, anchor: str | None = None) -> None:
    """Rescan the working directory and refocus ``anchor`` when given."""
    entries, error = scan_directory(state.cwd, state.show_hidden)
    state.entries = sort_entries(entries, state.sort_column, state.reverse_sort)
    prune_selection(state)
    state.max_widths = compute_max_widths(state.entries)
    state.out_of_date = False
    state.dirty = True
    if error is not None:
        logger.debug("scan of %s failed: %s", state.cwd, error)
        state.show_message(error.strerror or str(error))
    if anchor:
        focus_or_lookup(state, anchor)
    fix_cursor(state)
    if state.rewatch is not None:
        state.rewatch(state.cwd)


def change_dir(state: NavigationState, path: str) -> bool:
    """Change directory like ``cd -L``; errors become a message."""
    target, error = resolve_logical(state.cwd, path)
    if target is None:
        state.show_message(error or path)
        return False
    try:
        os.chdir(target)
    except OSError as exc:
        state.show_message(f"{target}: {exc.strerror}")
        return False

    old = state.cwd
    if target == old:
        reload(state, state.current_name)
        return True

    if is_strict_ancestor(old, target):
        state.levels.append(
            Level(old, state.offset, state.cursor, state.current_name, frozenset(state.selection))
        )
        state.cwd = target
        state.cursor = state.offset = 0
        state.selection.clear()
        reload(state)
        return True

    ascended = ascended_component(old, target)
    restored: Level | None = None
    while state.levels and not is_strict_ancestor(state.levels[-1].path, target):
        level = state.levels.pop()
        if level.path == target:
            restored = level

    state.cwd = target
    if restored is not None:
        state.offset, state.cursor = restored.offset, restored.cursor
        state.selection = set(restored.selection)
        reload(state)
        if state.current_name != restored.filename:
            if ascended is None or not focus(state, ascended):
                focus(state, restored.filename)
        return True

    state.selection.clear()
    state.cursor = state.offset = 0
    reload(state)
    if ascended is not None:
        focus(state, ascended)
    return True


def enter(state: NavigationState, entry: Entry | None) -> bool:
    if entry is None:
        return False
    if entry.leads_to_dir:
        return change_dir(state, entry.filename)
    return choose(state, entry, full=False)


def choose(state: NavigationState, entry: Entry | None, full: bool) -> bool:
    """Hand the selection (or ``entry`` alone) to the shell and quit."""
    if state.selection:
        names = sorted(state.selection)
    elif entry is not None:
        names = [entry.filename]
    else:
        return False
    if full:
        names = [os.path.join(state.cwd, name) for name in names]
    state.chosen.extend(names)
    state.selection.clear()
    state.no_chdir = full
    state.quitting = True
    return True


def match_info(count: int) -> str:
    if count == 0:
        return "(no match)"
    if count == 1:
        return "(1 match)"
    return f"({count} matches)"


def search_match(state: NavigationState, text: str, push: int = 0) -> int:
    """Jump to a name starting with ``text`` and return how many names do.

    ``push`` 0 stays on the cursor when it already matches; +1 and -1 step
    to the next or previous match, wrapping around the list.
    """
    count = len(state.entries)
    if not count:
        return 0
    pattern = text + "*"
    step = -1 if push < 0 else 1
    matches = 0
    first: int | None = None
    for i in range(count):
        index = (state.cursor + push + step * i) % count
        if fnmatchcase(state.entries[index].filename, pattern):
            matches += 1
            if first is None:
                first = index
    current = state.current
    already = current is not None and fnmatchcase(current.filename, pattern)
    if first is not None and (push or not already):
        state.cursor = first
        fix_cursor(state)
    state.dirty = True
    return matches


def select_matches(state: NavigationState, pattern: str) -> list[str]:
    return [
        entry.filename
        for entry in state.entries
        if entry.filename != PARENT and fnmatchcase(entry.filename, pattern)
    ]


def count_info(count: int) -> str:
    return "1 match" if count == 1 else f"{count} matches"


def select_toggle(state: NavigationState) -> bool:
    entry = state.current
    if entry is None or entry.filename == PARENT:
        return False
    if entry.filename in state.selection:
        state.selection.discard(entry.filename)
    else:
        state.selection.add(entry.filename)
    state.cursor += 1
    fix_cursor(state)
    state.dirty = True
    return True


def selection_summary(state: NavigationState) -> tuple[int, int]:
    """Count selected names still listed and total their regular-file sizes."""
    count = 0
    total = 0
    for entry in state.entries:
        if entry.filename in state.selection:
            count += 1
            if entry.is_regular:
                total += entry.size
    return count, total


def column_visible(state: NavigationState, column: Column) -> bool:
    return state.full_view or column == Column.FILENAME


def _sort_changed(state: NavigationState) -> None:
    state.sort_flash_ttl = FLASH_TICKS
    if not column_visible(state, state.sort_column):
        order = "descending" if state.reverse_sort else "ascending"
        state.show_message(f"Sorting by {COLUMN_NAMES[state.sort_column]} ({order})")
    resort(state)


def shift_sort(state: NavigationState, delta: int) -> None:
    column = max(Column.MODES, min(Column.FILENAME, state.sort_column + delta))
    state.sort_column = Column(column)
    _sort_changed(state)


def toggle_reverse(state: NavigationState) -> None:
    state.reverse_sort = not state.reverse_sort
    _sort_changed(state)


def rename(state: NavigationState, old: str, new: str) -> bool:
    if not new or new == old:
        return False
    try:
        os.rename(os.path.join(state.cwd, old), os.path.join(state.cwd, new))
    except OSError as exc:
        state.show_message(f"{new}: {exc.strerror}")
        return False
    if old in state.selection:
        state.selection.discard(old)
        state.selection.add(new)
    reload(state, new)
    return True


def make_directory(state: NavigationState, name: str) -> bool:
    if not name:
        return False
    try:
        os.mkdir(os.path.join(state.cwd, name))
    except OSError as exc:
        state.show_message(f"{name}: {exc.strerror}")
        return False
    reload(state, name)
    return True


def initial_directory(env: dict[str, str] | None = None) -> str:
    """Logical start directory: ``$PWD`` when it names the real cwd."""
    env = os.environ if env is None else env
    real = os.getcwd()
    logical = env.get("PWD", "")
    if logical.startswith("/"):
        try:
            if os.path.samestat(os.stat(logical), os.stat(real)):
                return logical
        except OSError:
            pass
    return real
