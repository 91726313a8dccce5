"""Frame building and painting for the listing screen.

``build_frame`` turns the navigation state into rows of cells plus the
terminal cursor position. ``paint`` turns a frame into one ANSI string that
repaints the whole screen with absolute cursor moves.
"""

from __future__ import annotations

from dataclasses import dataclass

from .ansi import Cell, align, cells, clip, char_display_width, sanitize, width, with_attr
from .colors import NO_ATTR, Attr, AttrFlag, ColorPairs, ColorTable
from .entries import Column, Entry, human_size
from .navigation import selection_summary
from .state import NavigationState

RIGHT_ALIGNED = (False, False, False, True, True)

_SGR_FLAGS: tuple[tuple[AttrFlag, str], ...] = (
    (AttrFlag.BOLD, "1"),
    (AttrFlag.DIM, "2"),
    (AttrFlag.ITALIC, "3"),
    (AttrFlag.UNDERLINE, "4"),
    (AttrFlag.BLINK, "5"),
    (AttrFlag.REVERSE, "7"),
)


@dataclass(frozen=True)
class Frame:
    lines: list[list[Cell]]
    cursor: tuple[int, int] | None = None


def _entry_line(
    state: NavigationState,
    colors: ColorTable,
    entry: Entry,
    index: int,
) -> list[Cell]:
    flash = colors.ui["flash"] if state.sort_flash_ttl > 0 else None
    line: list[Cell] = []
    if state.full_view:
        for column, text in enumerate(entry.columns):
            field = align(sanitize(text), state.max_widths[column], RIGHT_ALIGNED[column])
            if flash is not None and state.sort_column == column:
                field = with_attr(field, flash)
            line.extend(field)
            line.append(Cell(" "))

    name = sanitize(entry.filename, colors.attribute_for(entry))
    if flash is not None and state.sort_column == Column.FILENAME:
        name = with_attr(name, flash)
    line.extend(name)
    if entry.target_path is not None:
        line.extend(cells(" -> "))
        line.extend(sanitize(entry.target_path, colors.attribute_for(entry, for_target=True)))

    if entry.filename in state.selection:
        line = with_attr(line, colors.ui["select"])
    if index == state.cursor:
        line = with_attr(line, colors.ui["cursor"])
    return align(line, state.columns)


def scroll_indicator(state: NavigationState) -> str:
    count = len(state.entries)
    visible = state.visible_rows
    if count <= visible:
        return "All"
    if state.offset <= 0:
        return "Top"
    if state.offset + visible >= count:
        return "Bot"
    return f"{state.offset * 100 // (count - visible):2d}%"


def status_bar(state: NavigationState, colors: ColorTable) -> list[Cell]:
    line = sanitize(state.cwd, colors.ui["cwd"])
    if not state.show_hidden:
        line.extend(cells(" (hidden)"))
    if state.out_of_date:
        line.extend(cells(" [+]"))
    indicator = cells(" " + scroll_indicator(state))
    line = align(line, max(0, state.columns - width(indicator))) + indicator
    return with_attr(clip(line, state.columns), colors.ui["bar"])


def _fit_editor(text: list[Cell], cursor_col: int, avail: int) -> tuple[list[Cell], int]:
    """Scroll ``text`` horizontally so ``cursor_col`` stays inside ``avail``."""
    skipped = 0
    while text and cursor_col - skipped >= avail:
        skipped += char_display_width(text[0].char)
        text = text[1:]
    return text, cursor_col - skipped


def input_line(state: NavigationState, colors: ColorTable) -> tuple[list[Cell], int | None]:
    """Return the bottom line and, while editing, the terminal cursor column."""
    editor = state.editor
    if editor is not None:
        attr = colors.ui["input"]
        prompt = sanitize(f"{editor.prompt}: ", attr)
        info = sanitize(f" {editor.info}", colors.ui["info"]) if editor.info else []
        avail = max(1, state.columns - width(prompt) - width(info))
        text = sanitize(editor.text, attr)
        cursor_col = width(sanitize(editor.text[: editor.cursor]))
        text, cursor_col = _fit_editor(text, cursor_col, avail)
        line = prompt + align(text, avail) + info
        return align(line, state.columns), min(state.columns - 1, width(prompt) + cursor_col)

    if state.message:
        return align(sanitize(state.message), state.columns), None

    count, total = selection_summary(state)
    if count:
        return align(cells(f"{count} selected, {human_size(total)}"), state.columns), None

    if state.cmdline:
        return align(sanitize(state.cmdline, colors.ui["cmdline"]), state.columns), None
    return align([], state.columns), None


def build_frame(state: NavigationState, colors: ColorTable) -> Frame:
    visible = state.visible_rows
    lines: list[list[Cell]] = []
    shown = state.entries[state.offset : state.offset + visible]
    if state.gravity and len(state.entries) < visible:
        lines.extend(align([], state.columns) for _ in range(visible - len(shown)))
    for i, entry in enumerate(shown):
        lines.append(_entry_line(state, colors, entry, state.offset + i))
    while len(lines) < visible:
        lines.append(align([], state.columns))

    lines.append(status_bar(state, colors))
    bottom, cursor_col = input_line(state, colors)
    lines.append(bottom)
    lines = lines[-state.rows :] if state.rows > 0 else []

    cursor = None
    if cursor_col is not None and lines:
        cursor = (len(lines) - 1, cursor_col)
    return Frame(lines, cursor)


def _color_params(color: int, base: int, bright: int, extended: str) -> list[str]:
    if color < 0:
        return []
    if color < 8:
        return [str(base + color)]
    if color < 16:
        return [str(bright + color - 8)]
    return [extended, "5", str(color)]


def sgr(attr: Attr, pairs: ColorPairs) -> str:
    params = ["0"]
    for flag, code in _SGR_FLAGS:
        if attr.flags & flag:
            params.append(code)
    fg, bg = pairs.pair(attr.pair)
    params.extend(_color_params(fg, 30, 90, "38"))
    params.extend(_color_params(bg, 40, 100, "48"))
    return "\x1b[" + ";".join(params) + "m"


def paint(frame: Frame, pairs: ColorPairs) -> str:
    out: list[str] = ["\x1b[?25l"]
    for row, line in enumerate(frame.lines):
        out.append(f"\x1b[{row + 1};1H")
        current = NO_ATTR
        for cell in line:
            if cell.attr != current:
                out.append(sgr(cell.attr, pairs))
                current = cell.attr
            out.append(cell.char)
        if current != NO_ATTR:
            out.append("\x1b[0m")
    if frame.cursor is not None:
        row, col = frame.cursor
        out.append(f"\x1b[{row + 1};{col + 1}H\x1b[?25h")
    return "".join(out)
