"""Key dispatch and action handlers.

Keys resolve to actions through the binding tables of the active context.
Handlers mutate ``NavigationState`` and return ``False`` when the action does
not apply, which rings the bell. External programs are reached through
callbacks so the handlers stay testable without a terminal.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from . import navigation as nav
from .editor import editor_command, helper_command, pager_command, viewer_command
from .entries import PARENT, is_root
from .help import help_text
from .keys import ALT, SYM, Action, BindingTables, KeyNames
from .line_editor import Interaction, LineEditor
from .state import NavigationState

logger = logging.getLogger(__name__)

EDITOR_ACTIONS: dict[Action, Callable[[LineEditor], bool | None]] = {
    Action.INPUT_B_DELETE: LineEditor.delete_backward,
    Action.INPUT_DELETE: LineEditor.delete_forward,
    Action.INPUT_B_KILL_WORD: LineEditor.kill_word_backward,
    Action.INPUT_B_KILL_LINE: LineEditor.kill_line_backward,
    Action.INPUT_KILL_LINE: LineEditor.kill_line_forward,
    Action.INPUT_BACKWARD: LineEditor.backward,
    Action.INPUT_FORWARD: LineEditor.forward,
    Action.INPUT_BEGINNING: LineEditor.beginning,
    Action.INPUT_END: LineEditor.end,
}

PROMPTS: dict[Interaction, str] = {
    Interaction.SEARCH: "search",
    Interaction.SELECT: "select",
    Interaction.DESELECT: "deselect",
    Interaction.RENAME: "rename",
    Interaction.MKDIR: "mkdir",
    Interaction.CHDIR: "chdir",
}


@dataclass(frozen=True)
class ActionContext:
    """State and bound operations required by the action handlers."""

    state: NavigationState
    tables: BindingTables
    names: KeyNames
    beep: Callable[[], None]
    run_program: Callable[[list[str], str | None], str | None]
    read_verbatim: Callable[[], int | None]
    request_redraw: Callable[[], None]
    env: Mapping[str, str] = field(default_factory=lambda: os.environ)


class Dispatcher:
    """Route keys to the line editor or to normal-mode actions."""

    def __init__(self, context: ActionContext) -> None:
        self.context = context
        self.state = context.state
        self._normal: dict[Action, Callable[[], bool]] = {
            Action.NONE: lambda: False,
            Action.CHOOSE: lambda: nav.choose(self.state, self.state.current, full=False),
            Action.CHOOSE_FULL: lambda: nav.choose(self.state, self.state.current, full=True),
            Action.ENTER: lambda: nav.enter(self.state, self.state.current),
            Action.VIEW_RAW: lambda: self._launch(pager_command(context.env)),
            Action.VIEW: lambda: self._launch(viewer_command(context.env)),
            Action.EDIT: lambda: self._launch(editor_command(context.env)),
            Action.HELP: self._help,
            Action.QUIT: self._quit,
            Action.QUIT_NO_CHDIR: self._quit_no_chdir,
            Action.SORT_LEFT: lambda: self._sort(-1),
            Action.SORT_RIGHT: lambda: self._sort(1),
            Action.REVERSE_SORT: self._reverse_sort,
            Action.SELECT: lambda: self._prompt(Interaction.SELECT),
            Action.DESELECT: lambda: self._prompt(Interaction.DESELECT),
            Action.SELECT_TOGGLE: lambda: nav.select_toggle(self.state),
            Action.SELECT_ABORT: self._select_abort,
            Action.UP: lambda: self._move_to(self.state.cursor - 1),
            Action.DOWN: lambda: self._move_to(self.state.cursor + 1),
            Action.TOP: lambda: self._move_to(0),
            Action.BOTTOM: lambda: self._move_to(len(self.state.entries) - 1),
            Action.HIGH: lambda: self._move_to(self.state.offset),
            Action.MIDDLE: self._middle,
            Action.LOW: self._low,
            Action.PAGE_PREVIOUS: lambda: self._page(-1),
            Action.PAGE_NEXT: lambda: self._page(1),
            Action.SCROLL_UP: lambda: self._scroll(-1),
            Action.SCROLL_DOWN: lambda: self._scroll(1),
            Action.CENTER: self._center,
            Action.CHDIR: lambda: self._prompt(Interaction.CHDIR),
            Action.PARENT: self._parent,
            Action.GO_START: lambda: nav.change_dir(self.state, self.state.start_dir),
            Action.GO_HOME: self._go_home,
            Action.SEARCH: lambda: self._prompt(Interaction.SEARCH),
            Action.RENAME: lambda: self._rename(prefill=False),
            Action.RENAME_PREFILL: lambda: self._rename(prefill=True),
            Action.MKDIR: lambda: self._prompt(Interaction.MKDIR),
            Action.TOGGLE_FULL: self._toggle_full,
            Action.SHOW_HIDDEN: self._show_hidden,
            Action.TOGGLE_GRAVITY: self._toggle_gravity,
            Action.REDRAW: self._redraw,
            Action.RELOAD: self._reload,
        }
        self._interaction: dict[tuple[Interaction, Action], Callable[[], bool]] = {
            (Interaction.SEARCH, Action.UP): lambda: self._search_step(-1),
            (Interaction.SEARCH, Action.DOWN): lambda: self._search_step(1),
            (Interaction.SEARCH, Action.ENTER): self._search_enter,
        }
        self._on_change: dict[Interaction, Callable[[LineEditor], None]] = {
            Interaction.SEARCH: self._search_changed,
            Interaction.SELECT: self._select_changed,
            Interaction.DESELECT: self._select_changed,
        }
        self._on_confirm: dict[Interaction, Callable[[LineEditor], bool]] = {
            Interaction.SEARCH: lambda editor: True,
            Interaction.SELECT: self._select_confirm,
            Interaction.DESELECT: self._deselect_confirm,
            Interaction.RENAME: lambda editor: nav.rename(self.state, editor.subject, editor.text),
            Interaction.MKDIR: lambda editor: nav.make_directory(self.state, editor.text),
            Interaction.CHDIR: self._chdir_confirm,
        }

    def handle_key(self, key: int) -> None:
        if self.state.editor is not None:
            self._handle_editor_key(self.state.editor, key)
        else:
            self._handle_normal_key(key)
        self.state.dirty = True

    def _handle_normal_key(self, key: int) -> None:
        action = self.context.tables.normal.get(key)
        handler = self._normal.get(action) if action is not None else None
        if handler is None or not handler():
            self.context.beep()
        nav.fix_cursor(self.state)

    def _handle_editor_key(self, editor: LineEditor, key: int) -> None:
        action = None
        if editor.interaction is Interaction.SEARCH:
            action = self.context.tables.search.get(key)
        if action is None:
            action = self.context.tables.input.get(key)

        if action is None:
            if key & (ALT | SYM):
                self.context.beep()
                return
            editor.insert(chr(key))
            self._changed(editor)
            return

        handler = self._interaction.get((editor.interaction, action))
        if handler is not None:
            if not handler():
                self.context.beep()
            nav.fix_cursor(self.state)
            return
        if action is Action.INPUT_ABORT:
            self.state.editor = None
            return
        if action is Action.INPUT_CONFIRM:
            self.state.editor = None
            if not self._on_confirm[editor.interaction](editor):
                self.context.beep()
            nav.fix_cursor(self.state)
            return
        if action is Action.INPUT_QUOTED_INSERT:
            key = self.context.read_verbatim()
            if key is None:
                self.context.beep()
                return
            editor.insert(chr(key))
            self._changed(editor)
            return
        operation = EDITOR_ACTIONS.get(action)
        if operation is None:
            self.context.beep()
            return
        if operation(editor):
            self._changed(editor)

    def _changed(self, editor: LineEditor) -> None:
        hook = self._on_change.get(editor.interaction)
        if hook is not None:
            hook(editor)

    # Prompts.

    def _prompt(self, interaction: Interaction, text: str = "", subject: str = "") -> bool:
        editor = LineEditor(PROMPTS[interaction], interaction, subject=subject)
        editor.set_text(text)
        self.state.editor = editor
        if text:
            self._changed(editor)
        return True

    def _rename(self, prefill: bool) -> bool:
        entry = self.state.current
        if entry is None or entry.filename == PARENT:
            return False
        return self._prompt(
            Interaction.RENAME,
            text=entry.filename if prefill else "",
            subject=entry.filename,
        )

    def _search_changed(self, editor: LineEditor) -> None:
        editor.info = nav.match_info(nav.search_match(self.state, editor.text))

    def _search_step(self, push: int) -> bool:
        editor = self.state.editor
        if editor is None:
            return False
        editor.info = nav.match_info(nav.search_match(self.state, editor.text, push))
        return True

    def _search_enter(self) -> bool:
        """Enter the focused entry and keep searching inside it."""
        editor = self.state.editor
        if not nav.enter(self.state, self.state.current):
            return False
        if self.state.quitting:
            self.state.editor = None
        elif editor is not None:
            editor.set_text("")
            editor.info = ""
        return True

    def _select_changed(self, editor: LineEditor) -> None:
        editor.info = nav.count_info(len(nav.select_matches(self.state, editor.text)))

    def _select_confirm(self, editor: LineEditor) -> bool:
        self.state.selection.update(nav.select_matches(self.state, editor.text))
        return True

    def _deselect_confirm(self, editor: LineEditor) -> bool:
        self.state.selection.difference_update(nav.select_matches(self.state, editor.text))
        return True

    def _chdir_confirm(self, editor: LineEditor) -> bool:
        if not editor.text:
            return False
        return nav.change_dir(self.state, os.path.expanduser(editor.text))

    # Programs.

    def _launch(self, command: list[str]) -> bool:
        entry = self.state.current
        if entry is None:
            return False
        if self.state.ext_helpers:
            self.state.ext_helper = helper_command(command, entry.filename)
            self.state.quitting = True
            return True
        logger.debug("running %s on %s", command[0], entry.filename)
        error = self.context.run_program([*command, entry.filename], None)
        if error is not None:
            self.state.show_message(error)
        self._reload()
        return True

    def _help(self) -> bool:
        text = help_text(self.context.tables, self.context.names)
        error = self.context.run_program(pager_command(self.context.env), text)
        if error is not None:
            self.state.show_message(error)
        return True

    # Simple state changes.

    def _quit(self) -> bool:
        self.state.quitting = True
        return True

    def _quit_no_chdir(self) -> bool:
        self.state.no_chdir = True
        self.state.quitting = True
        return True

    def _sort(self, delta: int) -> bool:
        nav.shift_sort(self.state, delta)
        return True

    def _reverse_sort(self) -> bool:
        nav.toggle_reverse(self.state)
        return True

    def _select_abort(self) -> bool:
        if not self.state.selection:
            return False
        self.state.selection.clear()
        return True

    def _toggle_full(self) -> bool:
        self.state.full_view = not self.state.full_view
        return True

    def _show_hidden(self) -> bool:
        self.state.show_hidden = not self.state.show_hidden
        return self._reload()

    def _toggle_gravity(self) -> bool:
        self.state.gravity = not self.state.gravity
        return True

    def _redraw(self) -> bool:
        self.context.request_redraw()
        return True

    def _reload(self) -> bool:
        nav.reload(self.state, self.state.current_name)
        return True

    def _parent(self) -> bool:
        if is_root(self.state.cwd):
            return False
        return nav.change_dir(self.state, PARENT)

    def _go_home(self) -> bool:
        home = self.context.env.get("HOME") or os.path.expanduser("~")
        return nav.change_dir(self.state, home)

    # Motion.

    def _move_to(self, index: int) -> bool:
        self.state.cursor = index
        return True

    def _middle(self) -> bool:
        shown = min(self.state.visible_rows, len(self.state.entries) - self.state.offset)
        self.state.cursor = self.state.offset + max(0, shown - 1) // 2
        return True

    def _low(self) -> bool:
        self.state.cursor = self.state.offset + self.state.visible_rows - 1
        return True

    def _page(self, direction: int) -> bool:
        step = self.state.visible_rows * direction
        self.state.cursor += step
        self.state.offset += step
        return True

    def _scroll(self, delta: int) -> bool:
        state = self.state
        visible = state.visible_rows
        state.offset = max(0, min(state.offset + delta, len(state.entries) - visible))
        if state.cursor < state.offset:
            state.cursor = state.offset
        elif state.cursor >= state.offset + visible:
            state.cursor = state.offset + visible - 1
        return True

    def _center(self) -> bool:
        self.state.offset = max(0, self.state.cursor - self.state.visible_rows // 2)
        return True
