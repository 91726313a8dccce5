"""Main interactive event loop for the terminal UI.

Coordinates geometry refresh, painting, key dispatch, watch draining and
countdown expiry. Feature logic lives in the dispatcher.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .actions import Dispatcher
from .colors import ColorTable
from .input import READ_TIMEOUT_MS
from .navigation import fix_cursor
from .render import build_frame, paint
from .state import NavigationState
from .watch import Watch

logger = logging.getLogger(__name__)

CLEAR_SCREEN = "\x1b[2J"


class Surface(Protocol):
    def tui_mode(self): ...

    def size(self) -> tuple[int, int]: ...

    def write(self, text: str) -> None: ...


class KeySource(Protocol):
    def read_key(self, timeout_ms: int | None = ...) -> int | None: ...


class Screen:
    """Paints frames, clearing the screen first after a redraw request."""

    def __init__(self, terminal: Surface, colors: ColorTable) -> None:
        self.terminal = terminal
        self.colors = colors
        self.clear_pending = True

    def request_redraw(self) -> None:
        self.clear_pending = True

    def paint(self, state: NavigationState) -> None:
        frame = build_frame(state, self.colors)
        prefix = CLEAR_SCREEN if self.clear_pending else ""
        self.terminal.write(prefix + paint(frame, self.colors.pairs))
        self.clear_pending = False


def tick(state: NavigationState) -> None:
    """Count down the sort flash and the transient message by one idle tick."""
    if state.sort_flash_ttl > 0:
        state.sort_flash_ttl -= 1
        if state.sort_flash_ttl == 0:
            state.dirty = True
    if state.message_ttl > 0:
        state.message_ttl -= 1
        if state.message_ttl == 0:
            state.message = ""
            state.dirty = True


def refresh_geometry(state: NavigationState, terminal: Surface, screen: Screen) -> None:
    rows, columns = terminal.size()
    if (rows, columns) == (state.rows, state.columns):
        return
    state.rows, state.columns = rows, columns
    fix_cursor(state)
    screen.request_redraw()
    state.dirty = True


def run_main_loop(
    state: NavigationState,
    terminal: Surface,
    reader: KeySource,
    watch: Watch,
    dispatcher: Dispatcher,
    screen: Screen,
) -> None:
    """Run the main interactive TUI loop until an action sets ``quitting``."""
    with terminal.tui_mode():
        while not state.quitting:
            refresh_geometry(state, terminal, screen)
            if state.dirty or screen.clear_pending:
                screen.paint(state)
                state.dirty = False

            try:
                key = reader.read_key(READ_TIMEOUT_MS)
            except KeyboardInterrupt:
                # Ignore SIGINT-style interrupts so C-c does not end the session.
                continue
            if key is not None:
                dispatcher.handle_key(key)

            if watch.drain():
                logger.debug("%s changed", state.cwd)
                state.out_of_date = True
                state.dirty = True

            if key is None:
                tick(state)
