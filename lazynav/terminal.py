"""Terminal control helpers for the TUI session.

Owns the input-mode lifecycle, alternate-screen switching and job control.
Input runs without echo or line buffering, with CR left untranslated so
Enter and C-j stay distinct.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import signal
import termios
import tty
from collections.abc import Callable, Iterator

ENTER_SCREEN = b"\x1b[?1049h\x1b[?7l\x1b[?25l"
LEAVE_SCREEN = b"\x1b[?25h\x1b[?7h\x1b[?1049l"


def tui_attributes(saved: list) -> list:
    """Derive the session tty attributes from the saved ones."""
    attrs = list(saved)
    attrs[tty.CC] = list(saved[tty.CC])
    attrs[tty.IFLAG] &= ~(termios.ICRNL | termios.INLCR | termios.IGNCR | termios.IXON)
    attrs[tty.LFLAG] &= ~(termios.ECHO | termios.ICANON | termios.IEXTEN)
    attrs[tty.CC][termios.VMIN] = 1
    attrs[tty.CC][termios.VTIME] = 0
    return attrs


class TerminalController:
    """Manage terminal mode transitions and job-control suspension."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        """Capture tty state and bind stdin/stdout file descriptors."""
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)
        self._tui_tty_state = tui_attributes(self._saved_tty_state)
        self.active = False
        self.on_resume: Callable[[], None] | None = None

    def enable_tui_mode(self) -> None:
        """Enter the input mode and alternate screen."""
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._tui_tty_state)
        # Enter alternate screen, disable autowrap and hide cursor.
        os.write(self.stdout_fd, ENTER_SCREEN)
        self.active = True

    def disable_tui_mode(self) -> None:
        """Restore the saved tty state and the main screen."""
        # Show cursor, restore autowrap and the main screen buffer.
        os.write(self.stdout_fd, LEAVE_SCREEN)
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)
        self.active = False

    @contextlib.contextmanager
    def tui_mode(self) -> Iterator[None]:
        """Context manager that brackets the session with enter/exit calls."""
        previous = signal.signal(signal.SIGTSTP, self._handle_suspend)
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()
            signal.signal(signal.SIGTSTP, previous)

    @contextlib.contextmanager
    def suspended(self) -> Iterator[None]:
        """Hand the terminal back to a child for the duration of the block."""
        self.disable_tui_mode()
        try:
            yield
        finally:
            self.enable_tui_mode()

    @contextlib.contextmanager
    def verbatim_input(self) -> Iterator[None]:
        """Read the next key with signal and flow-control characters disabled."""
        tty.setraw(self.stdin_fd, termios.TCSANOW)
        try:
            yield
        finally:
            termios.tcsetattr(self.stdin_fd, termios.TCSANOW, self._tui_tty_state)

    def _handle_suspend(self, signum: int, frame: object) -> None:
        """Stop the process outside TUI mode and re-enter it on SIGCONT."""
        self.disable_tui_mode()
        handler = signal.signal(signal.SIGTSTP, signal.SIG_DFL)
        os.kill(os.getpid(), signal.SIGTSTP)
        # Execution continues here after SIGCONT.
        signal.signal(signal.SIGTSTP, handler)
        self.enable_tui_mode()
        if self.on_resume is not None:
            self.on_resume()

    def write(self, text: str) -> None:
        """Write ``text`` fully, retrying partial writes."""
        data = text.encode("utf-8", errors="surrogateescape")
        while data:
            written = os.write(self.stdout_fd, data)
            data = data[written:]

    def beep(self) -> None:
        """Ring the terminal bell."""
        os.write(self.stdout_fd, b"\a")

    def size(self) -> tuple[int, int]:
        """Return ``(rows, columns)``."""
        term = shutil.get_terminal_size((80, 24))
        return term.lines, term.columns
