"""Command-line front door for lazynav.

Attaches to the controlling terminal, loads configuration and history, runs
the interactive session and prints the shell directives on the original
standard output for the calling shell function to ``eval``.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import termios

from . import history
from . import navigation as nav
from .actions import ActionContext, Dispatcher
from .colors import build_color_table, terminal_color_count
from .config import (
    BINDINGS_FILENAME,
    LOOK_FILENAME,
    Settings,
    load_settings,
    read_config_lines,
    save_settings,
)
from .editor import run_program
from .input import KeyReader
from .keys import BindingTables, KeyNames, load_bindings
from .loop import Screen, run_main_loop
from .shell import write_directives
from .state import NavigationState
from .terminal import TerminalController
from .watch import create_watch

logger = logging.getLogger(__name__)

TTY_PATH = "/dev/tty"


class StartupError(Exception):
    """Fatal condition detected before the interface is shown."""


def configure_logging(env: dict[str, str] | None = None) -> None:
    env = os.environ if env is None else env
    level = logging.DEBUG if env.get("LAZYNAV_DEBUG") else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, format="%(name)s: %(message)s")


def attach_terminal() -> int:
    """Point fds 0 and 1 at the terminal; return a duplicate of the old stdout."""
    try:
        tty_fd = os.open(TTY_PATH, os.O_RDWR)
    except OSError as exc:
        raise StartupError(f"{TTY_PATH}: {exc.strerror}") from exc
    saved_stdout = os.dup(1)
    os.dup2(tty_fd, 0)
    os.dup2(tty_fd, 1)
    if tty_fd > 1:
        os.close(tty_fd)
    return saved_stdout


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lazynav",
        description="Navigate directories interactively and print shell directives on exit.",
    )
    parser.add_argument("line", nargs="?", default="", help="Command line of the calling shell.")
    parser.add_argument("point", nargs="?", type=int, default=None, help="Cursor offset into LINE.")
    return parser


def initial_state(settings: Settings, start: str) -> NavigationState:
    return NavigationState(
        cwd=start,
        start_dir=start,
        sort_column=settings.sort_column,
        reverse_sort=settings.reverse_sort,
        full_view=settings.full_view,
        show_hidden=settings.show_hidden,
        gravity=settings.gravity,
        ext_helpers=settings.ext_helpers,
    )


def settings_from_state(state: NavigationState) -> Settings:
    return Settings(
        full_view=state.full_view,
        gravity=state.gravity,
        reverse_sort=state.reverse_sort,
        show_hidden=state.show_hidden,
        ext_helpers=state.ext_helpers,
        sort_column=state.sort_column,
    )


def run_session(line: str, point: int | None) -> NavigationState:
    """Run one interactive session and persist its settings and history."""
    names = KeyNames()
    tables = BindingTables.defaults(names)
    load_bindings(read_config_lines(BINDINGS_FILENAME), tables, names)
    colors = build_color_table(
        terminal_color_count(),
        os.environ.get("LS_COLORS"),
        read_config_lines(LOOK_FILENAME),
    )
    settings, history_lines = load_settings()
    records = history.parse_records(history_lines)

    try:
        terminal = TerminalController(stdin_fd=0, stdout_fd=1)
    except termios.error as exc:
        raise StartupError(f"cannot set up the terminal: {exc}") from exc
    try:
        watch = create_watch()
    except OSError as exc:
        raise StartupError(f"cannot watch for changes: {exc.strerror}") from exc

    state = initial_state(settings, nav.initial_directory())
    state.cmdline = line
    state.cmdline_cursor = len(line) if point is None else max(0, min(point, len(line)))
    state.rows, state.columns = terminal.size()
    state.rewatch = watch.watch

    host, ppid = history.host_name(), os.getppid()
    nav.reload(state)
    history.restore(state, records, host, ppid)

    reader = KeyReader(0, names.sequences)
    screen = Screen(terminal, colors)
    terminal.on_resume = screen.request_redraw

    def read_verbatim() -> int | None:
        with terminal.verbatim_input():
            return reader.read_verbatim()

    dispatcher = Dispatcher(
        ActionContext(
            state=state,
            tables=tables,
            names=names,
            beep=terminal.beep,
            run_program=lambda command, text: run_program(command, 0, terminal.suspended, text),
            read_verbatim=read_verbatim,
            request_redraw=screen.request_redraw,
        )
    )
    try:
        run_main_loop(state, terminal, reader, watch, dispatcher, screen)
    except termios.error as exc:
        raise StartupError(f"cannot set up the terminal: {exc}") from exc
    finally:
        watch.close()

    ours = history.current_records(state, host, ppid)
    save_settings(
        settings_from_state(state),
        history.merge(records, ours, host, ppid),
    )
    return state


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the session and emit the shell directives.

    Returns the process exit status: 0 after a session, 1 when startup fails.
    """
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        saved_stdout = attach_terminal()
    except StartupError as exc:
        logger.error("%s", exc)
        return 1

    with os.fdopen(saved_stdout, "w", encoding="utf-8", errors="surrogateescape") as out:
        try:
            state = run_session(args.line, args.point)
        except StartupError as exc:
            logger.error("%s", exc)
            return 1
        cd = "" if state.no_chdir or state.cwd == state.start_dir else state.cwd
        write_directives(out, cd, state.chosen, state.ext_helper)
    return 0


if __name__ == "__main__":
    sys.exit(main())
