"""External viewer, pager and editor launching.

Runs a child in its own process group as the terminal's foreground job while
the TUI is suspended. Returns an error message string instead of raising for
UI-friendly handling.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shlex
import shutil
import signal
import subprocess
from collections.abc import Callable, Iterator, Mapping

logger = logging.getLogger(__name__)

VIEWER_VARIABLES = ("LAZYNAV_VIEWER", "PAGER")
PAGER_VARIABLES = ("PAGER",)
EDITOR_VARIABLES = ("VISUAL", "EDITOR")


def _from_environment(variables: tuple[str, ...], env: Mapping[str, str]) -> list[str] | None:
    for name in variables:
        value = env.get(name, "").strip()
        if not value:
            continue
        try:
            command = shlex.split(value)
        except ValueError:
            logger.debug("cannot split $%s: %r", name, value)
            continue
        if command:
            return command
    return None


def _pager_fallback() -> list[str]:
    return ["less"] if shutil.which("less") else ["more"]


def viewer_command(env: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if env is None else env
    return _from_environment(VIEWER_VARIABLES, env) or _pager_fallback()


def pager_command(env: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if env is None else env
    return _from_environment(PAGER_VARIABLES, env) or _pager_fallback()


def editor_command(env: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if env is None else env
    return _from_environment(EDITOR_VARIABLES, env) or ["vi"]


@contextlib.contextmanager
def _ignoring_sigttou() -> Iterator[None]:
    previous = signal.signal(signal.SIGTTOU, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGTTOU, previous)


def _give_terminal(tty_fd: int, pgrp: int) -> None:
    try:
        os.tcsetpgrp(tty_fd, pgrp)
    except OSError as exc:
        logger.debug("tcsetpgrp(%d) failed: %s", pgrp, exc)


def _wait_in_foreground(pid: int) -> int:
    """Wait for ``pid`` to exit, resuming it whenever it stops."""
    while True:
        _, status = os.waitpid(pid, os.WUNTRACED)
        if os.WIFSTOPPED(status):
            os.killpg(pid, signal.SIGCONT)
            continue
        return os.waitstatus_to_exitcode(status)


def run_program(
    command: list[str],
    tty_fd: int,
    suspend: Callable[[], contextlib.AbstractContextManager[None]],
    stdin_text: str | None = None,
) -> str | None:
    """Run ``command`` in the foreground of the terminal on ``tty_fd``."""
    with suspend(), _ignoring_sigttou():
        try:
            proc = subprocess.Popen(
                command,
                process_group=0,
                stdin=subprocess.PIPE if stdin_text is not None else None,
            )
        except OSError as exc:
            return f"{command[0]}: {exc.strerror}"
        _give_terminal(tty_fd, proc.pid)
        try:
            if proc.stdin is not None:
                with contextlib.suppress(BrokenPipeError):
                    proc.stdin.write((stdin_text or "").encode("utf-8", errors="surrogateescape"))
                with contextlib.suppress(BrokenPipeError):
                    proc.stdin.close()
            proc.returncode = _wait_in_foreground(proc.pid)
        finally:
            _give_terminal(tty_fd, os.getpgrp())
    logger.debug("%s exited with %s", command[0], proc.returncode)
    return None


def helper_command(command: list[str], target: str) -> str:
    """Shell command line running ``command`` on ``target``, for the shell to run."""
    return shlex.join([*command, target])
