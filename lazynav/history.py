"""Per-shell directory history kept in the settings file.

Each line records one level of one session: the host and parent shell pid it
belongs to, the directory, and where the cursor was. A new session started
from the same shell restores the levels above its start directory.
"""

from __future__ import annotations

import logging
import os
import socket
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .navigation import fix_cursor, focus, is_strict_ancestor, prune_selection
from .state import Level, NavigationState

logger = logging.getLogger(__name__)

KEYWORD = "history"
MIN_FIELDS = 7


@dataclass(frozen=True)
class HistoryRecord:
    host: str
    ppid: int
    level: Level

    @classmethod
    def parse(cls, tokens: list[str]) -> HistoryRecord | None:
        if len(tokens) < MIN_FIELDS or tokens[0] != KEYWORD:
            return None
        _, host, ppid, path, offset, cursor, filename, *selection = tokens
        try:
            level = Level(path, int(offset), int(cursor), filename, frozenset(selection))
            record = cls(host, int(ppid), level)
        except ValueError:
            return None
        if level.offset < 0 or level.cursor < 0 or not path.startswith("/"):
            return None
        return record

    def to_tokens(self) -> list[str]:
        level = self.level
        return [
            KEYWORD,
            self.host,
            str(self.ppid),
            level.path,
            str(level.offset),
            str(level.cursor),
            level.filename,
            *sorted(level.selection),
        ]


def host_name() -> str:
    return socket.gethostname()


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


def parse_records(lines: Iterable[list[str]]) -> list[HistoryRecord]:
    records: list[HistoryRecord] = []
    for tokens in lines:
        record = HistoryRecord.parse(tokens)
        if record is None:
            logger.debug("dropping malformed history line: %s", tokens)
            continue
        records.append(record)
    return records


def restore(
    state: NavigationState,
    records: Iterable[HistoryRecord],
    host: str,
    ppid: int,
) -> None:
    """Rebuild the level stack and start-directory position from history.

    ``state`` must already be listing ``state.start_dir``.
    """
    ancestors: dict[str, Level] = {}
    here: Level | None = None
    for record in records:
        if record.host != host or record.ppid != ppid:
            continue
        level = record.level
        if level.path == state.start_dir:
            here = level
        elif is_strict_ancestor(level.path, state.start_dir):
            ancestors[level.path] = level

    state.levels = [ancestors[path] for path in sorted(ancestors, key=len)]

    if here is not None:
        state.offset, state.cursor = here.offset, here.cursor
        state.selection = set(here.selection)
        prune_selection(state)
        fix_cursor(state)
        if state.current_name != here.filename:
            focus(state, here.filename)


def current_records(state: NavigationState, host: str, ppid: int) -> list[HistoryRecord]:
    """One record per level plus one for the final directory."""
    records = [HistoryRecord(host, ppid, level) for level in state.levels]
    final = Level(
        state.cwd,
        state.offset,
        state.cursor,
        state.current_name,
        frozenset(state.selection),
    )
    records.append(HistoryRecord(host, ppid, final))
    return records


def merge(
    existing: Iterable[HistoryRecord],
    ours: Iterable[HistoryRecord],
    host: str,
    ppid: int,
    alive: Callable[[int], bool] = pid_alive,
) -> list[list[str]]:
    """Keep other sessions' lines that may still matter, then append ours."""
    lines: list[list[str]] = []
    for record in existing:
        if record.host != host:
            lines.append(record.to_tokens())
        elif record.ppid != ppid and alive(record.ppid):
            lines.append(record.to_tokens())
    lines.extend(record.to_tokens() for record in ours)
    return lines
