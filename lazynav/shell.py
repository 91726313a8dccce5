"""Shell directives printed at the end of a session.

The wrapping shell function ``eval``s these lines, so every value is escaped
for a POSIX shell.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TextIO

_SHELL_SPECIAL = frozenset("|&;<>()$`\\\"' \t\n*?[#~=%!")


def needs_quoting(text: str) -> bool:
    return any(ch in _SHELL_SPECIAL for ch in text)


def shell_escape(text: str) -> str:
    if not needs_quoting(text):
        return text
    return "'" + text.replace("'", "'\\''") + "'"


def directives(cd: str, insert: Iterable[str], helper: str) -> str:
    inserted = " ".join(shell_escape(item) for item in insert)
    return (
        f"local cd={shell_escape(cd)}\n"
        f"local insert={shell_escape(inserted)}\n"
        f"local helper={shell_escape(helper)}\n"
    )


def write_directives(stream: TextIO, cd: str, insert: Iterable[str], helper: str) -> None:
    stream.write(directives(cd, insert, helper))
    stream.flush()
