"""Single-line text editor used by every prompt.

The text is edited in code points. Motion and deletion treat a base character
and the combining marks after it as one unit.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .ansi import is_combining


class Interaction(enum.Enum):
    """What a confirmed (or live-updated) prompt does with its text."""

    SEARCH = "search"
    SELECT = "select"
    DESELECT = "deselect"
    RENAME = "rename"
    MKDIR = "mkdir"
    CHDIR = "chdir"


@dataclass
class LineEditor:
    prompt: str
    interaction: Interaction
    text: str = ""
    cursor: int = 0
    info: str = ""
    # Entry the prompt acts on, e.g. the name being renamed.
    subject: str = ""

    def _previous(self, position: int) -> int:
        while position > 0:
            position -= 1
            if not is_combining(self.text[position]):
                break
        return position

    def _next(self, position: int) -> int:
        if position < len(self.text):
            position += 1
        while position < len(self.text) and is_combining(self.text[position]):
            position += 1
        return position

    def _cut(self, start: int, end: int) -> bool:
        if start >= end:
            return False
        self.text = self.text[:start] + self.text[end:]
        self.cursor = start
        return True

    def insert(self, text: str) -> None:
        self.text = self.text[: self.cursor] + text + self.text[self.cursor :]
        self.cursor += len(text)

    def set_text(self, text: str) -> None:
        self.text = text
        self.cursor = len(text)

    def backward(self) -> None:
        self.cursor = self._previous(self.cursor)

    def forward(self) -> None:
        self.cursor = self._next(self.cursor)

    def beginning(self) -> None:
        self.cursor = 0

    def end(self) -> None:
        self.cursor = len(self.text)

    def delete_backward(self) -> bool:
        return self._cut(self._previous(self.cursor), self.cursor)

    def delete_forward(self) -> bool:
        return self._cut(self.cursor, self._next(self.cursor))

    def kill_word_backward(self) -> bool:
        start = self.cursor
        while start > 0 and self.text[start - 1].isspace():
            start -= 1
        while start > 0 and not self.text[start - 1].isspace():
            start -= 1
        return self._cut(start, self.cursor)

    def kill_line_backward(self) -> bool:
        return self._cut(0, self.cursor)

    def kill_line_forward(self) -> bool:
        return self._cut(self.cursor, len(self.text))
