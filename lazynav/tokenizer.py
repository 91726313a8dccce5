"""Line tokenizer shared by every configuration file and the history writer.

Implements a small table-driven automaton (start, default, comment, escape,
word, quoted) and the companion writer that quotes tokens so they survive
another pass through the same automaton.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TextIO

# States. The start state is never re-entered.
_STA, _DEF, _COM, _ESC, _WOR, _QUO = range(6)

# Edge flags, combined with the target state in the low bits.
_TAKE = 1 << 3
_PUSH = 1 << 4
_STOP = 1 << 5
_ERROR = 1 << 6
_TWOR = _TAKE | _WOR

# Input classes: EOF, space/tab, quote, hash, backslash, LF, anything else.
_TABLE: tuple[tuple[int, ...], ...] = (
    # EOF          SP/TAB        '      #      \      LF            other
    (_ERROR,       _DEF,         _QUO,  _COM,  _ESC,  _STOP,        _TWOR),  # start
    (_STOP,        0,            _QUO,  _COM,  _ESC,  _STOP,        _TWOR),  # default
    (_STOP,        0,            0,     0,     0,     _STOP,        0),      # comment
    (_ERROR,       _TWOR,        _TWOR, _TWOR, _TWOR, _TWOR,        _TWOR),  # escape
    (_STOP | _PUSH, _DEF | _PUSH, _QUO, _TAKE, _ESC,  _STOP | _PUSH, _TAKE),  # word
    (_ERROR,       _TAKE,        _WOR,  _TAKE, _TAKE, _TAKE,        _TAKE),  # quoted
)

_NEEDS_QUOTING = frozenset(" \t\n'#\\")


def _input_class(ch: str) -> int:
    if ch == "":
        return 0
    if ch in " \t":
        return 1
    if ch == "'":
        return 2
    if ch == "#":
        return 3
    if ch == "\\":
        return 4
    if ch == "\n":
        return 5
    return 6


def parse_line(stream: TextIO) -> list[str] | None:
    """Read one logical line from ``stream`` and split it into tokens.

    Returns ``None`` at the end of the stream or when the line cannot legally
    end (a dangling backslash or an unterminated quote), which tells callers
    to stop reading. A blank or comment-only line yields an empty list.
    """
    out: list[str] = []
    token: list[str] = []
    state = _STA
    while True:
        ch = stream.read(1)
        edge = _TABLE[state][_input_class(ch)]
        if edge & _TAKE:
            token.append(ch)
        if edge & _PUSH:
            out.append("".join(token))
            token.clear()
        if edge & _STOP:
            return out
        if edge & _ERROR:
            return None
        if edge & 7:
            state = edge & 7


def iter_lines(stream: TextIO) -> Iterator[list[str]]:
    """Yield token lists until the stream ends or a line is malformed."""
    while True:
        tokens = parse_line(stream)
        if tokens is None:
            return
        yield tokens


def quote(token: str) -> str:
    """Quote ``token`` so that ``parse_line`` reads it back unchanged."""
    if not token:
        return "''"
    if not any(ch in _NEEDS_QUOTING for ch in token):
        return token
    return "'" + token.replace("'", "'\\''") + "'"


def format_line(tokens: Iterable[str]) -> str:
    return " ".join(quote(token) for token in tokens) + "\n"


def write_line(stream: TextIO, tokens: Iterable[str]) -> None:
    stream.write(format_line(tokens))
