"""Low-level terminal input decoding.

Reads raw bytes from the terminal and translates them into integer key values.
Handles ESC-sequence timing, Alt prefixes, UTF-8 and user-defined sequences.
"""

from __future__ import annotations

import logging
import os
import select
import time
from collections.abc import Mapping

from .keys import ALT, ESCAPE, SpecialKey, function_key, sym

logger = logging.getLogger(__name__)

ESC_SEQUENCE_TIMEOUT_MS = 25
READ_TIMEOUT_MS = 100


def _alt(special: SpecialKey) -> int:
    return ALT | sym(special)


ESCAPE_SEQUENCES: dict[bytes, int] = {
    b"\x1b[A": sym(SpecialKey.UP),
    b"\x1b[B": sym(SpecialKey.DOWN),
    b"\x1b[C": sym(SpecialKey.RIGHT),
    b"\x1b[D": sym(SpecialKey.LEFT),
    b"\x1b[H": sym(SpecialKey.HOME),
    b"\x1b[F": sym(SpecialKey.END),
    b"\x1b[Z": sym(SpecialKey.BTAB),
    b"\x1bOA": sym(SpecialKey.UP),
    b"\x1bOB": sym(SpecialKey.DOWN),
    b"\x1bOC": sym(SpecialKey.RIGHT),
    b"\x1bOD": sym(SpecialKey.LEFT),
    b"\x1bOH": sym(SpecialKey.HOME),
    b"\x1bOF": sym(SpecialKey.END),
    b"\x1bOM": sym(SpecialKey.ENTER),
    b"\x1bOP": function_key(1),
    b"\x1bOQ": function_key(2),
    b"\x1bOR": function_key(3),
    b"\x1bOS": function_key(4),
    b"\x1b[1~": sym(SpecialKey.HOME),
    b"\x1b[2~": sym(SpecialKey.IC),
    b"\x1b[3~": sym(SpecialKey.DC),
    b"\x1b[4~": sym(SpecialKey.END),
    b"\x1b[5~": sym(SpecialKey.PPAGE),
    b"\x1b[6~": sym(SpecialKey.NPAGE),
    b"\x1b[7~": sym(SpecialKey.HOME),
    b"\x1b[8~": sym(SpecialKey.END),
    b"\x1b[[A": function_key(1),
    b"\x1b[[B": function_key(2),
    b"\x1b[[C": function_key(3),
    b"\x1b[[D": function_key(4),
    b"\x1b[[E": function_key(5),
    b"\x1b[11~": function_key(1),
    b"\x1b[12~": function_key(2),
    b"\x1b[13~": function_key(3),
    b"\x1b[14~": function_key(4),
    b"\x1b[15~": function_key(5),
    b"\x1b[17~": function_key(6),
    b"\x1b[18~": function_key(7),
    b"\x1b[19~": function_key(8),
    b"\x1b[20~": function_key(9),
    b"\x1b[21~": function_key(10),
    b"\x1b[23~": function_key(11),
    b"\x1b[24~": function_key(12),
    b"\x1b[25~": function_key(13),
    b"\x1b[26~": function_key(14),
    b"\x1b[28~": function_key(15),
    b"\x1b[29~": function_key(16),
    b"\x1b[31~": function_key(17),
    b"\x1b[32~": function_key(18),
    b"\x1b[33~": function_key(19),
    b"\x1b[34~": function_key(20),
    # xterm reports Shift-F1..F4 as F13..F16.
    b"\x1b[1;2P": function_key(13),
    b"\x1b[1;2Q": function_key(14),
    b"\x1b[1;2R": function_key(15),
    b"\x1b[1;2S": function_key(16),
    b"\x1b[1;3A": _alt(SpecialKey.UP),
    b"\x1b[1;3B": _alt(SpecialKey.DOWN),
    b"\x1b[1;3C": _alt(SpecialKey.RIGHT),
    b"\x1b[1;3D": _alt(SpecialKey.LEFT),
    b"\x1b[1;3H": _alt(SpecialKey.HOME),
    b"\x1b[1;3F": _alt(SpecialKey.END),
    b"\x1b[1;3P": ALT | function_key(1),
    b"\x1b[1;3Q": ALT | function_key(2),
    b"\x1b[1;3R": ALT | function_key(3),
    b"\x1b[1;3S": ALT | function_key(4),
    b"\x1b[5;3~": _alt(SpecialKey.PPAGE),
    b"\x1b[6;3~": _alt(SpecialKey.NPAGE),
}


def escape_delay_ms(env: Mapping[str, str] | None = None) -> int:
    """Read ``ESCDELAY`` the way curses does, falling back to the default."""
    env = os.environ if env is None else env
    raw = env.get("ESCDELAY", "")
    try:
        value = int(raw)
    except ValueError:
        return ESC_SEQUENCE_TIMEOUT_MS
    return max(0, value)


def _utf8_length(lead: int) -> int:
    if lead < 0x80:
        return 1
    if 0xC2 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF4:
        return 4
    return 1


class KeyReader:
    """Decode keys from ``fd`` with a longest-match over known sequences."""

    def __init__(
        self,
        fd: int,
        sequences: Mapping[bytes, int] | None = None,
        escape_delay: int | None = None,
    ) -> None:
        self.fd = fd
        self.escape_delay = escape_delay_ms() if escape_delay is None else escape_delay
        self._pending: list[int] = []
        self._sequences: dict[bytes, int] = dict(ESCAPE_SEQUENCES)
        if sequences:
            self._sequences.update(sequences)
        self._prefixes: set[bytes] = set()
        self._rebuild_prefixes()

    def _rebuild_prefixes(self) -> None:
        self._prefixes.clear()
        for sequence in self._sequences:
            for end in range(1, len(sequence)):
                self._prefixes.add(sequence[:end])

    def define(self, sequence: bytes, key: int) -> None:
        self._sequences[sequence] = key
        self._rebuild_prefixes()

    def _read_byte(self, timeout_ms: int | None) -> int | None:
        if self._pending:
            return self._pending.pop(0)
        if timeout_ms is not None:
            ready, _, _ = select.select([self.fd], [], [], max(0.0, timeout_ms / 1000.0))
            if not ready:
                return None
        data = os.read(self.fd, 1)
        if not data:
            return None
        return data[0]

    def _read_timed_byte(self, deadline: float) -> int | None:
        """Wait for the next byte of a sequence until ``deadline``."""
        remaining_ms = (deadline - time.monotonic()) * 1000.0
        return self._read_byte(max(0, int(remaining_ms)))

    def _read_character(self, lead: int) -> int:
        length = _utf8_length(lead)
        data = bytearray([lead])
        deadline = time.monotonic() + self.escape_delay / 1000.0
        while len(data) < length:
            byte = self._read_timed_byte(deadline)
            if byte is None:
                break
            if byte & 0xC0 != 0x80:
                self._pending.insert(0, byte)
                break
            data.append(byte)
        text = bytes(data).decode("utf-8", errors="replace")
        return ord(text[0])

    def _match_sequence(self, first: int) -> tuple[int | None, bytes]:
        """Collect bytes while they may still extend a known sequence.

        Returns the longest matched key (or ``None``) and every byte read.
        Unmatched trailing bytes are pushed back for the next read.
        """
        buffer = bytes([first])
        best: int | None = None
        best_length = 0
        deadline = time.monotonic() + self.escape_delay / 1000.0
        while buffer in self._prefixes:
            byte = self._read_timed_byte(deadline)
            if byte is None:
                break
            buffer += bytes([byte])
            key = self._sequences.get(buffer)
            if key is not None:
                best, best_length = key, len(buffer)
        if best is None:
            return None, buffer
        self._pending[0:0] = list(buffer[best_length:])
        return best, buffer[:best_length]

    def read_key(self, timeout_ms: int | None = READ_TIMEOUT_MS) -> int | None:
        """Return the next key, or ``None`` when nothing arrived in time."""
        first = self._read_byte(timeout_ms)
        if first is None:
            return None
        return self._decode(first)

    def _decode(self, first: int) -> int:
        single = self._sequences.get(bytes([first]))
        if single is not None and bytes([first]) not in self._prefixes:
            return single
        if bytes([first]) in self._prefixes:
            key, buffer = self._match_sequence(first)
            if key is not None:
                return key
            if first == ESCAPE:
                if len(buffer) > 2:
                    logger.debug("unknown escape sequence %r", buffer)
                self._pending[0:0] = list(buffer[1:])
                if not self._pending:
                    return ESCAPE
                return ALT | self._decode(self._pending.pop(0))
            self._pending[0:0] = list(buffer[1:])
        if first in (0x7F, 0x08):
            return sym(SpecialKey.BACKSPACE)
        if first >= 0x80:
            return self._read_character(first)
        return first

    def read_verbatim(self) -> int | None:
        """Block for one character and return it without any translation."""
        first = self._read_byte(None)
        if first is None:
            return None
        if first >= 0x80:
            return self._read_character(first)
        return first
