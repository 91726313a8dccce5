"""Change notification for the listed directory.

``create_watch`` picks inotify on Linux, kqueue on the BSDs and macOS, and
falls back to polling a stat signature. Every implementation follows one
directory at a time and only reports *that* something changed.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import hashlib
import logging
import os
import select
import struct
import sys
import time
from typing import Protocol

logger = logging.getLogger(__name__)


class Watch(Protocol):
    def watch(self, path: str) -> None: ...

    def drain(self) -> bool: ...

    def close(self) -> None: ...


# inotify(7) constants.
IN_NONBLOCK = os.O_NONBLOCK
IN_CLOEXEC = os.O_CLOEXEC
IN_ATTRIB = 0x00000004
IN_CLOSE_WRITE = 0x00000008
IN_MOVED_FROM = 0x00000040
IN_MOVED_TO = 0x00000080
IN_CREATE = 0x00000100
IN_DELETE = 0x00000200
IN_DELETE_SELF = 0x00000400
IN_MOVE_SELF = 0x00000800
IN_IGNORED = 0x00008000
IN_ONLYDIR = 0x01000000
IN_EXCL_UNLINK = 0x04000000
WATCH_MASK = (
    IN_ATTRIB
    | IN_CLOSE_WRITE
    | IN_MOVED_FROM
    | IN_MOVED_TO
    | IN_CREATE
    | IN_DELETE
    | IN_DELETE_SELF
    | IN_MOVE_SELF
    | IN_ONLYDIR
    | IN_EXCL_UNLINK
)
_EVENT = struct.Struct("iIII")


class InotifyWatch:
    """inotify through libc, reading events without blocking."""

    def __init__(self) -> None:
        self._libc = ctypes.CDLL(ctypes.util.find_library("c") or None, use_errno=True)
        self._libc.inotify_add_watch.argtypes = [ctypes.c_int, ctypes.c_char_p, ctypes.c_uint32]
        fd = self._libc.inotify_init1(IN_NONBLOCK | IN_CLOEXEC)
        if fd < 0:
            errno = ctypes.get_errno()
            raise OSError(errno, os.strerror(errno))
        self.fd = fd
        self._wd = -1

    def watch(self, path: str) -> None:
        if self._wd >= 0:
            self._libc.inotify_rm_watch(self.fd, self._wd)
            self._wd = -1
        wd = self._libc.inotify_add_watch(self.fd, os.fsencode(path), WATCH_MASK)
        if wd < 0:
            logger.debug("inotify_add_watch(%s): %s", path, os.strerror(ctypes.get_errno()))
            return
        self._wd = wd

    def drain(self) -> bool:
        changed = False
        while True:
            try:
                data = os.read(self.fd, 65536)
            except BlockingIOError:
                return changed
            if not data:
                return changed
            offset = 0
            while offset + _EVENT.size <= len(data):
                wd, mask, _cookie, length = _EVENT.unpack_from(data, offset)
                offset += _EVENT.size + length
                if wd == self._wd and not mask & IN_IGNORED:
                    changed = True

    def close(self) -> None:
        os.close(self.fd)


class KqueueWatch:
    """kqueue vnode events on an open directory descriptor."""

    def __init__(self) -> None:
        self._kq = select.kqueue()
        self._dir_fd = -1

    def watch(self, path: str) -> None:
        if self._dir_fd >= 0:
            os.close(self._dir_fd)
            self._dir_fd = -1
        try:
            self._dir_fd = os.open(path, os.O_RDONLY | getattr(os, "O_DIRECTORY", 0))
        except OSError as exc:
            logger.debug("cannot watch %s: %s", path, exc)
            return
        event = select.kevent(
            self._dir_fd,
            filter=select.KQ_FILTER_VNODE,
            flags=select.KQ_EV_ADD | select.KQ_EV_CLEAR,
            fflags=select.KQ_NOTE_WRITE
            | select.KQ_NOTE_DELETE
            | select.KQ_NOTE_RENAME
            | select.KQ_NOTE_ATTRIB
            | select.KQ_NOTE_EXTEND,
        )
        self._kq.control([event], 0, 0)

    def drain(self) -> bool:
        changed = False
        while self._kq.control(None, 16, 0):
            changed = True
        return changed

    def close(self) -> None:
        if self._dir_fd >= 0:
            os.close(self._dir_fd)
        self._kq.close()


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def directory_signature(path: str) -> str:
    """Digest of a directory's own stat state and its children's metadata."""
    digest = hashlib.blake2b(digest_size=20)
    _update_digest(digest, f"dir:{path}")
    try:
        st = os.stat(path)
    except OSError:
        _update_digest(digest, "dir_stat:error")
        return digest.hexdigest()
    _update_digest(digest, f"dir_stat:{st.st_mtime_ns}:{st.st_mode}")

    children: list[tuple[str, int, int, int]] = []
    try:
        with os.scandir(path) as entries:
            for child in entries:
                try:
                    cst = child.stat(follow_symlinks=False)
                except OSError:
                    children.append((child.name, 0, 0, 0))
                    continue
                children.append((child.name, cst.st_mtime_ns, cst.st_size, cst.st_mode))
    except OSError:
        _update_digest(digest, "children:error")
        return digest.hexdigest()

    children.sort()
    for name, mtime_ns, size, mode in children:
        _update_digest(digest, f"child:{name}:{mtime_ns}:{size}:{mode}")
    return digest.hexdigest()


class PollingWatch:
    """Compare directory signatures at most once per ``interval`` seconds."""

    def __init__(self, interval: float = 1.0) -> None:
        self.interval = interval
        self._path: str | None = None
        self._signature = ""
        self._checked = 0.0

    def watch(self, path: str) -> None:
        self._path = path
        self._signature = directory_signature(path)
        self._checked = time.monotonic()

    def drain(self) -> bool:
        if self._path is None:
            return False
        now = time.monotonic()
        if now - self._checked < self.interval:
            return False
        self._checked = now
        signature = directory_signature(self._path)
        if signature == self._signature:
            return False
        self._signature = signature
        return True

    def close(self) -> None:
        self._path = None


def create_watch() -> Watch:
    """Return the best watch this platform offers.

    A native facility that exists but fails to initialise raises ``OSError``.
    """
    if sys.platform.startswith("linux"):
        return InotifyWatch()
    if hasattr(select, "kqueue"):
        return KqueueWatch()
    return PollingWatch()
