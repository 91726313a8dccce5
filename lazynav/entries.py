"""Directory scanning and entry metadata decoration.

Builds one immutable ``Entry`` per directory member, resolving symlink targets
and formatting the permission, owner, group, size and mtime columns the way
``ls -l`` shows them. Also owns the listing sort order.
"""

from __future__ import annotations

import enum
import grp
import os
import pwd
import stat
import time
from collections.abc import Iterable
from dataclasses import dataclass

PARENT = ".."
UNKNOWN = "?"

_XATTR_CAPABILITY = "security.capability"
_XATTR_ACLS = ("system.posix_acl_access", "system.posix_acl_default")
HAS_XATTRS = hasattr(os, "getxattr")


class Column(enum.IntEnum):
    MODES = 0
    USER = 1
    GROUP = 2
    SIZE = 3
    MTIME = 4
    FILENAME = 5


COLUMN_NAMES: dict[Column, str] = {
    Column.MODES: "permissions",
    Column.USER: "owner",
    Column.GROUP: "group",
    Column.SIZE: "size",
    Column.MTIME: "modification time",
    Column.FILENAME: "name",
}


@dataclass(frozen=True)
class Entry:
    """One directory member with its own and its symlink target's metadata.

    ``info`` is ``None`` when ``lstat`` failed; ``target_info`` is ``None`` for
    non-symlinks and for symlinks whose target cannot be reached.
    """

    filename: str
    info: os.stat_result | None
    fallback_mode: int = 0
    target_path: str | None = None
    target_info: os.stat_result | None = None
    capable: bool = False
    target_capable: bool = False
    acl: bool = False
    columns: tuple[str, ...] = ()

    @property
    def mode(self) -> int:
        if self.info is not None:
            return self.info.st_mode
        return self.fallback_mode

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def leads_to_dir(self) -> bool:
        """Whether entering this entry means changing directory."""
        if self.is_dir:
            return True
        return self.target_info is not None and stat.S_ISDIR(self.target_info.st_mode)

    @property
    def is_regular(self) -> bool:
        return self.info is not None and stat.S_ISREG(self.info.st_mode)

    @property
    def size(self) -> int:
        return self.info.st_size if self.info is not None else 0


@dataclass(frozen=True)
class NameTables:
    """Snapshot of user and group names taken once per scan."""

    users: dict[int, str]
    groups: dict[int, str]

    @classmethod
    def load(cls) -> NameTables:
        users: dict[int, str] = {}
        for entry in pwd.getpwall():
            users.setdefault(entry.pw_uid, entry.pw_name)
        groups: dict[int, str] = {}
        for entry in grp.getgrall():
            groups.setdefault(entry.gr_gid, entry.gr_name)
        return cls(users, groups)

    def user(self, uid: int) -> str:
        return self.users.get(uid, str(uid))

    def group(self, gid: int) -> str:
        return self.groups.get(gid, str(gid))


def decode_type(mode: int) -> str:
    if stat.S_ISDIR(mode):
        return "d"
    if stat.S_ISBLK(mode):
        return "b"
    if stat.S_ISCHR(mode):
        return "c"
    if stat.S_ISLNK(mode):
        return "l"
    if stat.S_ISFIFO(mode):
        return "p"
    if stat.S_ISSOCK(mode):
        return "s"
    if stat.S_ISREG(mode):
        return "-"
    return "?"


def decode_mode(mode: int) -> str:
    """Return the mode string in the usual ``ls -l`` format."""

    def bit(mask: int, char: str) -> str:
        return char if mode & mask else "-"

    def exec_bit(mask: int, special: int, on: str, off: str) -> str:
        if mode & special:
            return on if mode & mask else off
        return "x" if mode & mask else "-"

    return "".join(
        (
            decode_type(mode),
            bit(stat.S_IRUSR, "r"),
            bit(stat.S_IWUSR, "w"),
            exec_bit(stat.S_IXUSR, stat.S_ISUID, "s", "S"),
            bit(stat.S_IRGRP, "r"),
            bit(stat.S_IWGRP, "w"),
            exec_bit(stat.S_IXGRP, stat.S_ISGID, "s", "S"),
            bit(stat.S_IROTH, "r"),
            bit(stat.S_IWOTH, "w"),
            exec_bit(stat.S_IXOTH, stat.S_ISVTX, "t", "T"),
        )
    )


def human_size(size: int) -> str:
    """Format ``size`` with the largest binary suffix that keeps it nonzero."""
    for shift, suffix in ((40, "T"), (30, "G"), (20, "M"), (10, "K")):
        whole = size >> shift
        if not whole:
            continue
        if whole < 10:
            tenths = ((size * 10) >> shift) % 10
            return f"{whole}.{tenths}{suffix}"
        return f"{whole}{suffix}"
    return str(size)


def format_mtime(mtime: float, now: time.struct_time) -> str:
    local = time.localtime(mtime)
    if local.tm_year == now.tm_year:
        return time.strftime("%b %e %H:%M", local)
    return time.strftime("%b %e  %Y", local)


def _has_xattr(path: str, names: Iterable[str], follow_symlinks: bool) -> bool:
    if not HAS_XATTRS:
        return False
    for name in names:
        try:
            os.getxattr(path, name, follow_symlinks=follow_symlinks)
        except OSError:
            continue
        return True
    return False


def _fallback_mode(child: os.DirEntry[str] | None) -> int:
    """File type known from the directory read alone, without a stat call."""
    if child is None:
        return stat.S_IFDIR
    try:
        if child.is_symlink():
            return stat.S_IFLNK
        if child.is_dir(follow_symlinks=False):
            return stat.S_IFDIR
        if child.is_file(follow_symlinks=False):
            return stat.S_IFREG
    except OSError:
        pass
    return 0


def make_entry(
    directory: str,
    name: str,
    names: NameTables,
    now: time.struct_time,
    child: os.DirEntry[str] | None = None,
) -> Entry:
    """Build one entry, degrading to placeholder columns when ``lstat`` fails."""
    path = os.path.join(directory, name)
    fallback = _fallback_mode(child)
    try:
        info = os.lstat(path)
    except OSError:
        unknown = decode_type(fallback) + UNKNOWN * 9
        return Entry(
            filename=name,
            info=None,
            fallback_mode=fallback,
            columns=(unknown, UNKNOWN, UNKNOWN, UNKNOWN, UNKNOWN),
        )

    target_path: str | None = None
    target_info: os.stat_result | None = None
    target_capable = False
    if stat.S_ISLNK(info.st_mode):
        try:
            target_path = os.readlink(path)
        except (OSError, ValueError):
            target_path = UNKNOWN
        else:
            try:
                target_info = os.stat(path)
            except OSError:
                target_info = None
            else:
                target_capable = _has_xattr(path, (_XATTR_CAPABILITY,), follow_symlinks=True)

    acl = _has_xattr(path, _XATTR_ACLS, follow_symlinks=False)
    modes = decode_mode(info.st_mode) + ("+" if acl else "")
    return Entry(
        filename=name,
        info=info,
        fallback_mode=fallback,
        target_path=target_path,
        target_info=target_info,
        capable=stat.S_ISREG(info.st_mode)
        and _has_xattr(path, (_XATTR_CAPABILITY,), follow_symlinks=False),
        target_capable=target_capable,
        acl=acl,
        columns=(
            modes,
            names.user(info.st_uid),
            names.group(info.st_gid),
            human_size(info.st_size),
            format_mtime(info.st_mtime, now),
        ),
    )


def is_root(path: str) -> bool:
    return path.strip("/") == ""


def scan_directory(
    directory: str,
    show_hidden: bool,
    now: time.struct_time | None = None,
    names: NameTables | None = None,
) -> tuple[list[Entry], OSError | None]:
    """List ``directory`` into unsorted entries.

    Returns ``(entries, scan_error)``. A read failure still yields the
    ``..`` entry outside the root so the user can retreat.
    """
    if now is None:
        now = time.localtime()
    if names is None:
        names = NameTables.load()

    entries: list[Entry] = []
    if not is_root(directory):
        entries.append(make_entry(directory, PARENT, names, now))

    try:
        with os.scandir(directory) as children:
            for child in children:
                if not show_hidden and child.name.startswith("."):
                    continue
                entries.append(make_entry(directory, child.name, names, now, child))
    except OSError as exc:
        return entries, exc
    return entries, None


def _column_key(entry: Entry, column: Column) -> int | float:
    info = entry.info
    if info is None:
        return 0
    if column == Column.MODES:
        return info.st_mode
    if column == Column.USER:
        return info.st_uid
    if column == Column.GROUP:
        return info.st_gid
    if column == Column.SIZE:
        return info.st_size
    if column == Column.MTIME:
        return info.st_mtime
    return 0


def sort_entries(entries: Iterable[Entry], column: Column, reverse: bool = False) -> list[Entry]:
    """Order entries: ``..`` first, then directories, then everything else.

    Inside a tier entries order by ``column`` with the raw filename bytes as
    the tie-break; ``reverse`` flips the order inside each tier only.
    """
    tiers: tuple[list[Entry], list[Entry], list[Entry]] = ([], [], [])
    for entry in entries:
        if entry.filename == PARENT:
            tiers[0].append(entry)
        elif entry.is_dir:
            tiers[1].append(entry)
        else:
            tiers[2].append(entry)

    ordered: list[Entry] = []
    for tier in tiers:
        tier.sort(key=lambda e: (_column_key(e, column), os.fsencode(e.filename)), reverse=reverse)
        ordered.extend(tier)
    return ordered
