"""Tests for directory scanning, column formatting and sort order.

Uses real temporary directories for scanning and synthetic stat results
for ordering so every tier and tie-break is exercised.
"""

import os
import stat
import tempfile
import time
import unittest

from lazynav.entries import (
    PARENT,
    Column,
    Entry,
    NameTables,
    decode_mode,
    format_mtime,
    human_size,
    is_root,
    scan_directory,
    sort_entries,
)


def fake_entry(name: str, mode: int, size: int = 0, mtime: int = 0) -> Entry:
    info = os.stat_result((mode, 0, 0, 1, 0, 0, size, 0, mtime, 0))
    return Entry(filename=name, info=info)


class FormattingTests(unittest.TestCase):
    def test_human_size_uses_largest_nonzero_unit(self) -> None:
        self.assertEqual(human_size(0), "0")
        self.assertEqual(human_size(1023), "1023")
        self.assertEqual(human_size(1024), "1.0K")
        self.assertEqual(human_size(1536), "1.5K")
        self.assertEqual(human_size(10 * 1024), "10K")
        self.assertEqual(human_size(2**40), "1.0T")

    def test_human_size_truncates_tenths(self) -> None:
        self.assertEqual(human_size(5 * 2**20 + 1038090), "5.9M")
        self.assertEqual(human_size(2047), "1.9K")

    def test_decode_mode_matches_ls(self) -> None:
        self.assertEqual(decode_mode(stat.S_IFREG | 0o755), "-rwxr-xr-x")
        self.assertEqual(decode_mode(stat.S_IFDIR | 0o1777), "drwxrwxrwt")
        self.assertEqual(decode_mode(stat.S_IFDIR | 0o1770), "drwxrwx--T")
        self.assertEqual(decode_mode(stat.S_IFREG | 0o4644), "-rwSr--r--")
        self.assertEqual(decode_mode(stat.S_IFREG | 0o2755), "-rwxr-sr-x")
        self.assertEqual(decode_mode(stat.S_IFLNK | 0o777), "lrwxrwxrwx")

    def test_format_mtime_shows_year_only_for_other_years(self) -> None:
        now = time.localtime()
        self.assertIn(":", format_mtime(time.time(), now))
        old = time.mktime((2000, 6, 15, 12, 0, 0, 0, 0, -1))
        self.assertTrue(format_mtime(old, now).endswith("2000"))

    def test_unknown_ids_fall_back_to_numbers(self) -> None:
        names = NameTables(users={0: "root"}, groups={})
        self.assertEqual(names.user(0), "root")
        self.assertEqual(names.user(4242), "4242")
        self.assertEqual(names.group(7), "7")

    def test_is_root(self) -> None:
        self.assertTrue(is_root("/"))
        self.assertTrue(is_root("//"))
        self.assertFalse(is_root("/tmp"))


class ScanDirectoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self._tmp.name)
        os.mkdir(os.path.join(self.root, "sub"))
        with open(os.path.join(self.root, "b.txt"), "w") as handle:
            handle.write("hello")
        open(os.path.join(self.root, ".hidden"), "w").close()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_parent_entry_is_synthesized_and_hidden_files_skipped(self) -> None:
        entries, error = scan_directory(self.root, show_hidden=False)
        self.assertIsNone(error)
        self.assertEqual({e.filename for e in entries}, {PARENT, "b.txt", "sub"})

    def test_show_hidden_includes_dot_files(self) -> None:
        entries, _ = scan_directory(self.root, show_hidden=True)
        self.assertIn(".hidden", {e.filename for e in entries})

    def test_columns_describe_regular_file(self) -> None:
        entries, _ = scan_directory(self.root, show_hidden=False)
        entry = next(e for e in entries if e.filename == "b.txt")
        self.assertTrue(entry.is_regular)
        self.assertEqual(entry.size, 5)
        self.assertEqual(len(entry.columns), 5)
        self.assertTrue(entry.columns[0].startswith("-"))
        self.assertEqual(entry.columns[3], "5")

    def test_symlinks_record_their_targets(self) -> None:
        os.symlink("sub", os.path.join(self.root, "to-sub"))
        os.symlink("missing", os.path.join(self.root, "dangling"))
        entries, _ = scan_directory(self.root, show_hidden=False)
        by_name = {e.filename: e for e in entries}

        self.assertEqual(by_name["to-sub"].target_path, "sub")
        self.assertFalse(by_name["to-sub"].is_dir)
        self.assertTrue(by_name["to-sub"].leads_to_dir)
        self.assertEqual(by_name["dangling"].target_path, "missing")
        self.assertIsNone(by_name["dangling"].target_info)
        self.assertFalse(by_name["dangling"].leads_to_dir)

    def test_missing_directory_keeps_parent_entry(self) -> None:
        entries, error = scan_directory(os.path.join(self.root, "nope"), show_hidden=False)
        self.assertEqual([e.filename for e in entries], [PARENT])
        self.assertIsInstance(error, FileNotFoundError)

    def test_root_has_no_parent_entry(self) -> None:
        entries, _ = scan_directory("/", show_hidden=False)
        self.assertNotIn(PARENT, [e.filename for e in entries])


class SortEntriesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.entries = [
            fake_entry("small", stat.S_IFREG | 0o644, size=1),
            fake_entry("zdir", stat.S_IFDIR | 0o755, size=10),
            fake_entry("big", stat.S_IFREG | 0o644, size=100),
            fake_entry(PARENT, stat.S_IFDIR | 0o755, size=999),
            fake_entry("adir", stat.S_IFDIR | 0o755, size=20),
        ]

    def names(self, entries) -> list:
        return [e.filename for e in entries]

    def test_tiers_parent_then_directories_then_files(self) -> None:
        ordered = sort_entries(self.entries, Column.FILENAME)
        self.assertEqual(self.names(ordered), [PARENT, "adir", "zdir", "big", "small"])

    def test_reverse_only_flips_inside_tiers(self) -> None:
        ordered = sort_entries(self.entries, Column.FILENAME, reverse=True)
        self.assertEqual(self.names(ordered), [PARENT, "zdir", "adir", "small", "big"])

    def test_sort_by_size(self) -> None:
        ordered = sort_entries(self.entries, Column.SIZE)
        self.assertEqual(self.names(ordered), [PARENT, "zdir", "adir", "small", "big"])

    def test_filename_ties_compare_raw_bytes(self) -> None:
        entries = [fake_entry("a", stat.S_IFREG), fake_entry("B", stat.S_IFREG)]
        self.assertEqual(self.names(sort_entries(entries, Column.FILENAME)), ["B", "a"])
