"""Tests for LS_COLORS decoding and ls-style classification.

Checks SGR parameter parsing, color pair interning, the look file and the
category chosen for files, directories and symlinks.
"""

import os
import stat
import unittest

from lazynav.colors import (
    NO_ATTR,
    AttrFlag,
    ColorPairs,
    ColorTable,
    LsCategory,
    build_color_table,
    decode_ansi_sgr,
    terminal_color_count,
)
from lazynav.entries import Entry


def stat_of(mode: int, nlink: int = 1) -> os.stat_result:
    return os.stat_result((mode, 0, 0, nlink, 0, 0, 0, 0, 0, 0))


def entry(name: str, mode: int, nlink: int = 1, **kwargs) -> Entry:
    return Entry(filename=name, info=stat_of(mode, nlink), **kwargs)


class DecodeSgrTests(unittest.TestCase):
    def test_bold_blue(self) -> None:
        pairs = ColorPairs(8)
        attr = decode_ansi_sgr(["01", "34"], pairs)
        self.assertEqual(attr.flags, AttrFlag.BOLD)
        self.assertEqual(pairs.pair(attr.pair), (4, -1))

    def test_indexed_color_needs_enough_colors(self) -> None:
        pairs = ColorPairs(256)
        attr = decode_ansi_sgr(["38", "5", "200"], pairs)
        self.assertEqual(pairs.pair(attr.pair), (200, -1))
        self.assertEqual(decode_ansi_sgr(["38", "5", "200"], ColorPairs(8)), NO_ATTR)

    def test_truecolor_and_garbage_are_rejected(self) -> None:
        pairs = ColorPairs(256)
        self.assertEqual(decode_ansi_sgr(["38", "2", "1", "2", "3"], pairs), NO_ATTR)
        self.assertEqual(decode_ansi_sgr(["300"], pairs), NO_ATTR)
        self.assertEqual(decode_ansi_sgr(["x"], pairs), NO_ATTR)
        self.assertEqual(decode_ansi_sgr(["\u00b2"], pairs), NO_ATTR)
        self.assertEqual(decode_ansi_sgr(["1", "\u0663"], pairs), NO_ATTR)

    def test_unknown_codes_are_ignored(self) -> None:
        attr = decode_ansi_sgr(["3"], ColorPairs(8))
        self.assertFalse(attr)

    def test_pairs_are_interned(self) -> None:
        pairs = ColorPairs(8)
        first = decode_ansi_sgr(["31"], pairs)
        second = decode_ansi_sgr(["01", "31"], pairs)
        self.assertEqual(first.pair, second.pair)
        self.assertEqual(len(pairs), 1)


class ColorCountTests(unittest.TestCase):
    def test_guesses_from_term(self) -> None:
        self.assertEqual(terminal_color_count({"TERM": "xterm-256color"}), 256)
        self.assertEqual(terminal_color_count({"TERM": "xterm"}), 8)
        self.assertEqual(terminal_color_count({"TERM": "dumb"}), 0)
        self.assertEqual(terminal_color_count({}), 0)
        self.assertEqual(terminal_color_count({"TERM": "xterm", "NO_COLOR": "1"}), 0)


class ColorTableTests(unittest.TestCase):
    def make_table(self, spec: str, colors: int = 8) -> ColorTable:
        table = ColorTable(pairs=ColorPairs(colors))
        table.load_ls_colors(spec)
        return table

    def test_load_ls_colors(self) -> None:
        table = self.make_table("di=01;34:ln=target:*.tar=31:bogus:=1")
        self.assertEqual(table.categories[LsCategory.DIRECTORY].flags, AttrFlag.BOLD)
        self.assertTrue(table.symlink_as_target)
        self.assertIn("tar", table.extensions)

    def test_executable_needs_ex_colored(self) -> None:
        exe = entry("run", stat.S_IFREG | 0o755)
        self.assertEqual(self.make_table("fi=0").classify(exe), LsCategory.FILE)
        self.assertEqual(self.make_table("ex=32").classify(exe), LsCategory.EXECUTABLE)

    def test_sticky_other_writable_directory(self) -> None:
        tmp = entry("tmp", stat.S_IFDIR | 0o1777)
        self.assertEqual(self.make_table("tw=30;42").classify(tmp), LsCategory.STICKY_OTHER_WRITABLE)
        self.assertEqual(self.make_table("st=37;44").classify(tmp), LsCategory.STICKY)
        self.assertEqual(self.make_table("").classify(tmp), LsCategory.DIRECTORY)

    def test_orphan_symlink(self) -> None:
        link = entry("dangling", stat.S_IFLNK | 0o777, target_path="missing")
        self.assertEqual(self.make_table("or=31").classify(link), LsCategory.ORPHAN)
        self.assertEqual(self.make_table("ln=36").classify(link), LsCategory.SYMLINK)
        self.assertEqual(
            self.make_table("mi=05").classify(link, for_target=True),
            LsCategory.MISSING,
        )

    def test_symlink_as_target_uses_target_mode(self) -> None:
        link = entry(
            "to-dir",
            stat.S_IFLNK | 0o777,
            target_path="dir",
            target_info=stat_of(stat.S_IFDIR | 0o755),
        )
        self.assertEqual(self.make_table("ln=target:di=34").classify(link), LsCategory.DIRECTORY)

    def test_extension_matches_exact_then_case_folded(self) -> None:
        table = self.make_table("*.JPG=35:*.png=33:*.PNG=36")
        photo = entry("photo.jpg", stat.S_IFREG | 0o644)
        image = entry("image.png", stat.S_IFREG | 0o644)
        self.assertEqual(table.attribute_for(photo), table.extensions["JPG"])
        self.assertEqual(table.attribute_for(image), table.extensions["png"])
        self.assertEqual(table.attribute_for(entry("notes", stat.S_IFREG)), NO_ATTR)

    def test_look_file_sets_ui_attributes(self) -> None:
        table = ColorTable(pairs=ColorPairs(8))
        with self.assertLogs("lazynav.colors", level="WARNING") as logs:
            table.load_look([["cursor", "1", "2", "bold"], ["nonsense", "bold"]])
        self.assertEqual(table.ui["cursor"].flags, AttrFlag.BOLD)
        self.assertEqual(table.pairs.pair(table.ui["cursor"].pair), (1, 2))
        self.assertEqual(len(logs.records), 1)

    def test_no_colors_keeps_defaults(self) -> None:
        table = build_color_table(0, "di=01;34", [["cursor", "bold"]])
        self.assertEqual(table.categories, {})
        self.assertEqual(table.ui["cursor"].flags, AttrFlag.REVERSE)
