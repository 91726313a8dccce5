"""Tests for cell shaping, frame building and painting.

Frames are built from synthetic entries so layout, status bar and input
line contents can be asserted column by column.
"""

import os
import stat
import unittest

from lazynav.ansi import Cell, align, cells, char_display_width, clip, sanitize, width
from lazynav.colors import NO_ATTR, Attr, AttrFlag, ColorPairs, ColorTable
from lazynav.entries import PARENT, Column, Entry
from lazynav.line_editor import Interaction, LineEditor
from lazynav.navigation import compute_max_widths
from lazynav.render import Frame, build_frame, paint, scroll_indicator, sgr
from lazynav.state import NavigationState


def text_of(line) -> str:
    return "".join(cell.char for cell in line)


def fake_entry(name: str, mode: int, size: int = 0) -> Entry:
    info = os.stat_result((mode, 0, 0, 1, 0, 0, size, 0, 0, 0))
    return Entry(
        filename=name,
        info=info,
        columns=("-rw-r--r--", "u", "g", "2.0K", "Jan  1 00:00"),
    )


class CellShapingTests(unittest.TestCase):
    def test_controls_show_as_reverse_caret(self) -> None:
        line = sanitize("a\x01b")
        self.assertEqual(text_of(line), "a^Ab")
        self.assertTrue(line[1].attr.flags & AttrFlag.REVERSE)
        self.assertEqual(line[0].attr, NO_ATTR)

    def test_del_and_undecodable_bytes_show_as_question_mark(self) -> None:
        line = sanitize("x\x7f\udcff")
        self.assertEqual(text_of(line), "x??")
        self.assertTrue(line[2].attr.flags & AttrFlag.REVERSE)

    def test_display_widths(self) -> None:
        self.assertEqual(char_display_width("a"), 1)
        self.assertEqual(char_display_width("界"), 2)
        self.assertEqual(char_display_width("\u0301"), 0)
        self.assertEqual(width(cells("éx")), 2)

    def test_clip_drops_straddling_wide_character(self) -> None:
        self.assertEqual(text_of(clip(cells("界界"), 3)), "界")

    def test_align_pads_left_or_right(self) -> None:
        self.assertEqual(text_of(align(cells("ab"), 4)), "ab  ")
        self.assertEqual(text_of(align(cells("ab"), 4, right=True)), "  ab")
        self.assertEqual(text_of(align(cells("abcdef"), 4)), "abcd")


class BuildFrameTests(unittest.TestCase):
    def setUp(self) -> None:
        self.colors = ColorTable(pairs=ColorPairs(8))
        self.state = NavigationState(cwd="/work", start_dir="/work", rows=5, columns=20)
        self.state.entries = [
            fake_entry(PARENT, stat.S_IFDIR | 0o755),
            fake_entry("file", stat.S_IFREG | 0o644, size=2048),
        ]

    def test_layout_has_listing_status_and_input_rows(self) -> None:
        frame = build_frame(self.state, self.colors)
        self.assertEqual(len(frame.lines), 5)
        self.assertTrue(all(width(line) == 20 for line in frame.lines))
        self.assertTrue(text_of(frame.lines[0]).startswith(".."))
        self.assertTrue(text_of(frame.lines[1]).startswith("file"))
        self.assertEqual(text_of(frame.lines[2]).strip(), "")
        self.assertIsNone(frame.cursor)

    def test_cursor_row_is_reversed(self) -> None:
        frame = build_frame(self.state, self.colors)
        self.assertTrue(frame.lines[0][0].attr.flags & AttrFlag.REVERSE)
        self.assertFalse(frame.lines[1][0].attr.flags & AttrFlag.REVERSE)

    def test_status_bar_shows_cwd_hidden_marker_and_indicator(self) -> None:
        self.state.columns = 30
        self.state.out_of_date = True
        bar = text_of(build_frame(self.state, self.colors).lines[3])
        self.assertTrue(bar.startswith("/work (hidden) [+]"))
        self.assertTrue(bar.endswith(" All"))

    def test_input_line_places_terminal_cursor(self) -> None:
        self.state.editor = LineEditor("search", Interaction.SEARCH, text="ab", cursor=2)
        frame = build_frame(self.state, self.colors)
        self.assertTrue(text_of(frame.lines[4]).startswith("search: ab"))
        self.assertEqual(frame.cursor, (4, 10))

    def test_bottom_line_priorities(self) -> None:
        self.state.cmdline = "ls -l"
        self.assertTrue(text_of(build_frame(self.state, self.colors).lines[4]).startswith("ls -l"))

        self.state.selection = {"file"}
        bottom = text_of(build_frame(self.state, self.colors).lines[4])
        self.assertTrue(bottom.startswith("1 selected, 2.0K"))

        self.state.show_message("hello")
        self.assertTrue(text_of(build_frame(self.state, self.colors).lines[4]).startswith("hello"))

    def test_gravity_pushes_short_listing_down(self) -> None:
        self.state.rows = 6
        self.state.gravity = True
        frame = build_frame(self.state, self.colors)
        self.assertEqual(text_of(frame.lines[0]).strip(), "")
        self.assertEqual(text_of(frame.lines[1]).strip(), "")
        self.assertTrue(text_of(frame.lines[2]).startswith(".."))

    def test_sort_flash_highlights_sorted_column(self) -> None:
        self.state.columns = 60
        self.state.full_view = True
        self.state.sort_column = Column.SIZE
        self.state.sort_flash_ttl = 2
        self.state.max_widths = compute_max_widths(self.state.entries)
        line = build_frame(self.state, self.colors).lines[1]
        self.assertEqual(line[15].char, "2")
        self.assertTrue(line[15].attr.flags & AttrFlag.REVERSE)
        self.assertFalse(line[0].attr.flags & AttrFlag.REVERSE)

    def test_scroll_indicator(self) -> None:
        self.state.entries = [fake_entry(f"f{i}", stat.S_IFREG) for i in range(10)]
        self.assertEqual(scroll_indicator(self.state), "Top")
        self.state.offset = 7
        self.assertEqual(scroll_indicator(self.state), "Bot")
        self.state.offset = 3
        self.assertEqual(scroll_indicator(self.state), "42%")


class PaintTests(unittest.TestCase):
    def test_paint_moves_absolutely_and_resets_attributes(self) -> None:
        frame = Frame([[Cell("a", Attr(AttrFlag.REVERSE))], [Cell("b")]], cursor=(1, 0))
        self.assertEqual(
            paint(frame, ColorPairs(8)),
            "\x1b[?25l\x1b[1;1H\x1b[0;7ma\x1b[0m\x1b[2;1Hb\x1b[2;1H\x1b[?25h",
        )

    def test_sgr_color_ranges(self) -> None:
        pairs = ColorPairs(256)
        self.assertEqual(sgr(Attr(pair=pairs.allocate(4, -1)), pairs), "\x1b[0;34m")
        self.assertEqual(sgr(Attr(pair=pairs.allocate(9, 2)), pairs), "\x1b[0;91;42m")
        self.assertEqual(
            sgr(Attr(AttrFlag.BOLD, pairs.allocate(200, 12)), pairs),
            "\x1b[0;1;38;5;200;104m",
        )
