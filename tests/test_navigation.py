"""Tests for logical path resolution and directory navigation.

Every test works inside a fresh temporary tree and restores the process
working directory afterwards, since changing directory is real here.
"""

import os
import tempfile
import unittest

from lazynav import navigation as nav
from lazynav.entries import PARENT, Column
from lazynav.state import FLASH_TICKS, NavigationState


def touch(path: str, data: str = "") -> None:
    with open(path, "w") as handle:
        handle.write(data)


class NavigationTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._old_cwd = os.getcwd()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self._tmp.name)
        os.makedirs(os.path.join(self.root, "a", "b", "c"))
        os.mkdir(os.path.join(self.root, "other"))
        touch(os.path.join(self.root, "a", "x.txt"), "x" * 2048)
        touch(os.path.join(self.root, "a", "b", "y.txt"))
        touch(os.path.join(self.root, "f"))

    def tearDown(self) -> None:
        os.chdir(self._old_cwd)
        self._tmp.cleanup()

    def path(self, *parts: str) -> str:
        return os.path.join(self.root, *parts)

    def state_at(self, *parts: str) -> NavigationState:
        path = self.path(*parts)
        os.chdir(path)
        state = NavigationState(cwd=path, start_dir=path)
        nav.reload(state)
        return state


class ResolveLogicalTests(NavigationTestCase):
    def test_collapses_dots_and_slashes(self) -> None:
        self.assertEqual(nav.resolve_logical(self.root, "a/./b//c"), (self.path("a", "b", "c"), None))
        self.assertEqual(nav.resolve_logical(self.root, "a/b/.."), (self.path("a"), None))

    def test_parent_through_symlink_stays_logical(self) -> None:
        os.symlink(self.path("a", "b"), self.path("link"))
        self.assertEqual(nav.resolve_logical(self.root, "link/.."), (self.root, None))

    def test_parent_through_non_directory_fails(self) -> None:
        self.assertEqual(
            nav.resolve_logical(self.root, "f/.."),
            (None, f"{self.path('f')}: not a directory"),
        )
        resolved, error = nav.resolve_logical(self.root, "nope/..")
        self.assertIsNone(resolved)
        self.assertTrue(error.startswith(self.path("nope") + ": "))

    def test_root_edge_cases(self) -> None:
        self.assertEqual(nav.resolve_logical("/", ".."), ("/", None))
        self.assertEqual(nav.resolve_logical("/", "//x"), ("//x", None))
        self.assertEqual(nav.resolve_logical("/", "///x"), ("/x", None))

    def test_ancestor_helpers(self) -> None:
        self.assertTrue(nav.is_strict_ancestor("/", "/a"))
        self.assertTrue(nav.is_strict_ancestor("/a", "/a/b"))
        self.assertFalse(nav.is_strict_ancestor("/a", "/ab"))
        self.assertFalse(nav.is_strict_ancestor("/a", "/a"))
        self.assertEqual(nav.ascended_component("/a/b/c", "/a"), "b")
        self.assertIsNone(nav.ascended_component("/a", "/b"))


class ChangeDirTests(NavigationTestCase):
    def test_descend_and_ascend_restores_levels(self) -> None:
        state = self.state_at("a")
        nav.focus(state, "b")
        state.selection = {"x.txt"}

        self.assertTrue(nav.change_dir(state, "b"))
        self.assertEqual(state.cwd, self.path("a", "b"))
        self.assertEqual(state.selection, set())
        self.assertEqual([level.path for level in state.levels], [self.path("a")])

        nav.focus(state, "c")

        self.assertTrue(nav.change_dir(state, "c"))
        self.assertEqual(len(state.levels), 2)

        self.assertTrue(nav.change_dir(state, ".."))
        self.assertEqual(state.cwd, self.path("a", "b"))
        self.assertEqual(state.current_name, "c")
        self.assertEqual(len(state.levels), 1)

        self.assertTrue(nav.change_dir(state, ".."))
        self.assertEqual(state.cwd, self.path("a"))
        self.assertEqual(state.current_name, "b")
        self.assertEqual(state.selection, {"x.txt"})
        self.assertEqual(state.levels, [])
        self.assertEqual(os.getcwd(), self.path("a"))

    def test_jumping_up_two_levels_restores_the_target_level(self) -> None:
        state = self.state_at("a")
        nav.focus(state, "b")
        nav.change_dir(state, "b")
        nav.focus(state, "c")
        nav.change_dir(state, "c")

        self.assertTrue(nav.change_dir(state, "../.."))
        self.assertEqual(state.cwd, self.path("a"))
        self.assertEqual(state.current_name, "b")
        self.assertEqual(state.levels, [])

    def test_ascending_without_level_focuses_child(self) -> None:
        state = self.state_at("a")
        self.assertTrue(nav.change_dir(state, PARENT))
        self.assertEqual(state.cwd, self.root)
        self.assertEqual(state.current_name, "a")

    def test_unrelated_directory_drops_levels(self) -> None:
        state = self.state_at("a")
        nav.change_dir(state, "b")
        self.assertTrue(nav.change_dir(state, self.path("other")))
        self.assertEqual(state.levels, [])
        self.assertEqual(state.cwd, self.path("other"))

    def test_same_directory_keeps_cursor(self) -> None:
        state = self.state_at("a")
        nav.focus(state, "x.txt")
        self.assertTrue(nav.change_dir(state, "."))
        self.assertEqual(state.current_name, "x.txt")
        self.assertEqual(state.cwd, self.path("a"))

    def test_failure_keeps_directory_and_shows_message(self) -> None:
        state = self.state_at("a")
        self.assertFalse(nav.change_dir(state, "nope"))
        self.assertEqual(state.cwd, self.path("a"))
        self.assertIn("nope", state.message)

    def test_enter_chooses_files(self) -> None:
        state = self.state_at("a")
        nav.focus(state, "x.txt")
        self.assertTrue(nav.enter(state, state.current))
        self.assertEqual(state.chosen, ["x.txt"])
        self.assertTrue(state.quitting)


class ListingTests(NavigationTestCase):
    def test_lookup_prefers_longest_prefix_and_keeps_cursor_on_ties(self) -> None:
        for name in ("alpha", "alpine", "beta"):
            touch(self.path("other", name))
        state = self.state_at("other")

        self.assertEqual(state.entries[nav.lookup(state, "alpx")].filename, "alpha")
        nav.focus(state, "alpine")
        self.assertEqual(state.entries[nav.lookup(state, "alpx")].filename, "alpine")
        self.assertEqual(nav.lookup(state, "zzz"), state.cursor)

    def test_search_match_counts_and_steps(self) -> None:
        touch(self.path("other", "abXdef"))
        touch(self.path("other", "abcdef"))
        state = self.state_at("other")

        self.assertEqual(nav.search_match(state, "abc"), 1)
        self.assertEqual(state.current_name, "abcdef")
        self.assertEqual(nav.search_match(state, "abc", 1), 1)
        self.assertEqual(state.current_name, "abcdef")
        self.assertEqual(nav.search_match(state, "ab"), 2)
        self.assertEqual(state.current_name, "abcdef")
        self.assertEqual(nav.search_match(state, "ab", 1), 2)
        self.assertEqual(state.current_name, "abXdef")
        self.assertEqual(nav.search_match(state, "q"), 0)
        self.assertEqual(state.current_name, "abXdef")

    def test_match_info_text(self) -> None:
        self.assertEqual(nav.match_info(0), "(no match)")
        self.assertEqual(nav.match_info(1), "(1 match)")
        self.assertEqual(nav.match_info(3), "(3 matches)")
        self.assertEqual(nav.count_info(1), "1 match")

    def test_select_matches_never_includes_parent(self) -> None:
        state = self.state_at("a")
        self.assertEqual(sorted(nav.select_matches(state, "*")), ["b", "x.txt"])

    def test_choose_uses_sorted_selection(self) -> None:
        state = self.state_at("a")
        state.selection = {"x.txt", "b"}
        self.assertTrue(nav.choose(state, state.current, full=True))
        self.assertEqual(state.chosen, [self.path("a", "b"), self.path("a", "x.txt")])
        self.assertTrue(state.no_chdir)
        self.assertEqual(state.selection, set())

    def test_select_toggle_skips_parent(self) -> None:
        state = self.state_at("a")
        self.assertEqual(state.current_name, PARENT)
        self.assertFalse(nav.select_toggle(state))
        nav.focus(state, "x.txt")
        self.assertTrue(nav.select_toggle(state))
        self.assertEqual(state.selection, {"x.txt"})
        self.assertEqual(nav.selection_summary(state), (1, 2048))

    def test_sorting_flashes_and_names_hidden_column(self) -> None:
        state = self.state_at("a")
        nav.shift_sort(state, 1)
        self.assertEqual(state.sort_column, Column.FILENAME)
        self.assertEqual(state.sort_flash_ttl, FLASH_TICKS)
        self.assertEqual(state.message, "")

        nav.shift_sort(state, -2)
        self.assertEqual(state.sort_column, Column.SIZE)
        self.assertEqual(state.message, "Sorting by size (ascending)")
        nav.toggle_reverse(state)
        self.assertEqual(state.message, "Sorting by size (descending)")

    def test_reload_picks_up_changes_and_rewatches(self) -> None:
        watched = []
        state = self.state_at("a")
        state.rewatch = watched.append
        state.out_of_date = True
        touch(self.path("a", "new.txt"))
        nav.reload(state)
        self.assertIn("new.txt", [entry.filename for entry in state.entries])
        self.assertFalse(state.out_of_date)
        self.assertEqual(watched, [self.path("a")])

    def test_reload_drops_selected_names_no_longer_listed(self) -> None:
        touch(self.path("a", ".dot"))
        state = self.state_at("a")
        state.show_hidden = True
        nav.reload(state)
        state.selection = {"x.txt", "b", ".dot"}

        os.unlink(self.path("a", "x.txt"))
        nav.reload(state)
        self.assertEqual(state.selection, {"b", ".dot"})

        state.show_hidden = False
        nav.reload(state)
        self.assertEqual(state.selection, {"b"})
        self.assertTrue(nav.choose(state, state.current, full=False))
        self.assertEqual(state.chosen, ["b"])


class FileOperationTests(NavigationTestCase):
    def test_rename_moves_cursor_and_selection(self) -> None:
        state = self.state_at("a")
        state.selection = {"x.txt"}
        self.assertTrue(nav.rename(state, "x.txt", "z.txt"))
        self.assertTrue(os.path.exists(self.path("a", "z.txt")))
        self.assertEqual(state.current_name, "z.txt")
        self.assertEqual(state.selection, {"z.txt"})

    def test_rename_failure_sets_message(self) -> None:
        state = self.state_at("a")
        self.assertFalse(nav.rename(state, "missing", "z"))
        self.assertTrue(state.message.startswith("z: "))

    def test_make_directory(self) -> None:
        state = self.state_at("a")
        self.assertTrue(nav.make_directory(state, "newdir"))
        self.assertTrue(os.path.isdir(self.path("a", "newdir")))
        self.assertEqual(state.current_name, "newdir")
        self.assertFalse(nav.make_directory(state, "newdir"))
        self.assertTrue(state.message.startswith("newdir: "))


class InitialDirectoryTests(NavigationTestCase):
    def test_pwd_is_kept_when_it_names_cwd(self) -> None:
        os.symlink(self.path("a"), self.path("link"))
        os.chdir(self.path("a"))
        self.assertEqual(nav.initial_directory({"PWD": self.path("link")}), self.path("link"))

    def test_stale_pwd_falls_back_to_real_cwd(self) -> None:
        os.chdir(self.path("a"))
        self.assertEqual(nav.initial_directory({"PWD": self.root}), self.path("a"))
        self.assertEqual(nav.initial_directory({}), self.path("a"))
