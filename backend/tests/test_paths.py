"""Tests for path normalization, archive re-rooting and safe joins."""

import pytest

from portfolio.services.errors import InvalidInputError, TraversalRejectedError
from portfolio.utils.paths import archive_root, normalize_path, reroot_entry, safe_join


class TestNormalizePath:
    def test_strips_leading_and_duplicate_slashes(self):
        assert normalize_path("/notes//intro.md") == "notes/intro.md"

    def test_backslashes_become_slashes(self):
        assert normalize_path("notes\\intro.md") == "notes/intro.md"

    def test_case_is_preserved(self):
        assert normalize_path("Docs/README.md") == "Docs/README.md"

    @pytest.mark.parametrize("bad", ["", "/", "a/../b", "./a", "a\x00b"])
    def test_rejects_unusable_paths(self, bad):
        with pytest.raises(InvalidInputError):
            normalize_path(bad)


class TestRerootEntry:
    def test_archive_stem_is_the_root(self):
        assert archive_root("uploads/site.zip") == "site"
        assert reroot_entry("site.zip", "site/about.md") == "about.md"

    def test_entry_outside_the_root_keeps_its_relative_path(self):
        # Not under site/, so it escapes once and is re-rooted
        assert reroot_entry("site.zip", "about.md") == "about.md"
        assert reroot_entry("site.zip", "img/logo.png") == "img/logo.png"

    def test_parent_traversal_is_rerooted(self):
        assert reroot_entry("evil.zip", "../../etc/passwd") == "etc/passwd"

    def test_escaping_into_a_sibling_named_like_the_root(self):
        assert reroot_entry("site.zip", "../site/foo.md") == "site/foo.md"

    def test_absolute_and_drive_paths_are_made_relative(self):
        assert reroot_entry("evil.zip", "/etc/passwd") == "etc/passwd"
        assert reroot_entry("evil.zip", "C:\\Windows\\win.ini") == "Windows/win.ini"

    def test_nested_directories_under_root(self):
        assert reroot_entry("site.zip", "site/blog/2024/post.md") == "blog/2024/post.md"

    @pytest.mark.parametrize("bad", ["", "/", "..", "../..", "site/.."])
    def test_unusable_entries_are_rejected(self, bad):
        with pytest.raises(TraversalRejectedError):
            reroot_entry("site.zip", bad)


class TestSafeJoin:
    def test_joins_inside_base(self, tmp_path):
        assert safe_join(tmp_path, "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()

    def test_refuses_to_escape(self, tmp_path):
        with pytest.raises(InvalidInputError):
            safe_join(tmp_path, "../outside.txt")
