"""
tests/test_utils.py
Unit tests for sqlmirror.utils.

Tests cover:
- file-name sanitizing and path normalization
- content normalization
- glob translation and include / exclude filtering
- atomic writes, checksums and line counts
"""

from __future__ import annotations

import pathlib

import pytest

from sqlmirror.utils import (
    FileFilter,
    Timer,
    compile_glob,
    count_lines,
    normalize_content,
    normalize_path,
    read_file,
    safe_file_name,
    sha256_hex,
    write_file,
)


class TestSafeFileName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("dbo.Users.sql", "dbo.Users.sql"),
            ("dbo.Orders/2019.sql", "dbo.Orders_2019.sql"),
            ('a<b>c:d"e|f?g*h.sql', "a_b_c_d_e_f_g_h.sql"),
            ("dbo.x\\y.sql", "dbo.x_y.sql"),
            ("tab\there.sql", "tab_here.sql"),
        ],
    )
    def test_replaces_unsafe_characters(self, raw: str, expected: str) -> None:
        assert safe_file_name(raw) == expected

    def test_dot_names_are_neutralised(self) -> None:
        assert safe_file_name("..") == "__"
        assert safe_file_name("") == "_"


class TestNormalizePath:
    def test_strips_current_dir_prefix(self) -> None:
        assert normalize_path("./tables", "dbo.A.sql") == "tables/dbo.A.sql"

    def test_backslashes_become_slashes(self) -> None:
        assert normalize_path(".\\stored-procedures", "dbo.P.sql") == "stored-procedures/dbo.P.sql"

    def test_nested_directory(self) -> None:
        assert normalize_path("./a/./b/", "x.sql") == "a/b/x.sql"


class TestNormalizeContent:
    def test_trims_and_unifies_line_endings(self) -> None:
        assert normalize_content("  \r\nSELECT 1\r\nGO\r\n  ") == "SELECT 1\nGO"

    def test_drops_control_characters_but_keeps_tabs(self) -> None:
        assert normalize_content("A\x00B\tC\x07\x1bD") == "AB\tCD"

    def test_idempotent(self) -> None:
        once = normalize_content(" x\r\ny \x01")
        assert normalize_content(once) == once


class TestCompileGlob:
    def test_star_stays_within_segment(self) -> None:
        pattern = compile_glob("tables/*.sql")
        assert pattern is not None
        assert pattern.match("tables/dbo.A.sql")
        assert not pattern.match("tables/sub/dbo.A.sql")

    def test_double_star_crosses_segments(self) -> None:
        pattern = compile_glob("**/dbo.*")
        assert pattern is not None
        assert pattern.match("tables/dbo.A.sql")
        assert pattern.match("dbo.A.sql")

    def test_question_mark_and_classes(self) -> None:
        pattern = compile_glob("v?/[!x]*.sql")
        assert pattern is not None
        assert pattern.match("v1/a.sql")
        assert not pattern.match("v1/x.sql")

    def test_unclosed_bracket_is_malformed(self) -> None:
        assert compile_glob("tables/[abc") is None


class TestFileFilter:
    def test_empty_filter_matches_everything(self) -> None:
        f = FileFilter()
        assert f.is_empty
        assert f.matches("tables/dbo.A.sql")

    def test_include_matches_file_name_or_full_path(self) -> None:
        f = FileFilter(["dbo.*"])
        assert f.matches("tables/dbo.A.sql")
        assert not f.matches("tables/sales.A.sql")
        assert FileFilter(["views/**"]).matches("views/dbo.V.sql")

    def test_exclude_wins_over_include(self) -> None:
        f = FileFilter(["dbo.*", "!*.tmp.sql"])
        assert f.matches("tables/dbo.A.sql")
        assert not f.matches("tables/dbo.A.tmp.sql")

    def test_only_excludes(self) -> None:
        f = FileFilter(["!data/**"])
        assert f.matches("tables/dbo.A.sql")
        assert not f.matches("data/dbo.Status.sql")

    def test_malformed_include_matches_nothing(self) -> None:
        f = FileFilter(["[oops"])
        assert not f.is_empty
        assert not f.matches("tables/dbo.A.sql")

    def test_malformed_exclude_excludes_nothing(self) -> None:
        assert FileFilter(["![oops"]).matches("tables/dbo.A.sql")


class TestFileIO:
    def test_write_creates_parents_and_returns_size(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "a" / "b" / "x.sql"
        size = write_file(target, "SELECT 'é'")
        assert target.read_text(encoding="utf-8") == "SELECT 'é'"
        assert size == len("SELECT 'é'".encode("utf-8"))

    def test_write_leaves_no_temp_files(self, tmp_path: pathlib.Path) -> None:
        write_file(tmp_path / "x.sql", "one")
        write_file(tmp_path / "x.sql", "two")
        assert [p.name for p in tmp_path.iterdir()] == ["x.sql"]
        assert read_file(tmp_path / "x.sql") == "two"

    def test_read_tolerates_bom(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "bom.sql"
        path.write_bytes("\ufeffSELECT 1".encode("utf-8"))
        assert read_file(path) == "SELECT 1"


class TestMetrics:
    def test_sha256_is_stable_and_content_sensitive(self) -> None:
        assert sha256_hex("abc") == sha256_hex("abc")
        assert sha256_hex("abc") != sha256_hex("abd")
        assert len(sha256_hex("")) == 64

    @pytest.mark.parametrize(
        "content, expected",
        [("", 0), ("a", 1), ("a\n", 1), ("a\nb", 2), ("a\nb\n", 2)],
    )
    def test_count_lines(self, content: str, expected: int) -> None:
        assert count_lines(content) == expected

    def test_timer_measures_elapsed(self) -> None:
        with Timer("noop") as t:
            pass
        assert t.elapsed >= 0.0
        assert "noop" in repr(t)
