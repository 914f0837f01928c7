"""
tests/test_cache.py
Unit tests for sqlmirror.cache.ChecksumCache.

Tests cover:
- loading a missing, valid and malformed cache file
- change detection, upserts and removals
- persisting and reloading
"""

from __future__ import annotations

import json
import pathlib

import pytest

from sqlmirror.cache import CACHE_FILE_NAME, ChecksumCache
from sqlmirror.errors import ConfigurationError


@pytest.fixture()
def cache_path(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / CACHE_FILE_NAME


class TestLoad:
    def test_missing_file_is_empty(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        assert cache.load() == {}
        assert len(cache) == 0

    def test_valid_file(self, cache_path: pathlib.Path) -> None:
        cache_path.write_text(json.dumps({"files": {"views/a.sql": "abc"}}), encoding="utf-8")
        cache = ChecksumCache(cache_path)
        assert cache.load() == {"views/a.sql": "abc"}
        assert "views/a.sql" in cache

    def test_returned_mapping_is_a_copy(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        loaded = cache.load()
        loaded["x"] = "y"
        assert "x" not in cache

    @pytest.mark.parametrize(
        "content",
        [
            "not json",
            json.dumps([1, 2]),
            json.dumps({"files": ["a"]}),
            json.dumps({"files": {"a.sql": 5}}),
        ],
    )
    def test_malformed_file_raises(self, cache_path: pathlib.Path, content: str) -> None:
        cache_path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ChecksumCache(cache_path).load()


class TestUpdates:
    def test_has_changed(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        assert cache.has_changed("a.sql", "1")
        cache.record("a.sql", "1")
        assert not cache.has_changed("a.sql", "1")
        assert cache.has_changed("a.sql", "2")

    def test_record_ignores_empty_input(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        cache.record("", "1")
        cache.record("a.sql", "")
        assert len(cache) == 0

    def test_discard(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        cache.record("a.sql", "1")
        cache.discard("a.sql")
        cache.discard("never-there.sql")
        assert cache.get("a.sql") is None

    def test_iteration_allows_discarding(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        for name in ("a.sql", "b.sql", "c.sql"):
            cache.record(name, "x")
        for name in cache:
            cache.discard(name)
        assert cache.snapshot() == {}


class TestPersist:
    def test_round_trip(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        cache.record("tables/dbo.B.sql", "bb")
        cache.record("tables/dbo.A.sql", "aa")
        cache.persist()

        raw = json.loads(cache_path.read_text(encoding="utf-8"))
        assert raw == {"files": {"tables/dbo.A.sql": "aa", "tables/dbo.B.sql": "bb"}}

        reloaded = ChecksumCache(cache_path)
        assert reloaded.load() == cache.snapshot()

    def test_persist_replaces_previous_content(self, cache_path: pathlib.Path) -> None:
        cache = ChecksumCache(cache_path)
        cache.record("a.sql", "1")
        cache.persist()
        cache.discard("a.sql")
        cache.persist()
        assert json.loads(cache_path.read_text(encoding="utf-8")) == {"files": {}}
