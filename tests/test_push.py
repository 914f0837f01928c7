"""
tests/test_push.py
Unit tests for sqlmirror.push.

Tests cover:
- script discovery in dependency order
- GO batch splitting
- abort-on-first-failure versus continue-on-error
- executing against a real (SQLite) connection
- concatenation with exactly one GO per script
"""

from __future__ import annotations

import pathlib
from typing import List

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from sqlmirror.config import parse_config
from sqlmirror.errors import PushError
from sqlmirror.models import MirrorConfig
from sqlmirror.push import (
    ScriptPusher,
    SqlAlchemyExecutor,
    collect_scripts,
    concatenate_path,
    concatenate_scripts,
    split_batches,
)


def _write(root: pathlib.Path, rel: str, content: str) -> pathlib.Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def script_tree(output_root: pathlib.Path) -> pathlib.Path:
    _write(output_root, "data/dbo.Status.sql", "INSERT 1")
    _write(output_root, "triggers/dbo.Tr.sql", "CREATE TRIGGER")
    _write(output_root, "views/dbo.V.sql", "DROP VIEW\nGO\nCREATE VIEW")
    _write(output_root, "tables/dbo.B.sql", "CREATE TABLE B")
    _write(output_root, "tables/dbo.A.sql", "CREATE TABLE A")
    _write(output_root, "schemas/sales.sql", "CREATE SCHEMA")
    _write(output_root, "stored-procedures/dbo.P.sql", "CREATE PROCEDURE")
    _write(output_root, "functions/dbo.F.sql", "CREATE FUNCTION\ngo")
    _write(output_root, "types/dbo.T.sql", "CREATE TYPE")
    _write(output_root, "views/notes.txt", "not a script")
    return output_root


class RecordingExecutor:
    """Collects batches; raises for any batch containing *fail_on*."""

    def __init__(self, fail_on: str = "") -> None:
        self.batches: List[str] = []
        self._fail_on = fail_on

    def __call__(self, batch: str) -> None:
        if self._fail_on and self._fail_on in batch:
            raise SQLAlchemyError(f"cannot run {batch!r}")
        self.batches.append(batch)


class TestCollectScripts:
    def test_dependency_order(self, script_tree: pathlib.Path, config: MirrorConfig) -> None:
        scripts = collect_scripts(script_tree, config.output)
        assert [p.relative_to(script_tree).as_posix() for p in scripts] == [
            "schemas/sales.sql",
            "tables/dbo.A.sql",
            "tables/dbo.B.sql",
            "types/dbo.T.sql",
            "views/dbo.V.sql",
            "functions/dbo.F.sql",
            "stored-procedures/dbo.P.sql",
            "triggers/dbo.Tr.sql",
            "data/dbo.Status.sql",
        ]

    def test_disabled_and_missing_directories(
        self, script_tree: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        config = parse_config({"output": {"data": False, "types": "./nowhere"}}, tmp_path)
        names = [p.name for p in collect_scripts(script_tree, config.output)]
        assert "dbo.Status.sql" not in names
        assert "dbo.T.sql" not in names
        assert len(names) == 7

    def test_empty_root(self, output_root: pathlib.Path, config: MirrorConfig) -> None:
        assert collect_scripts(output_root, config.output) == []


class TestSplitBatches:
    def test_splits_on_go_lines_only(self) -> None:
        script = "DROP VIEW v\nGO\nCREATE VIEW v AS SELECT 'GO' AS go_value\n  go  \n"
        assert split_batches(script) == [
            "DROP VIEW v",
            "CREATE VIEW v AS SELECT 'GO' AS go_value",
        ]

    def test_no_separator(self) -> None:
        assert split_batches("SELECT 1") == ["SELECT 1"]

    def test_empty_batches_are_dropped(self) -> None:
        assert split_batches("GO\n\nGO\nSELECT 1\nGO\n") == ["SELECT 1"]


class TestScriptPusher:
    def test_executes_in_order(self, script_tree: pathlib.Path, config: MirrorConfig) -> None:
        execute = RecordingExecutor()
        report = ScriptPusher(execute).push(collect_scripts(script_tree, config.output))
        assert report.success
        assert report.scripts_executed == 9
        assert report.batches_executed == 10
        assert execute.batches[:4] == ["CREATE SCHEMA", "CREATE TABLE A", "CREATE TABLE B", "CREATE TYPE"]
        assert execute.batches[4:6] == ["DROP VIEW", "CREATE VIEW"]

    def test_aborts_on_first_failure(self, script_tree: pathlib.Path, config: MirrorConfig) -> None:
        execute = RecordingExecutor(fail_on="CREATE VIEW")
        with pytest.raises(PushError) as exc:
            ScriptPusher(execute).push(collect_scripts(script_tree, config.output))
        assert exc.value.batch_number == 2
        assert exc.value.script.endswith("dbo.V.sql")
        assert "CREATE FUNCTION" not in execute.batches

    def test_continue_on_error(self, script_tree: pathlib.Path, config: MirrorConfig) -> None:
        execute = RecordingExecutor(fail_on="CREATE TABLE A")
        report = ScriptPusher(execute, continue_on_error=True).push(
            collect_scripts(script_tree, config.output)
        )
        assert not report.success
        assert len(report.failures) == 1
        assert "dbo.A.sql (batch 1)" in report.failures[0]
        assert report.scripts_executed == 8
        assert execute.batches[-1] == "INSERT 1"
        assert "1 FAILURE(S)" in report.summary()


class TestSqlAlchemyExecutor:
    def test_runs_batches_against_sqlite(self, tmp_path: pathlib.Path) -> None:
        url = f"sqlite:///{tmp_path / 'push.db'}"
        root = tmp_path / "root"
        _write(root, "tables/main.T.sql", "CREATE TABLE T (id INTEGER PRIMARY KEY)\nGO\nINSERT INTO T VALUES (1)")
        config = parse_config({}, tmp_path)

        with SqlAlchemyExecutor(url) as execute:
            report = ScriptPusher(execute).push(collect_scripts(root, config.output))
        assert report.batches_executed == 2

        engine = create_engine(url)
        try:
            with engine.connect() as conn:
                assert conn.execute(text("SELECT COUNT(*) FROM T")).scalar() == 1
        finally:
            engine.dispose()

    def test_database_error_becomes_push_error(self, tmp_path: pathlib.Path) -> None:
        root = tmp_path / "root"
        _write(root, "tables/main.T.sql", "CREATE TABLE")
        config = parse_config({}, tmp_path)
        with SqlAlchemyExecutor("sqlite://") as execute:
            with pytest.raises(PushError):
                ScriptPusher(execute).push(collect_scripts(root, config.output))

    def test_requires_context_manager(self) -> None:
        with pytest.raises(RuntimeError):
            SqlAlchemyExecutor("sqlite://")("SELECT 1")


class TestConcatenate:
    def test_each_script_ends_with_one_go(
        self, script_tree: pathlib.Path, config: MirrorConfig
    ) -> None:
        target, count = concatenate_scripts(script_tree, config.output, "dev")
        assert target == script_tree.parent / "dev_concatenate.sql"
        assert count == 8
        content = target.read_text(encoding="utf-8")
        assert "INSERT 1" not in content
        assert content.startswith("CREATE SCHEMA\nGO\n\nCREATE TABLE A\nGO\n")
        assert "CREATE FUNCTION\ngo\n\nCREATE PROCEDURE\nGO" in content
        assert "go\nGO" not in content
        assert content.endswith("CREATE TRIGGER\nGO\n")

    def test_target_is_outside_the_managed_tree(self, output_root: pathlib.Path) -> None:
        assert concatenate_path(output_root).parent == output_root.parent
        assert concatenate_path(output_root).name == "_sql-database_concatenate.sql"
