# File: sqlmirror/push.py
"""
SQLMirror - Push & Concatenate
===============================
Replays a mirrored script tree against a database, or concatenates it into
one file.

Scripts are taken directory by directory in dependency order::

    schemas, tables, types, views, functions, procs, triggers, data

and files inside a directory in sorted path order.  Each script is split
into batches on ``GO`` separator lines; batches run one at a time through
an *executor* (any ``str -> None`` callable).  ``SqlAlchemyExecutor`` is the
database-backed one.

A failed batch aborts the push with ``PushError`` unless the pusher was
created with ``continue_on_error=True``, in which case the failure is
recorded in the ``PushReport`` and the next script is attempted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from sqlmirror.errors import ConfigurationError, PushError
from sqlmirror.models import OutputConfig
from sqlmirror.utils import Timer, read_file, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.push")

PUSH_ORDER: Tuple[str, ...] = (
    "schemas",
    "tables",
    "types",
    "views",
    "functions",
    "procs",
    "triggers",
    "data",
)

_GO_LINE_RE: re.Pattern[str] = re.compile(r"^\s*GO\s*$", re.IGNORECASE | re.MULTILINE)

Executor = Callable[[str], Any]


# ---------------------------------------------------------------------------
# Script discovery & splitting
# ---------------------------------------------------------------------------


def collect_scripts(
    root: Path,
    output: OutputConfig,
    *,
    include_data: bool = True,
) -> List[Path]:
    """All ``.sql`` files under the enabled kind directories, in push order."""
    scripts: List[Path] = []
    for setting in PUSH_ORDER:
        if setting == "data" and not include_data:
            continue
        directory: Optional[str] = output.directory(setting)
        if not directory:
            continue
        base: Path = root / directory
        if not base.is_dir():
            logger.debug("No %s directory at %s.", setting, base)
            continue
        found: List[Path] = sorted(p for p in base.rglob("*.sql") if p.is_file())
        logger.debug("Found %d %s script(s).", len(found), setting)
        scripts.extend(found)
    return scripts


def split_batches(script: str) -> List[str]:
    """Split a script on ``GO`` lines, dropping empty batches."""
    return [b.strip() for b in _GO_LINE_RE.split(script) if b.strip()]


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


class SqlAlchemyExecutor:
    """
    Executes batches on a single AUTOCOMMIT connection.

    Usage::

        with SqlAlchemyExecutor(url) as execute:
            ScriptPusher(execute).push(scripts)
    """

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        try:
            self._engine: Engine = create_engine(url, **engine_kwargs)
        except (SQLAlchemyError, ImportError, ValueError) as exc:
            raise ConfigurationError(f"Cannot create engine: {exc}") from exc
        self._conn: Optional[SAConnection] = None

    def __enter__(self) -> "SqlAlchemyExecutor":
        self._conn = self._engine.connect().execution_options(isolation_level="AUTOCOMMIT")
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._engine.dispose()

    def __call__(self, batch: str) -> None:
        if self._conn is None:
            raise RuntimeError("SqlAlchemyExecutor must be used as a context manager.")
        self._conn.exec_driver_sql(batch)


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class PushReport:
    """Outcome of one push."""

    scripts_executed: int = 0
    batches_executed: int = 0
    failures: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        status: str = "SUCCESS" if self.success else f"{len(self.failures)} FAILURE(S)"
        return (
            f"Push {status}: {self.scripts_executed} script(s), "
            f"{self.batches_executed} batch(es) in {self.elapsed_seconds:.3f}s."
        )


class ScriptPusher:
    """Runs scripts through an executor, batch by batch."""

    def __init__(self, executor: Executor, *, continue_on_error: bool = False) -> None:
        self._execute: Executor = executor
        self._continue_on_error: bool = continue_on_error

    def push(self, scripts: List[Path]) -> PushReport:
        """
        Execute *scripts* in order.

        Raises:
            PushError: a batch failed and ``continue_on_error`` is False.
        """
        report: PushReport = PushReport()
        with Timer("push") as t:
            for script in scripts:
                if self._push_one(script, report):
                    report.scripts_executed += 1
        report.elapsed_seconds = t.elapsed
        logger.info(report.summary())
        return report

    def _push_one(self, script: Path, report: PushReport) -> bool:
        try:
            batches: List[str] = split_batches(read_file(script))
        except (OSError, UnicodeDecodeError) as exc:
            return self._fail(script, 0, exc, report)

        for number, batch in enumerate(batches, start=1):
            try:
                self._execute(batch)
            except (SQLAlchemyError, OSError) as exc:
                return self._fail(script, number, exc, report)
            report.batches_executed += 1
        logger.debug("Executed %s (%d batch(es)).", script, len(batches))
        return True

    def _fail(self, script: Path, number: int, exc: Exception, report: PushReport) -> bool:
        error: PushError = PushError(str(script), number, exc)
        logger.error("%s", error)
        if not self._continue_on_error:
            raise error from exc
        report.failures.append(str(error))
        return False


# ---------------------------------------------------------------------------
# Concatenate
# ---------------------------------------------------------------------------


def concatenate_path(root: Path, name: Optional[str] = None) -> Path:
    """``<root's parent>/<name>_concatenate.sql`` (kept outside the managed tree)."""
    return root.parent / f"{name or root.name}_concatenate.sql"


def concatenate_scripts(
    root: Path,
    output: OutputConfig,
    name: Optional[str] = None,
) -> Tuple[Path, int]:
    """
    Join every schema script (data excluded) into one file, each followed
    by exactly one ``GO`` line.

    Returns the target path and the number of scripts joined.
    """
    scripts: List[Path] = collect_scripts(root, output, include_data=False)
    parts: List[str] = []
    for script in scripts:
        content: str = read_file(script).rstrip()
        last_line: str = content.rsplit("\n", 1)[-1]
        if not _GO_LINE_RE.fullmatch(last_line):
            content += "\nGO"
        parts.append(content)

    target: Path = concatenate_path(root, name)
    write_file(target, "\n\n".join(parts) + ("\n" if parts else ""))
    logger.info("Concatenated %d script(s) into %s.", len(scripts), target)
    return target, len(scripts)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "PUSH_ORDER",
    "PushReport",
    "ScriptPusher",
    "SqlAlchemyExecutor",
    "collect_scripts",
    "concatenate_path",
    "concatenate_scripts",
    "split_batches",
]

logger.debug("sqlmirror.push loaded.")
