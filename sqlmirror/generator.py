# File: sqlmirror/generator.py
"""
SQLMirror - Pull Pipeline (Orchestrator)
=========================================

Connects every phase of a ``pull``:

    Catalog -> Validation -> Script Rendering -> File Synchronization

Workflow::

    1. Accept a ``Catalog`` (read live or loaded from a snapshot file).
    2. Run the cross-row validators (validators.py).
    3. Start a ``FileSynchronizer`` pass over the output root.
    4. Render each section in order: schemas, tables, types, views,
       functions, procedures, triggers, data.  Disabled directories and
       paths outside the file filter are skipped before rendering.
    5. Finalize the pass (remove leftovers, persist the cache).
    6. Return a ``PullReport`` with counts, timings and errors.

Error handling strategy:
    - Validation errors abort before anything is written (strict mode).
    - A ``RenderError`` skips that one object: its existing file and cache
      entry are kept and the error is listed in the report.
    - A ``SyncWriteError`` stops the pass; files already written stay and
      the cache is not persisted.
    - ``ConfigurationError`` (e.g. a malformed cache) propagates.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from sqlmirror.catalog import Catalog, load_catalog_file
from sqlmirror.errors import RenderError, SyncWriteError
from sqlmirror.exporters import FileRecord, FileSynchronizer, SyncAction, SyncStats
from sqlmirror.models import MirrorConfig, ObjectKind
from sqlmirror.templates import ScriptGenerator
from sqlmirror.utils import Timer
from sqlmirror.validators import ValidationResult, validate_catalog

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.generator")

# Script objects rendered after tables and types, in this order.
_SCRIPT_SECTIONS: Tuple[Tuple[str, Tuple[ObjectKind, ...]], ...] = (
    ("views", (ObjectKind.VIEW,)),
    ("functions", (ObjectKind.SCALAR_FUNCTION, ObjectKind.TABLE_FUNCTION)),
    ("procs", (ObjectKind.PROCEDURE,)),
    ("triggers", (ObjectKind.TRIGGER,)),
)


# ---------------------------------------------------------------------------
# Pull report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class StepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class PullReport:
    """
    Report produced by ``SchemaMirror.pull()``.

    ``stats`` is None when the pass never reached finalization.
    """

    success: bool = False
    output_directory: str = ""

    # Metrics
    scripts_rendered: int = 0
    scripts_skipped: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    total_elapsed_seconds: float = 0.0
    stats: Optional[SyncStats] = None

    # Sub-reports
    step_metrics: List[StepMetric] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    records: List[FileRecord] = field(default_factory=list)

    @property
    def changed_files(self) -> List[str]:
        return [r.relative_path for r in self.records if r.action is not SyncAction.UNCHANGED]

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "SUCCESS" if self.success else "FAILED"
        lines.append(f"{'='*60}")
        lines.append("  SQLMirror - Pull Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        lines.append(f"  Output:           {self.output_directory}")
        lines.append(f"  Scripts rendered: {self.scripts_rendered}")
        lines.append(f"  Scripts skipped:  {self.scripts_skipped}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total bytes:      {self.total_bytes:,}")
        if self.stats is not None:
            lines.append(f"  Files:            {self.stats.summary()}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        sections: List[Tuple[str, str, List[str]]] = [
            ("Validation Errors", "✗", self.validation_errors),
            ("Validation Warnings", "⚠", self.validation_warnings),
            ("Generation Errors", "✗", self.generation_errors),
            ("Export Errors", "✗", self.export_errors),
        ]
        for title, icon, items in sections:
            if items:
                lines.append(f"{'─'*60}")
                lines.append(f"  {title} ({len(items)}):")
                for item in items:
                    lines.append(f"    {icon} {item}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# SchemaMirror - Master orchestrator
# ---------------------------------------------------------------------------


class SchemaMirror:
    """
    Pull pipeline bound to one ``MirrorConfig``.

    Usage::

        mirror = SchemaMirror(config)
        report = mirror.pull(catalog, Path("./_sql-database"))
        print(report.summary())

    Reusable: create once, call ``pull()`` many times (never concurrently
    against the same root).
    """

    def __init__(
        self,
        config: MirrorConfig,
        *,
        strict_validation: bool = True,
        fail_on_warnings: bool = False,
    ) -> None:
        """
        Args:
            config: Immutable run configuration.
            strict_validation: If True, abort on any validation error.
            fail_on_warnings: If True, treat validation warnings as errors.
        """
        self._config: MirrorConfig = config
        self._scripts: ScriptGenerator = ScriptGenerator(config)
        self._strict_validation: bool = strict_validation
        self._fail_on_warnings: bool = fail_on_warnings

        logger.debug(
            "SchemaMirror initialised: strict=%s, fail_on_warnings=%s.",
            strict_validation,
            fail_on_warnings,
        )

    # -----------------------------------------------------------------
    # Public
    # -----------------------------------------------------------------

    def pull_from_file(self, catalog_path: Path, root: Path) -> PullReport:
        """
        Load a catalog snapshot and pull it into *root*.

        Raises:
            ConfigurationError: the snapshot is missing or invalid.
        """
        with Timer("load_catalog") as t_load:
            catalog: Catalog = load_catalog_file(catalog_path)
        report: PullReport = PullReport()
        report.step_metrics.append(StepMetric(
            step_name="Load Catalog",
            success=True,
            elapsed_seconds=t_load.elapsed,
            detail=f"from {catalog_path.name}",
        ))
        return self._run_pipeline(catalog, root, report)

    def pull(self, catalog: Catalog, root: Path) -> PullReport:
        """
        Render *catalog* and synchronize it into *root*.

        Raises:
            ConfigurationError: the existing cache file is malformed.
        """
        return self._run_pipeline(catalog, root, PullReport())

    # -----------------------------------------------------------------
    # Internal: master pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(self, catalog: Catalog, root: Path, report: PullReport) -> PullReport:
        pipeline_start: float = time.perf_counter()
        report.output_directory = str(root.resolve())

        if not self._step_validate(catalog, report) and self._strict_validation:
            return self._finalise_report(report, time.perf_counter() - pipeline_start)

        self._step_synchronize(catalog, root, report)
        return self._finalise_report(report, time.perf_counter() - pipeline_start)

    # -----------------------------------------------------------------
    # Pipeline step: Validation
    # -----------------------------------------------------------------

    def _step_validate(self, catalog: Catalog, report: PullReport) -> bool:
        """Returns True if validation passed (warnings allowed unless fail_on_warnings)."""
        with Timer("validation") as t:
            result: ValidationResult = validate_catalog(catalog, self._config)

        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)

        if result.errors:
            detail: str = f"{len(result.errors)} error(s)"
        elif result.warnings:
            detail = f"{len(result.warnings)} warning(s)"
        else:
            detail = "all checks passed"

        passed: bool = result.is_valid and not (self._fail_on_warnings and result.warnings)
        report.step_metrics.append(StepMetric(
            step_name="Validate Catalog",
            success=passed,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))

        for err in result.errors:
            logger.error("  ✗ %s", err)
        for warn in result.warnings:
            logger.warning("  ⚠ %s", warn)

        if self._fail_on_warnings and result.warnings and result.is_valid:
            report.validation_errors.append(
                f"{len(result.warnings)} warning(s) treated as errors."
            )
        return passed

    # -----------------------------------------------------------------
    # Pipeline step: Render + synchronize
    # -----------------------------------------------------------------

    def _step_synchronize(self, catalog: Catalog, root: Path, report: PullReport) -> None:
        sync: FileSynchronizer = FileSynchronizer(root, self._config.files)

        with Timer("synchronize") as t:
            sync.begin()
            try:
                for directory, file_name, produce in self._plan(catalog):
                    self._emit(sync, directory, file_name, produce, report)
                report.stats = sync.finalize()
            except SyncWriteError as exc:
                report.export_errors.append(str(exc))
                logger.error("Synchronization aborted: %s", exc)

        report.records = sync.records
        report.total_bytes = sum(r.size_bytes for r in report.records)
        report.total_lines = sum(r.line_count for r in report.records)

        detail: str = report.stats.summary() if report.stats else "aborted"
        report.step_metrics.append(StepMetric(
            step_name="Render & Synchronize",
            success=not report.export_errors and not report.generation_errors,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        logger.info(
            "Pull into %s: %d script(s), %s in %.3fs.",
            root,
            report.scripts_rendered,
            detail,
            t.elapsed,
        )

    def _emit(
        self,
        sync: FileSynchronizer,
        directory: str,
        file_name: str,
        produce: Callable[[], str],
        report: PullReport,
    ) -> None:
        if not sync.is_included(directory, file_name):
            report.scripts_skipped += 1
            logger.debug("Filtered out %s/%s.", directory, file_name)
            return
        try:
            content: str = produce()
        except RenderError as exc:
            report.generation_errors.append(str(exc))
            logger.error("Cannot render %s: %s", exc.object_name, exc.reason)
            sync.keep(directory, file_name)
            return
        if sync.write(directory, file_name, content) is None:
            report.scripts_skipped += 1
            return
        report.scripts_rendered += 1

    def _plan(self, catalog: Catalog) -> List[Tuple[str, str, Callable[[], str]]]:
        """(directory, file name, producer) for every enabled script, in output order."""
        output = self._config.output
        plan: List[Tuple[str, str, Callable[[], str]]] = []

        schemas_dir: Optional[str] = output.schemas
        if schemas_dir:
            for schema in catalog.schemas:
                plan.append((
                    schemas_dir,
                    schema.file_name,
                    lambda s=schema: self._scripts.render_schema(s),
                ))

        sections: List[Tuple[str, list]] = [
            ("tables", list(catalog.tables)),
            ("types", list(catalog.types)),
        ] + [(setting, catalog.objects_of(*kinds)) for setting, kinds in _SCRIPT_SECTIONS]

        for setting, objects in sections:
            directory: Optional[str] = output.directory(setting)
            if not directory:
                logger.debug("Output for '%s' is disabled.", setting)
                continue
            for obj in objects:
                plan.append((
                    directory,
                    obj.file_name,
                    lambda o=obj: self._scripts.render(o, catalog.structure_for(o.object_id)),
                ))

        data_dir: Optional[str] = output.data
        if data_dir:
            for data in catalog.data:
                plan.append((
                    data_dir,
                    data.file_name,
                    lambda d=data: self._scripts.render_data(d),
                ))
        return plan

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(self, report: PullReport, total_elapsed: float) -> PullReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = not (
            report.validation_errors or report.generation_errors or report.export_errors
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "PullReport",
    "SchemaMirror",
    "StepMetric",
]

logger.debug("sqlmirror.generator loaded.")
