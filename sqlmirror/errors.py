# File: sqlmirror/errors.py
"""
SQLMirror - Exception Hierarchy
================================
Every failure surfaced by the library derives from ``MirrorError`` so the
CLI can map them to exit codes in one place.  Library code raises, it never
calls ``sys.exit``.
"""

from __future__ import annotations

import logging
from typing import List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.errors")


class MirrorError(Exception):
    """Base class for all sqlmirror errors."""


class ConfigurationError(MirrorError):
    """A configuration, cache or catalog file is present but unusable."""


class CatalogError(MirrorError):
    """Reading the database catalog failed."""


class RenderError(MirrorError):
    """A single object could not be scripted from its catalog rows."""

    def __init__(self, object_name: str, reason: str) -> None:
        super().__init__(f"{object_name}: {reason}")
        self.object_name: str = object_name
        self.reason: str = reason


class SyncWriteError(MirrorError):
    """Writing or removing a managed file failed; the run is aborted."""

    def __init__(self, path: str, cause: Optional[BaseException] = None) -> None:
        detail: str = f": {cause}" if cause is not None else ""
        super().__init__(f"Cannot update {path}{detail}")
        self.path: str = path


class PushError(MirrorError):
    """A script batch failed while being applied to a database."""

    def __init__(self, script: str, batch_number: int, cause: BaseException) -> None:
        super().__init__(f"{script} (batch {batch_number}): {cause}")
        self.script: str = script
        self.batch_number: int = batch_number


__all__: List[str] = [
    "MirrorError",
    "ConfigurationError",
    "CatalogError",
    "RenderError",
    "SyncWriteError",
    "PushError",
]

logger.debug("sqlmirror.errors loaded.")
