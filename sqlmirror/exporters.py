# File: sqlmirror/exporters.py
"""
SQLMirror - File Synchronizer (File-System Manager)
=====================================================

Reconciles the scripts rendered in one run with the managed ``.sql`` files
already under the output root:

    1. ``begin``    – scan ``<root>/**/*.sql`` (in-scope files only) into the
                      *existing* set and load the checksum cache.
    2. ``write``    – normalize content, checksum it, classify it as added /
                      updated / unchanged, write it atomically and mark the
                      path as seen.
    3. ``keep``     – mark a path as seen without writing (object failed to
                      render; its file and cache entry are left as they are).
    4. ``finalize`` – delete every existing file that was not seen, prune the
                      cache and persist it.

Files outside the include filter are never written, never deleted, and their
cache entries are carried over untouched.

A write or delete failure raises ``SyncWriteError`` and the cache is not
persisted, so the next run re-classifies from the last consistent snapshot.

Complexity: O(F) where F = number of managed files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from sqlmirror.cache import CACHE_FILE_NAME, ChecksumCache
from sqlmirror.errors import SyncWriteError
from sqlmirror.utils import (
    FileFilter,
    count_lines,
    normalize_content,
    normalize_path,
    safe_file_name,
    sha256_hex,
    write_file,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.exporters")


# ---------------------------------------------------------------------------
# Data classes for sync results
# ---------------------------------------------------------------------------


class SyncAction(str, Enum):
    """Classification of a single write."""

    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single synchronized file."""

    relative_path: str
    absolute_path: str
    size_bytes: int
    line_count: int
    sha256: str
    action: SyncAction


@dataclass(frozen=True, slots=True)
class SyncStats:
    """Counts reported at the end of a run."""

    added: int = 0
    updated: int = 0
    removed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed)

    def summary(self) -> str:
        return f"{self.added} added, {self.updated} updated, {self.removed} removed"

    def to_dict(self) -> Dict[str, int]:
        return {"added": self.added, "updated": self.updated, "removed": self.removed}


# ---------------------------------------------------------------------------
# FileSynchronizer
# ---------------------------------------------------------------------------


class FileSynchronizer:
    """
    Runs one reconciliation pass over an output root.

    Usage::

        sync = FileSynchronizer(Path("./_sql-database"), ["dbo.*"])
        sync.begin()
        sync.write("./tables", "dbo.Users.sql", script)
        stats = sync.finalize()
        print(stats.summary())

    Thread-safety: NOT thread-safe.  Use one synchronizer per output root
    and never run two against the same root at once.
    """

    def __init__(
        self,
        root: Path,
        patterns: Sequence[str] = (),
        *,
        cache_name: str = CACHE_FILE_NAME,
    ) -> None:
        self._root: Path = root
        self._filter: FileFilter = FileFilter(patterns)
        self._cache: ChecksumCache = ChecksumCache(root / cache_name)

        self._existing: Set[str] = set()
        self._written: Set[str] = set()
        self._records: List[FileRecord] = []
        self._added: int = 0
        self._updated: int = 0
        self._started: bool = False

        logger.debug("FileSynchronizer initialised: root=%s, %r.", root, self._filter)

    # -----------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self._root

    @property
    def cache(self) -> ChecksumCache:
        return self._cache

    @property
    def records(self) -> List[FileRecord]:
        return list(self._records)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def relative_path(self, directory: str, file_name: str) -> str:
        """Root-relative path for a file in a kind directory."""
        return normalize_path(directory, safe_file_name(file_name))

    def is_included(self, directory: str, file_name: str) -> bool:
        return self._filter.matches(self.relative_path(directory, file_name))

    def begin(self) -> None:
        """
        Discover managed files and load the previous cache.

        Raises:
            ConfigurationError: the cache file is malformed.
        """
        self._existing = set()
        if self._root.is_dir():
            for path in self._root.rglob("*.sql"):
                if not path.is_file():
                    continue
                rel: str = path.relative_to(self._root).as_posix()
                if self._filter.matches(rel):
                    self._existing.add(rel)
        self._cache.load()
        self._written = set()
        self._records = []
        self._added = self._updated = 0
        self._started = True
        logger.info(
            "Sync started at %s: %d managed file(s) on disk.",
            self._root,
            len(self._existing),
        )

    def write(self, directory: str, file_name: str, content: str) -> Optional[SyncAction]:
        """
        Write one script and classify it.

        Returns None when the path is outside the include filter, or was
        already written in this run (the first script is kept); nothing is
        written or recorded.

        Raises:
            SyncWriteError: the file could not be written.
        """
        self._require_started()
        rel: str = self.relative_path(directory, file_name)
        if not self._filter.matches(rel):
            logger.debug("Skipping %s (excluded by file filter).", rel)
            return None
        if rel in self._written:
            logger.warning("%s was produced twice in this run; keeping the first.", rel)
            return None

        text: str = normalize_content(content)
        checksum: str = sha256_hex(text)

        if rel not in self._existing:
            action: SyncAction = SyncAction.ADDED
        elif self._cache.has_changed(rel, checksum):
            action = SyncAction.UPDATED
        else:
            action = SyncAction.UNCHANGED

        target: Path = self._root / rel
        try:
            size: int = write_file(target, text)
        except OSError as exc:
            logger.error("Failed to write %s: %s", target, exc)
            raise SyncWriteError(str(target), exc) from exc

        if action is SyncAction.ADDED:
            self._added += 1
        elif action is SyncAction.UPDATED:
            self._updated += 1

        self._cache.record(rel, checksum)
        self._existing.discard(rel)
        self._written.add(rel)
        self._records.append(FileRecord(
            relative_path=rel,
            absolute_path=str(target),
            size_bytes=size,
            line_count=count_lines(text),
            sha256=checksum,
            action=action,
        ))
        logger.debug("%s %s (%d bytes).", action.value.capitalize(), rel, size)
        return action

    def keep(self, directory: str, file_name: str) -> None:
        """Mark a path as seen without writing it, preserving its file and cache entry."""
        self._require_started()
        rel: str = self.relative_path(directory, file_name)
        if not self._filter.matches(rel):
            return
        self._existing.discard(rel)
        self._written.add(rel)
        logger.debug("Keeping %s unchanged.", rel)

    def finalize(self) -> SyncStats:
        """
        Remove leftover files, prune and persist the cache.

        Raises:
            SyncWriteError: a leftover file could not be removed.
        """
        self._require_started()
        removed: int = 0
        for rel in sorted(self._existing):
            target: Path = self._root / rel
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("Failed to remove %s: %s", target, exc)
                raise SyncWriteError(str(target), exc) from exc
            removed += 1
            logger.debug("Removed %s.", rel)

        for rel in self._cache:
            if rel not in self._written and self._filter.matches(rel):
                self._cache.discard(rel)

        self._cache.persist()
        self._started = False

        stats: SyncStats = SyncStats(added=self._added, updated=self._updated, removed=removed)
        logger.info("Sync finished at %s: %s.", self._root, stats.summary())
        return stats

    # -----------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("FileSynchronizer.begin() must be called first.")


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FileSynchronizer",
    "FileRecord",
    "SyncAction",
    "SyncStats",
]

logger.debug("sqlmirror.exporters loaded.")
