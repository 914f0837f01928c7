# File: sqlmirror/cache.py
"""
SQLMirror - Checksum Cache
===========================
Persisted ``path -> checksum`` snapshot for one output root, stored as::

    {"files": {"tables/dbo.Users.sql": "<sha256>", ...}}

The snapshot is loaded once at the start of a run, updated in memory, and
replaced wholesale (temp file + rename) by ``persist()`` at the end of a
successful run.  A run that aborts never touches the file on disk.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from sqlmirror.errors import ConfigurationError
from sqlmirror.utils import write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.cache")

CACHE_FILE_NAME: str = "cache.json"


class ChecksumCache:
    """
    In-memory view of the cache file at *path*.

    Usage::

        cache = ChecksumCache(root / "cache.json")
        cache.load()
        if cache.has_changed("views/dbo.V.sql", checksum):
            ...
        cache.record("views/dbo.V.sql", checksum)
        cache.persist()

    Not thread-safe; one run owns one cache.
    """

    def __init__(self, path: Path) -> None:
        self._path: Path = path
        self._files: Dict[str, str] = {}

    @property
    def path(self) -> Path:
        return self._path

    # -----------------------------------------------------------------
    # Load / persist
    # -----------------------------------------------------------------

    def load(self) -> Dict[str, str]:
        """
        Read the snapshot from disk, replacing the in-memory mapping.

        A missing file yields an empty mapping.

        Raises:
            ConfigurationError: the file exists but is not a valid cache.
        """
        if not self._path.exists():
            logger.debug("No cache at %s; starting empty.", self._path)
            self._files = {}
            return dict(self._files)

        try:
            raw: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read cache {self._path}: {exc}") from exc

        files: Any = raw.get("files", {}) if isinstance(raw, dict) else None
        if not isinstance(files, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in files.items()
        ):
            raise ConfigurationError(
                f"Malformed cache {self._path}: expected {{\"files\": {{path: checksum}}}}."
            )

        self._files = dict(files)
        logger.info("Loaded cache %s (%d entries).", self._path, len(self._files))
        return dict(self._files)

    def persist(self) -> None:
        """Atomically write the complete in-memory mapping to disk."""
        payload: str = json.dumps({"files": self._files}, indent=2, sort_keys=True)
        write_file(self._path, payload + "\n")
        logger.info("Persisted cache %s (%d entries).", self._path, len(self._files))

    # -----------------------------------------------------------------
    # Queries & updates
    # -----------------------------------------------------------------

    def has_changed(self, path: str, checksum: str) -> bool:
        """True when *path* has no entry or its recorded checksum differs."""
        return self._files.get(path) != checksum

    def get(self, path: str) -> Optional[str]:
        return self._files.get(path)

    def record(self, path: str, checksum: str) -> None:
        """Upsert an entry; empty path or checksum is ignored."""
        if not path or not checksum:
            return
        self._files[path] = checksum

    def discard(self, path: str) -> None:
        self._files.pop(path, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"<ChecksumCache {self._path} ({len(self._files)} entries)>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CACHE_FILE_NAME",
    "ChecksumCache",
]

logger.debug("sqlmirror.cache loaded.")
