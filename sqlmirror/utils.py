# File: sqlmirror/utils.py
"""
SQLMirror - Utility Functions & Helpers
========================================
File-name sanitizing, content normalization, checksums, glob filtering and
file I/O used by the synchronizer and the push / cat commands.

- Glob patterns are compiled once and cached with ``@lru_cache``.
- File writes go through a temp file in the target directory followed by
  ``os.replace`` so a crash never leaves a half-written script.
- No external dependencies beyond the Python standard library.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
import posixpath
import re
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

# Characters unsafe in file names on at least one common filesystem.
_UNSAFE_FILE_CHARS_RE: re.Pattern[str] = re.compile(r'[<>:"/\\|?*\x00-\x1F\x7F]')

# Control characters except tab and newline.
_CONTROL_CHARS_RE: re.Pattern[str] = re.compile(r"[\x00-\x08\x0B-\x1F\x7F-\x9F]")


# ---------------------------------------------------------------------------
# Names & paths
# ---------------------------------------------------------------------------


def safe_file_name(name: str) -> str:
    """
    Replace characters that are unsafe in file names with ``_``.

    Examples:
        >>> safe_file_name('dbo.Orders/2019.sql')
        'dbo.Orders_2019.sql'
    """
    cleaned: str = _UNSAFE_FILE_CHARS_RE.sub("_", name).strip()
    if cleaned in {"", ".", ".."}:
        cleaned = cleaned.replace(".", "_") or "_"
    return cleaned


def normalize_path(*parts: str) -> str:
    """
    Join path parts into a normalized, forward-slash, relative path.

    ``normalize_path("./tables", "dbo.A.sql")`` gives ``tables/dbo.A.sql``.
    """
    joined: str = posixpath.join(*(p.replace("\\", "/") for p in parts if p))
    normalized: str = posixpath.normpath(joined) if joined else ""
    return "" if normalized == "." else normalized.lstrip("/")


def normalize_content(content: str) -> str:
    """Trim, unify line endings and drop non-printable control characters."""
    text: str = content.strip().replace("\r\n", "\n")
    return _CONTROL_CHARS_RE.sub("", text)


# ---------------------------------------------------------------------------
# Glob filtering
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def compile_glob(pattern: str) -> Optional[re.Pattern[str]]:
    """
    Translate a glob into an anchored regex.

    ``**`` crosses directories, ``*`` and ``?`` stay within one path
    segment, ``[...]`` is a character class (``[!...]`` negated).  Returns
    None for a malformed pattern such as an unclosed bracket.

    ``fnmatch.translate`` is not used: its ``*`` also matches ``/``, so
    ``tables/*`` would also select nested files, and it has no ``**``.
    """
    out: List[str] = []
    i: int = 0
    n: int = len(pattern)
    while i < n:
        ch: str = pattern[i]
        if ch == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            end: int = pattern.find("]", i + 2 if pattern.startswith("[!", i) else i + 1)
            if end == -1:
                return None
            body: str = pattern[i + 1:end]
            if body.startswith("!"):
                body = "^" + body[1:]
            if not body or body == "^":
                return None
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = end
        else:
            out.append(re.escape(ch))
        i += 1
    try:
        return re.compile("^" + "".join(out) + "$")
    except re.error:
        return None


class FileFilter:
    """
    Include / exclude glob filter over root-relative output paths.

    A path is in scope when it matches at least one include pattern (or
    there are none) and no ``!`` exclude pattern.  Each pattern is tried
    against the full relative path and against the bare file name.
    Malformed patterns match nothing.
    """

    __slots__ = ("_includes", "_excludes")

    def __init__(self, patterns: Sequence[str] = ()) -> None:
        self._includes: List[re.Pattern[str]] = []
        self._excludes: List[re.Pattern[str]] = []
        for raw in patterns:
            negate: bool = raw.startswith("!")
            pattern: str = raw[1:] if negate else raw
            compiled: Optional[re.Pattern[str]] = compile_glob(pattern)
            if compiled is None:
                logger.warning("Ignoring malformed file pattern %r.", raw)
                if not negate:
                    # still counts as an include pattern that matches nothing
                    self._includes.append(re.compile(r"(?!)"))
                continue
            (self._excludes if negate else self._includes).append(compiled)

    @property
    def is_empty(self) -> bool:
        return not self._includes and not self._excludes

    def matches(self, relative_path: str) -> bool:
        candidates: Tuple[str, str] = (relative_path, posixpath.basename(relative_path))
        if self._includes and not any(
            p.match(c) for p in self._includes for c in candidates
        ):
            return False
        return not any(p.match(c) for p in self._excludes for c in candidates)

    def __repr__(self) -> str:
        return f"<FileFilter +{len(self._includes)} -{len(self._excludes)}>"


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str) -> int:
    """
    Atomically write *content* to *path* as UTF-8.

    Writes to a temporary file in the same directory and renames it over
    the target.  Returns the number of bytes written; OS errors propagate.
    """
    ensure_directory(path.parent)
    encoded: bytes = content.encode("utf-8")

    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.debug("Wrote %d bytes to %s", len(encoded), path)
    return len(encoded)


def read_file(path: Path) -> str:
    """Read a UTF-8 text file, tolerating a byte-order mark."""
    return path.read_text(encoding="utf-8-sig")


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string. O(n)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string. O(n)."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for pipeline steps.

    Usage:
        with Timer("render tables") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "safe_file_name",
    "normalize_path",
    "normalize_content",
    "compile_glob",
    "FileFilter",
    "ensure_directory",
    "write_file",
    "read_file",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("sqlmirror.utils loaded — %d public symbols.", len(__all__))
