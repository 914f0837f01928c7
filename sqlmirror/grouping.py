# File: sqlmirror/grouping.py
"""
SQLMirror - Constraint Grouper
===============================
Catalog queries return keys, foreign keys and indexes one row per column.
This module folds those rows into one ``ConstraintGroup`` per constraint
name, keeping groups in first-seen order and columns in row order.  Column
order inside a group is the key order in the generated SQL.

Complexity: O(n) in the number of rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Sequence, Tuple, TypeVar

from sqlmirror.models import KeyColumn

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.grouping")

RowT = TypeVar("RowT", bound=KeyColumn)


@dataclass(frozen=True, slots=True)
class ConstraintGroup(Generic[RowT]):
    """All column rows of one named constraint, in catalog order."""

    name: str
    rows: Tuple[RowT, ...]

    @property
    def first(self) -> RowT:
        return self.rows[0]

    @property
    def columns(self) -> List[str]:
        return [r.column for r in self.rows]

    def __len__(self) -> int:
        return len(self.rows)


def rows_for_object(rows: Iterable[RowT], object_id: int) -> List[RowT]:
    """Rows belonging to *object_id*, order preserved."""
    return [r for r in rows if r.object_id == object_id]


def group_constraints(rows: Sequence[RowT]) -> List[ConstraintGroup[RowT]]:
    """
    Group key-column rows by constraint name.

    Rows must already be filtered to a single object (see
    ``rows_for_object``); rows with different names are never merged even
    when they interleave.

    Rows named ``a, b, a`` yield groups ``a`` (two rows) then ``b``.
    """
    buckets: Dict[str, List[RowT]] = {}
    for row in rows:
        buckets.setdefault(row.constraint_name, []).append(row)

    groups: List[ConstraintGroup[RowT]] = [
        ConstraintGroup(name=name, rows=tuple(members))
        for name, members in buckets.items()
    ]
    logger.debug(
        "Grouped %d row(s) into %d constraint(s).", len(rows), len(groups)
    )
    return groups


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ConstraintGroup",
    "group_constraints",
    "rows_for_object",
]

logger.debug("sqlmirror.grouping loaded.")
