"""
tests/test_grouping.py
Unit tests for sqlmirror.grouping.

Tests cover:
- first-seen ordering of constraint groups
- column order within a group
- interleaved rows of different constraints
- filtering rows by owning object
"""

from __future__ import annotations

from typing import List

from sqlmirror.grouping import ConstraintGroup, group_constraints, rows_for_object
from sqlmirror.models import IndexColumn, PrimaryKeyColumn


def _pk(name: str, column: str, object_id: int = 1) -> PrimaryKeyColumn:
    return PrimaryKeyColumn(object_id=object_id, name=name, column=column)


def _ix(name: str, column: str, object_id: int = 1) -> IndexColumn:
    return IndexColumn(
        object_id=object_id, name=name, column=column, schema="dbo", table="T"
    )


class TestGroupConstraints:
    def test_empty_input_gives_no_groups(self) -> None:
        assert group_constraints([]) == []

    def test_single_row_single_group(self) -> None:
        groups = group_constraints([_pk("PK_T", "Id")])
        assert len(groups) == 1
        assert groups[0].name == "PK_T"
        assert groups[0].columns == ["Id"]

    def test_groups_in_first_seen_order(self) -> None:
        rows = [_ix("IX_B", "X"), _ix("IX_A", "Y"), _ix("IX_C", "Z")]
        assert [g.name for g in group_constraints(rows)] == ["IX_B", "IX_A", "IX_C"]

    def test_columns_keep_catalog_order(self) -> None:
        rows = [_ix("IX_1", "C"), _ix("IX_1", "A"), _ix("IX_1", "B")]
        (group,) = group_constraints(rows)
        assert group.columns == ["C", "A", "B"]
        assert len(group) == 3

    def test_interleaved_rows_are_merged_per_name(self) -> None:
        rows = [_ix("a", "c1"), _ix("b", "c2"), _ix("a", "c3")]
        groups = group_constraints(rows)
        assert [g.name for g in groups] == ["a", "b"]
        assert groups[0].columns == ["c1", "c3"]
        assert groups[1].columns == ["c2"]

    def test_first_row_carries_constraint_attributes(self) -> None:
        rows = [
            IndexColumn(object_id=1, name="UX", column="A", is_unique=True,
                        schema="dbo", table="T"),
            IndexColumn(object_id=1, name="UX", column="B", is_unique=True,
                        schema="dbo", table="T"),
        ]
        (group,) = group_constraints(rows)
        assert group.first.is_unique is True
        assert group.first.column == "A"

    def test_group_is_immutable(self) -> None:
        (group,) = group_constraints([_pk("PK", "Id")])
        assert isinstance(group, ConstraintGroup)
        assert isinstance(group.rows, tuple)


class TestRowsForObject:
    def test_filters_and_preserves_order(self) -> None:
        rows: List[PrimaryKeyColumn] = [
            _pk("PK_A", "x", object_id=1),
            _pk("PK_B", "y", object_id=2),
            _pk("PK_A", "z", object_id=1),
        ]
        selected = rows_for_object(rows, 1)
        assert [r.column for r in selected] == ["x", "z"]

    def test_unknown_object_gives_empty_list(self) -> None:
        assert rows_for_object([_pk("PK", "Id", object_id=1)], 99) == []
