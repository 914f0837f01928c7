# File: sqlmirror/validators.py
"""
SQLMirror - Catalog Validators
===============================
Pydantic validates each catalog row on its own.  This module adds the
**cross-row checks** that must hold before scripts are rendered:

    - object ids are unique across schema objects
    - structural rows point at a known table / type
    - key, foreign-key and index columns exist on their table
    - a foreign key references a known table and known columns
    - script objects carry a definition
    - configured data tables have been fetched

Each check is a pure function returning a ``ValidationResult``;
``validate_catalog`` runs them all.

Usage:
    from sqlmirror.validators import validate_catalog
    result = validate_catalog(catalog, config)
    if result.has_errors:
        ...
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set, Tuple

from sqlmirror.models import MirrorConfig, ObjectKind

if TYPE_CHECKING:
    from sqlmirror.catalog import Catalog

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.validators")

_SCRIPT_KINDS = frozenset({
    ObjectKind.VIEW,
    ObjectKind.PROCEDURE,
    ObjectKind.SCALAR_FUNCTION,
    ObjectKind.TABLE_FUNCTION,
    ObjectKind.TRIGGER,
})

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """Lightweight issue descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_warning]

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_object_ids(catalog: "Catalog") -> ValidationResult:
    """Every object id identifies exactly one schema object."""
    result: ValidationResult = ValidationResult()
    counts: Counter = Counter(o.object_id for o in catalog.all_objects())
    for object_id, count in counts.items():
        if count > 1:
            names: List[str] = [
                o.qualified_name for o in catalog.all_objects() if o.object_id == object_id
            ]
            result.add_error(
                "DUPLICATE_OBJECT_ID",
                f"Object id {object_id} is used by {count} objects: {names}.",
                {"object_id": object_id},
            )
    return result


def validate_structural_rows(catalog: "Catalog") -> ValidationResult:
    """
    Structural rows must belong to a table (or, for columns, a table type).

    Primary-key and index rows of table types are ignored silently; table
    types script their columns only.  Other orphan columns, primary keys
    and indexes (views, indexed views) are warnings.  A foreign key always
    has a user table as its child, so an orphan foreign-key row is an error.
    """
    result: ValidationResult = ValidationResult()
    tables: Set[int] = {o.object_id for o in catalog.tables}
    with_columns: Set[int] = tables | {o.object_id for o in catalog.types}

    orphan_columns: Set[int] = {c.object_id for c in catalog.columns} - with_columns
    if orphan_columns:
        result.add_warning(
            "ORPHAN_COLUMNS",
            f"Columns reference {len(orphan_columns)} object id(s) that are not "
            f"scripted as tables or types; they are ignored.",
            {"object_ids": sorted(orphan_columns)[:20]},
        )

    orphan_keys: List[str] = sorted({
        r.constraint_name
        for r in list(catalog.primary_keys) + list(catalog.indexes)
        if r.object_id not in with_columns
    })
    if orphan_keys:
        result.add_warning(
            "ORPHAN_KEY_ROWS",
            f"{len(orphan_keys)} primary key / index name(s) belong to objects "
            f"that are not scripted as tables; they are ignored.",
            {"constraints": orphan_keys[:20]},
        )

    for row in catalog.foreign_keys:
        if row.object_id not in tables:
            result.add_error(
                "ORPHAN_KEY_ROW",
                f"Foreign key [{row.constraint_name}] references unknown "
                f"table id {row.object_id}.",
                {"constraint": row.constraint_name, "object_id": row.object_id},
            )
    return result


def validate_key_columns(catalog: "Catalog") -> ValidationResult:
    """Key and index columns exist on the table that owns them."""
    result: ValidationResult = ValidationResult()
    for table in catalog.tables:
        structure = catalog.structure_for(table.object_id)
        known: Set[str] = set(structure.column_names)
        rows: List[Any] = (
            list(structure.primary_keys) + list(structure.foreign_keys) + list(structure.indexes)
        )
        for row in rows:
            if row.column not in known:
                result.add_error(
                    "UNKNOWN_KEY_COLUMN",
                    f"Constraint [{row.constraint_name}] on {table.qualified_name} "
                    f"uses column '{row.column}' which the table does not have.",
                    {"table": table.qualified_name, "column": row.column},
                )
    return result


def validate_foreign_key_targets(catalog: "Catalog") -> ValidationResult:
    """
    Referenced tables and columns exist when the referenced table is part
    of the catalog.  References to tables outside it are warnings.
    """
    result: ValidationResult = ValidationResult()
    by_name: Dict[Tuple[str, str], int] = {
        (o.schema_name, o.name): o.object_id for o in catalog.tables
    }
    for row in catalog.foreign_keys:
        target: Tuple[str, str] = (row.parent_schema, row.parent_table)
        ctx: Dict[str, Any] = {
            "constraint": row.constraint_name,
            "references": f"[{row.parent_schema}].[{row.parent_table}]",
        }
        if target not in by_name:
            result.add_warning(
                "FK_TARGET_NOT_IN_CATALOG",
                f"Foreign key [{row.constraint_name}] references "
                f"[{row.parent_schema}].[{row.parent_table}] which is not in the catalog.",
                ctx,
            )
            continue
        parent_columns: Set[str] = set(catalog.structure_for(by_name[target]).column_names)
        if row.reference not in parent_columns:
            result.add_error(
                "FK_UNKNOWN_REFERENCED_COLUMN",
                f"Foreign key [{row.constraint_name}] references column "
                f"'{row.reference}' which [{row.parent_schema}].[{row.parent_table}] "
                f"does not have.",
                ctx,
            )
    return result


def validate_definitions(catalog: "Catalog") -> ValidationResult:
    """Views, procedures, functions and triggers carry their source text."""
    result: ValidationResult = ValidationResult()
    for obj in catalog.objects:
        if obj.kind in _SCRIPT_KINDS and not (obj.text or "").strip():
            result.add_error(
                "MISSING_DEFINITION",
                f"{obj.qualified_name} has no stored definition "
                f"(encrypted or insufficient permissions?).",
                {"object": obj.qualified_name},
            )
    return result


def validate_data_sets(catalog: "Catalog", config: MirrorConfig) -> ValidationResult:
    """Every table listed under ``data`` was fetched."""
    result: ValidationResult = ValidationResult()
    fetched: Set[str] = {d.name for d in catalog.data}
    for name in config.data:
        if name not in fetched:
            result.add_warning(
                "DATA_NOT_FETCHED",
                f"Data for '{name}' is configured but missing from the catalog.",
                {"table": name},
            )
    return result


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

CatalogCheck = Callable[["Catalog"], ValidationResult]


def validate_catalog(catalog: "Catalog", config: MirrorConfig) -> ValidationResult:
    """
    **Master validation entry point.**

    Complexity: linear in the number of catalog rows.
    """
    result: ValidationResult = ValidationResult()
    checks: List[CatalogCheck] = [
        validate_object_ids,
        validate_structural_rows,
        validate_key_columns,
        validate_foreign_key_targets,
        validate_definitions,
    ]
    for check in checks:
        logger.debug("Running validator: %s", check.__name__)
        result.merge(check(catalog))
    result.merge(validate_data_sets(catalog, config))

    if result.has_errors:
        logger.error("Validation FAILED. %s", result.summary())
    else:
        logger.info("Validation PASSED. %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_object_ids",
    "validate_structural_rows",
    "validate_key_columns",
    "validate_foreign_key_targets",
    "validate_definitions",
    "validate_data_sets",
    "validate_catalog",
]

logger.debug("sqlmirror.validators loaded.")
