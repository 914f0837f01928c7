# File: sqlmirror/templates.py
"""
SQLMirror - Script Template Engine
===================================
Turns catalog rows into idempotent T-SQL script text, one file body per
object.

    1. Idempotency prefix (drop-and-recreate or existence guard)
    2. Script objects: views, procedures, functions, triggers (stored text)
    3. Tables: CREATE TABLE, foreign keys, guarded non-clustered indexes
    4. Table types: CREATE TYPE ... AS TABLE
    5. Schemas and table data

**Output contract:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Lines end with ``\\n``; output is a pure function of its input, so
      rendering the same rows twice yields identical text.
    - Sections of a table script are separated by exactly one blank line.

Rendering problems raise ``RenderError`` naming the object.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlmirror.errors import RenderError
from sqlmirror.grouping import ConstraintGroup, group_constraints
from sqlmirror.models import (
    KIND_SETTING,
    ColumnInfo,
    DataSet,
    ForeignKeyColumn,
    IdempotencyMode,
    IndexColumn,
    MirrorConfig,
    ObjectKind,
    ObjectStructure,
    PrimaryKeyColumn,
    SchemaInfo,
    SchemaObject,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "    "
_BATCH_SEPARATOR: str = "GO"

_DROP_KEYWORD: Dict[ObjectKind, str] = {
    ObjectKind.TABLE: "TABLE",
    ObjectKind.VIEW: "VIEW",
    ObjectKind.PROCEDURE: "PROCEDURE",
    ObjectKind.SCALAR_FUNCTION: "FUNCTION",
    ObjectKind.TABLE_FUNCTION: "FUNCTION",
    ObjectKind.TRIGGER: "TRIGGER",
    ObjectKind.TYPE: "TYPE",
}

# sys.foreign_keys referential action codes
_REFERENTIAL_ACTIONS: Dict[int, str] = {
    1: "CASCADE",
    2: "SET NULL",
    3: "SET DEFAULT",
}

_BYTE_LENGTH_TYPES = frozenset({"varchar", "char", "varbinary", "binary", "text"})
_WIDE_CHAR_TYPES = frozenset({"nvarchar", "nchar", "ntext"})
_FRACTIONAL_TIME_TYPES = frozenset({"datetime2", "time2", "datetimeoffset"})


# ---------------------------------------------------------------------------
# Column / value helpers
# ---------------------------------------------------------------------------


def size_qualifier(column: ColumnInfo) -> str:
    """
    Length / precision suffix for a column's data type.

    Examples:
        nvarchar, max_length=100  -> "(50)"
        varchar,  max_length=-1   -> "(max)"
        decimal,  18 / 4          -> "(18, 4)"

    Raises:
        RenderError: a length, precision or scale the type needs is missing.
    """
    datatype: str = column.datatype.lower()
    if datatype in _BYTE_LENGTH_TYPES or datatype in _WIDE_CHAR_TYPES:
        _require_facets(column, "max_length")
        if column.max_length == -1:
            return "(max)"
        if datatype in _WIDE_CHAR_TYPES:
            return f"({column.max_length // 2})"
        return f"({column.max_length})"
    if datatype in _FRACTIONAL_TIME_TYPES:
        _require_facets(column, "scale")
        return f"({column.scale})"
    if datatype == "decimal":
        _require_facets(column, "precision", "scale")
        return f"({column.precision}, {column.scale})"
    return ""


def _require_facets(column: ColumnInfo, *facets: str) -> None:
    missing: List[str] = [f for f in facets if getattr(column, f) is None]
    if missing:
        raise RenderError(
            f"[{column.name}]",
            f"{column.datatype} needs {' and '.join(missing)}",
        )


def column_clause(column: ColumnInfo) -> str:
    """Render one column definition (without trailing comma)."""
    if column.is_computed:
        return f"[{column.name}] AS {column.formula}"

    parts: List[str] = [f"[{column.name}] {column.datatype}{size_qualifier(column)}"]
    if column.collation:
        parts.append(f"COLLATE {column.collation}")
    parts.append("NULL" if column.is_nullable else "NOT NULL")
    if column.default_expr:
        parts.append(f"DEFAULT {column.default_expr}")
    if column.is_identity:
        seed: int = column.seed if column.seed is not None else 0
        increment: int = column.increment if column.increment is not None else 1
        parts.append(f"IDENTITY({seed}, {increment})")
    return " ".join(parts)


def sql_literal(value: Any) -> str:
    """
    Render a Python value as a T-SQL literal for data scripts.

    bool is tested before numbers because ``bool`` subclasses ``int``.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, str):
        escaped: str = value.replace("'", "''")
        return f"'{escaped}'"
    if isinstance(value, (datetime, date, time)):
        return f"'{value.isoformat()}'"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex().upper()
    return str(value)


def _ordered_columns(rows: Sequence[Any]) -> str:
    return ", ".join(f"[{r.column}] {'DESC' if r.is_descending else 'ASC'}" for r in rows)


# ---------------------------------------------------------------------------
# ScriptGenerator
# ---------------------------------------------------------------------------

RenderFn = Callable[[SchemaObject, ObjectStructure], str]


class ScriptGenerator:
    """
    Stateless script engine bound to one immutable ``MirrorConfig``.

    ``render`` dispatches on ``SchemaObject.kind`` through a kind ->
    renderer table; each renderer receives the object and its structural
    rows and returns the body, to which the idempotency prefix is
    prepended.

    Thread-safe: no mutable instance state.
    """

    def __init__(self, config: MirrorConfig) -> None:
        self._config: MirrorConfig = config
        self._renderers: Dict[ObjectKind, RenderFn] = {
            ObjectKind.TABLE: self._table_body,
            ObjectKind.TYPE: self._type_body,
            ObjectKind.VIEW: self._script_body,
            ObjectKind.PROCEDURE: self._script_body,
            ObjectKind.SCALAR_FUNCTION: self._script_body,
            ObjectKind.TABLE_FUNCTION: self._script_body,
            ObjectKind.TRIGGER: self._script_body,
        }
        logger.debug("ScriptGenerator initialised (%s).", config.idempotency)

    # ===================================================================
    # Public API
    # ===================================================================

    def mode_for(self, kind: ObjectKind) -> IdempotencyMode:
        """Configured idempotency mode for an object kind."""
        return self._config.idempotency.mode(KIND_SETTING[kind])

    def render(
        self,
        obj: SchemaObject,
        structure: Optional[ObjectStructure] = None,
        mode: Optional[IdempotencyMode] = None,
    ) -> str:
        """
        Render the complete script for one object.

        Args:
            obj: The object to script.
            structure: Its columns / keys / indexes (tables and types).
            mode: Overrides the configured mode for the object's kind.

        Raises:
            RenderError: the rows cannot produce a valid script.
        """
        effective: IdempotencyMode = mode if mode is not None else self.mode_for(obj.kind)
        body: str = self._renderers[obj.kind](obj, structure or ObjectStructure())
        prefix: List[str] = self.idempotency_prefix(obj, effective)
        logger.debug("Rendered %s (%s).", obj.qualified_name, effective.value)
        return "\n".join(prefix + [body])

    def idempotency_prefix(self, obj: SchemaObject, mode: IdempotencyMode) -> List[str]:
        """Lines placed before the body for *mode* (empty for ``none``)."""
        if mode is IdempotencyMode.NONE:
            return []
        if mode is IdempotencyMode.IF_EXISTS_DROP:
            return [
                f"IF EXISTS {self._existence_check(obj)}",
                f"DROP {_DROP_KEYWORD[obj.kind]} {obj.qualified_name}",
                _BATCH_SEPARATOR,
            ]
        if mode is IdempotencyMode.IF_NOT_EXISTS:
            return [f"IF NOT EXISTS {self._existence_check(obj)}"]
        raise RenderError(obj.qualified_name, f"mode '{mode.value}' only applies to data")

    def render_schema(self, schema: SchemaInfo) -> str:
        """Guarded ``CREATE SCHEMA`` script."""
        name: str = schema.name.replace("'", "''")
        bracketed: str = name.replace("]", "]]")
        return "\n".join([
            f"IF NOT EXISTS (SELECT 1 FROM sys.schemas WHERE name = '{name}')",
            f"EXEC('CREATE SCHEMA [{bracketed}]')",
        ])

    def render_data(self, data: DataSet, mode: Optional[IdempotencyMode] = None) -> str:
        """
        Script a table's rows as INSERT statements.

        The pre-statement depends on the data mode; inserts are wrapped in
        ``SET IDENTITY_INSERT ON/OFF``.
        """
        effective: IdempotencyMode = mode if mode is not None else self._config.idempotency.data
        table: str = data.name
        lines: List[str] = []

        if effective is IdempotencyMode.TRUNCATE:
            lines.append(f"TRUNCATE TABLE {table}")
        elif effective is IdempotencyMode.DELETE:
            lines.append(f"DELETE FROM {table}")
        elif effective is IdempotencyMode.DELETE_AND_RESEED:
            lines.append(f"DELETE FROM {table}")
            quoted: str = table.replace("'", "''")
            lines.append(f"DBCC CHECKIDENT ('{quoted}', RESEED, 0)")
        elif effective is not IdempotencyMode.NONE:
            raise RenderError(table, f"mode '{effective.value}' does not apply to data")
        if lines:
            lines.append("")

        lines.append(f"SET IDENTITY_INSERT {table} ON")
        lines.append("")
        for row in data.rows:
            columns: str = ", ".join(row.keys())
            values: str = ", ".join(sql_literal(v) for v in row.values())
            lines.append(f"INSERT INTO {table} ({columns}) VALUES ({values})")
        if data.rows:
            lines.append("")
        lines.append(f"SET IDENTITY_INSERT {table} OFF")

        logger.debug("Rendered data for %s: %d row(s).", table, len(data.rows))
        return "\n".join(lines)

    # ===================================================================
    # Existence checks
    # ===================================================================

    @staticmethod
    def _existence_check(obj: SchemaObject) -> str:
        if obj.kind is ObjectKind.TYPE:
            return (
                "(SELECT 1 FROM sys.table_types AS t "
                "JOIN sys.schemas s ON t.schema_id = s.schema_id "
                f"WHERE t.name = '{obj.name}' AND s.name = '{obj.schema_name}')"
            )
        return (
            "(SELECT 1 FROM sys.objects WHERE object_id = "
            f"OBJECT_ID('{obj.qualified_name}') AND type = '{obj.type_code}')"
        )

    # ===================================================================
    # Bodies
    # ===================================================================

    @staticmethod
    def _script_body(obj: SchemaObject, _structure: ObjectStructure) -> str:
        if obj.text is None or not obj.text.strip():
            raise RenderError(obj.qualified_name, "object has no stored definition")
        return obj.text

    def _type_body(self, obj: SchemaObject, structure: ObjectStructure) -> str:
        if not structure.columns:
            raise RenderError(obj.qualified_name, "table type has no columns")
        clauses: List[str] = self._column_clauses(obj, structure.columns)
        return "\n".join(
            [f"CREATE TYPE {obj.qualified_name} AS TABLE", "("]
            + [",\n".join(clauses)]
            + [")"]
        )

    def _table_body(self, obj: SchemaObject, structure: ObjectStructure) -> str:
        if not structure.columns:
            raise RenderError(obj.qualified_name, "table has no columns")
        known: List[str] = structure.column_names

        clauses: List[str] = self._column_clauses(obj, structure.columns)
        pk_groups = group_constraints(structure.primary_keys)
        if len(pk_groups) > 1:
            raise RenderError(
                obj.qualified_name,
                f"multiple primary keys: {[g.name for g in pk_groups]}",
            )
        for group in pk_groups:
            self._require_columns(obj, group.name, group.columns, known)
            clauses.append(_INDENT + self._primary_key_clause(group))

        sections: List[str] = [
            "\n".join([f"CREATE TABLE {obj.qualified_name}", "(", ",\n".join(clauses), ")"])
        ]

        fk_blocks: List[str] = []
        for group in group_constraints(structure.foreign_keys):
            self._require_columns(obj, group.name, group.columns, known)
            fk_blocks.append(self._foreign_key_block(obj, group))
        if fk_blocks:
            sections.append("\n".join(fk_blocks))

        index_blocks: List[str] = []
        for group in group_constraints(structure.indexes):
            self._require_columns(obj, group.name, group.columns, known)
            index_blocks.append(self._index_block(group))
        if index_blocks:
            sections.append("\n".join(index_blocks))

        return "\n\n".join(sections)

    # ===================================================================
    # Table sections
    # ===================================================================

    @staticmethod
    def _column_clauses(obj: SchemaObject, columns: Sequence[ColumnInfo]) -> List[str]:
        try:
            return [_INDENT + column_clause(c) for c in columns]
        except RenderError as exc:
            raise RenderError(
                obj.qualified_name, f"column {exc.object_name}: {exc.reason}"
            ) from exc

    @staticmethod
    def _require_columns(
        obj: SchemaObject, constraint: str, columns: Sequence[str], known: Sequence[str]
    ) -> None:
        missing: List[str] = [c for c in columns if c not in known]
        if missing:
            raise RenderError(
                obj.qualified_name,
                f"constraint [{constraint}] references unknown column(s) {missing}",
            )

    @staticmethod
    def _primary_key_clause(group: ConstraintGroup[PrimaryKeyColumn]) -> str:
        return f"CONSTRAINT [{group.name}] PRIMARY KEY ({_ordered_columns(group.rows)})"

    @staticmethod
    def _foreign_key_block(obj: SchemaObject, group: ConstraintGroup[ForeignKeyColumn]) -> str:
        first: ForeignKeyColumn = group.first
        parents = {(r.parent_schema, r.parent_table) for r in group.rows}
        if len(parents) > 1:
            raise RenderError(
                obj.qualified_name,
                f"foreign key [{group.name}] references more than one table",
            )

        child: str = f"[{first.schema_name}].[{first.table}]"
        parent: str = f"[{first.parent_schema}].[{first.parent_table}]"
        columns: str = ", ".join(f"[{r.column}]" for r in group.rows)
        references: str = ", ".join(f"[{r.reference}]" for r in group.rows)
        check: str = "NOCHECK" if first.is_not_trusted else "CHECK"

        statement: str = (
            f"ALTER TABLE {child} WITH {check} ADD CONSTRAINT [{group.name}] "
            f"FOREIGN KEY ({columns}) REFERENCES {parent} ({references})"
        )
        if first.delete_action in _REFERENTIAL_ACTIONS:
            statement += f" ON DELETE {_REFERENTIAL_ACTIONS[first.delete_action]}"
        if first.update_action in _REFERENTIAL_ACTIONS:
            statement += f" ON UPDATE {_REFERENTIAL_ACTIONS[first.update_action]}"

        return "\n".join([statement, f"ALTER TABLE {child} CHECK CONSTRAINT [{group.name}]"])

    @staticmethod
    def _index_block(group: ConstraintGroup[IndexColumn]) -> str:
        first: IndexColumn = group.first
        table: str = f"[{first.schema_name}].[{first.table}]"
        unique: str = "UNIQUE " if first.is_unique else ""
        return "\n".join([
            "IF NOT EXISTS (SELECT 1 FROM sys.indexes WHERE object_id = "
            f"OBJECT_ID('{table}') AND name = '{group.name}')",
            f"CREATE {unique}NONCLUSTERED INDEX [{group.name}] ON {table} "
            f"({_ordered_columns(group.rows)})",
        ])


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ScriptGenerator",
    "size_qualifier",
    "column_clause",
    "sql_literal",
]

logger.debug("sqlmirror.templates loaded.")
