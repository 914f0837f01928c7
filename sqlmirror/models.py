# File: sqlmirror/models.py
"""
SQLMirror - Core Data Models
=============================
Pydantic V2 models for the two kinds of input the mirror consumes:

    1. **Catalog rows**: schema objects, columns, key / index columns,
       schemas and data sets exactly as the system-catalog queries return
       them.  Catalog column names (``collation_name``, ``seed_value``,
       ``is_descending_key`` ...) are accepted as aliases so query results
       and snapshot files can be validated without renaming.
    2. **Configuration**: output directories, idempotency modes, include
       filters and connections.  Configuration models are frozen and are
       handed to the generator and synchronizer at construction time.

Row models ignore unknown columns; configuration models reject them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from sqlmirror.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ObjectKind(str, Enum):
    """Kinds of schema object that are scripted one file per object."""

    TABLE = "table"
    VIEW = "view"
    PROCEDURE = "procedure"
    SCALAR_FUNCTION = "scalar_function"
    TABLE_FUNCTION = "table_function"
    TRIGGER = "trigger"
    TYPE = "type"


class IdempotencyMode(str, Enum):
    """How a script guards itself against being applied twice."""

    IF_EXISTS_DROP = "if-exists-drop"
    IF_NOT_EXISTS = "if-not-exists"
    NONE = "none"
    TRUNCATE = "truncate"
    DELETE = "delete"
    DELETE_AND_RESEED = "delete-and-reseed"


OBJECT_MODES: FrozenSet[IdempotencyMode] = frozenset({
    IdempotencyMode.IF_EXISTS_DROP,
    IdempotencyMode.IF_NOT_EXISTS,
    IdempotencyMode.NONE,
})

DATA_MODES: FrozenSet[IdempotencyMode] = frozenset({
    IdempotencyMode.TRUNCATE,
    IdempotencyMode.DELETE,
    IdempotencyMode.DELETE_AND_RESEED,
    IdempotencyMode.NONE,
})

# sys.objects.type codes
TYPE_CODE_TO_KIND: Dict[str, ObjectKind] = {
    "U": ObjectKind.TABLE,
    "V": ObjectKind.VIEW,
    "P": ObjectKind.PROCEDURE,
    "FN": ObjectKind.SCALAR_FUNCTION,
    "TF": ObjectKind.TABLE_FUNCTION,
    "IF": ObjectKind.TABLE_FUNCTION,
    "TR": ObjectKind.TRIGGER,
    "TT": ObjectKind.TYPE,
}

KIND_TO_TYPE_CODE: Dict[ObjectKind, str] = {
    ObjectKind.TABLE: "U",
    ObjectKind.VIEW: "V",
    ObjectKind.PROCEDURE: "P",
    ObjectKind.SCALAR_FUNCTION: "FN",
    ObjectKind.TABLE_FUNCTION: "TF",
    ObjectKind.TRIGGER: "TR",
    ObjectKind.TYPE: "TT",
}

# Configuration key (output directory and idempotency) used by each kind.
KIND_SETTING: Dict[ObjectKind, str] = {
    ObjectKind.TABLE: "tables",
    ObjectKind.VIEW: "views",
    ObjectKind.PROCEDURE: "procs",
    ObjectKind.SCALAR_FUNCTION: "functions",
    ObjectKind.TABLE_FUNCTION: "functions",
    ObjectKind.TRIGGER: "triggers",
    ObjectKind.TYPE: "types",
}


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_ROW_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="ignore",
)

_SETTINGS_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)


def _none_as_false(value: Any) -> Any:
    """LEFT JOINed catalog flags come back as NULL when the join misses."""
    return False if value is None else value


# ---------------------------------------------------------------------------
# Catalog rows
# ---------------------------------------------------------------------------


class SchemaObject(BaseModel):
    """
    One scriptable object: table, view, procedure, function, trigger or
    table type.

    ``object_id`` is the join key for every structural row.  Either ``kind``
    or the catalog ``type`` code must be present; the other is derived.
    """

    model_config = _ROW_CONFIG

    object_id: int = Field(..., description="Catalog object id (join key).")
    kind: ObjectKind = Field(..., description="Object kind.")
    schema_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("schema_name", "schema"),
        description="Owning schema.",
    )
    name: str = Field(..., min_length=1, description="Object name.")
    text: Optional[str] = Field(
        default=None, description="Stored source body for script objects."
    )
    type_code: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("type_code", "type"),
        description="sys.objects type code (U, V, P, FN, TF, IF, TR, TT).",
    )

    @model_validator(mode="before")
    @classmethod
    def _resolve_kind(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        code: Any = data.pop("type", None)
        if data.get("type_code") is not None:
            code = data["type_code"]
        if isinstance(code, str):
            code = code.strip().upper() or None

        if data.get("kind") is None:
            if code not in TYPE_CODE_TO_KIND:
                raise ValueError(f"Unknown object type code {code!r}.")
            data["kind"] = TYPE_CODE_TO_KIND[code]
        if code is None:
            code = KIND_TO_TYPE_CODE[ObjectKind(data["kind"])]
        data["type_code"] = code
        return data

    @computed_field  # type: ignore[misc]
    @property
    def qualified_name(self) -> str:
        """Bracket-quoted ``[schema].[name]``."""
        return f"[{self.schema_name}].[{self.name}]"

    @property
    def file_name(self) -> str:
        """Unsanitized output file name ``schema.name.sql``."""
        return f"{self.schema_name}.{self.name}.sql"

    def __repr__(self) -> str:
        return f"<SchemaObject {self.kind.value} {self.qualified_name}>"


class ColumnInfo(BaseModel):
    """A single column of a table or table type."""

    model_config = _ROW_CONFIG

    object_id: int = Field(..., description="Owning object id.")
    name: str = Field(..., min_length=1, description="Column name.")
    datatype: str = Field(..., min_length=1, description="Base type name.")
    max_length: Optional[int] = Field(
        default=None, description="Storage length in bytes, -1 for (max)."
    )
    precision: Optional[int] = Field(default=None, ge=0)
    scale: Optional[int] = Field(default=None, ge=0)
    is_computed: bool = Field(default=False)
    formula: Optional[str] = Field(
        default=None, description="Definition of a computed column."
    )
    collation: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("collation", "collation_name")
    )
    is_nullable: bool = Field(default=True)
    default_expr: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("default_expr", "definition")
    )
    is_identity: bool = Field(default=False)
    seed: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("seed", "seed_value")
    )
    increment: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("increment", "increment_value")
    )

    @field_validator("is_computed", "is_identity", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> Any:
        return _none_as_false(v)

    def __repr__(self) -> str:
        return f"<ColumnInfo {self.name} {self.datatype}>"


class KeyColumn(BaseModel):
    """
    One column row of a named key, foreign key or index.

    Row order within a constraint is the key's column order.
    """

    model_config = _ROW_CONFIG

    object_id: int = Field(..., description="Owning table id.")
    constraint_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("constraint_name", "name"),
    )
    column: str = Field(..., min_length=1)


class PrimaryKeyColumn(KeyColumn):
    """Primary-key column row."""

    is_descending: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_descending", "is_descending_key"),
    )

    @field_validator("is_descending", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> Any:
        return _none_as_false(v)


class ForeignKeyColumn(KeyColumn):
    """Foreign-key column row; ``reference`` is the referenced column."""

    reference: str = Field(..., min_length=1)
    schema_name: str = Field(
        ..., validation_alias=AliasChoices("schema_name", "schema")
    )
    table: str = Field(..., description="Referencing table.")
    parent_schema: str = Field(...)
    parent_table: str = Field(..., description="Referenced table.")
    delete_action: int = Field(
        default=0,
        validation_alias=AliasChoices("delete_action", "delete_referential_action"),
    )
    update_action: int = Field(
        default=0,
        validation_alias=AliasChoices("update_action", "update_referential_action"),
    )
    is_not_trusted: bool = Field(default=False)

    @field_validator("delete_action", "update_action", mode="before")
    @classmethod
    def _actions(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("is_not_trusted", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> Any:
        return _none_as_false(v)


class IndexColumn(KeyColumn):
    """Non-clustered index column row."""

    is_descending: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_descending", "is_descending_key"),
    )
    is_unique: bool = Field(default=False)
    is_included_column: bool = Field(default=False)
    schema_name: str = Field(
        ..., validation_alias=AliasChoices("schema_name", "schema")
    )
    table: str = Field(...)

    @field_validator("is_descending", "is_unique", "is_included_column", mode="before")
    @classmethod
    def _flags(cls, v: Any) -> Any:
        return _none_as_false(v)


class ObjectStructure(BaseModel):
    """Structural rows belonging to one object, in catalog order."""

    model_config = _ROW_CONFIG

    columns: List[ColumnInfo] = Field(default_factory=list)
    primary_keys: List[PrimaryKeyColumn] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyColumn] = Field(default_factory=list)
    indexes: List[IndexColumn] = Field(default_factory=list)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]


class SchemaInfo(BaseModel):
    """A database schema (namespace)."""

    model_config = _ROW_CONFIG

    name: str = Field(..., min_length=1)

    @property
    def file_name(self) -> str:
        return f"{self.name}.sql"


class DataSet(BaseModel):
    """Rows of one table selected for data scripting, columns in order."""

    model_config = _ROW_CONFIG

    name: str = Field(..., min_length=1, description="Table name as configured.")
    rows: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def file_name(self) -> str:
        return f"{self.name}.sql"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class OutputConfig(BaseModel):
    """
    Output root and per-kind subdirectories.

    A subdirectory set to ``false`` or ``""`` disables scripting that kind.
    An empty ``root`` means "use the connection name".
    """

    model_config = _SETTINGS_CONFIG

    root: str = Field(default="./_sql-database")
    data: Optional[str] = Field(default="./data")
    functions: Optional[str] = Field(default="./functions")
    procs: Optional[str] = Field(default="./stored-procedures")
    schemas: Optional[str] = Field(default="./schemas")
    tables: Optional[str] = Field(default="./tables")
    triggers: Optional[str] = Field(default="./triggers")
    types: Optional[str] = Field(default="./types")
    views: Optional[str] = Field(default="./views")

    @field_validator(
        "data", "functions", "procs", "schemas", "tables", "triggers", "types", "views",
        mode="before",
    )
    @classmethod
    def _disabled(cls, v: Any) -> Any:
        if v is False or v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @field_validator("root", mode="before")
    @classmethod
    def _root(cls, v: Any) -> Any:
        return "" if v is None or v is False else v

    def directory(self, setting: str) -> Optional[str]:
        """Subdirectory for a setting key (``tables``, ``data`` ...)."""
        return getattr(self, setting)


class IdempotencyConfig(BaseModel):
    """Idempotency mode per object kind."""

    model_config = _SETTINGS_CONFIG

    data: IdempotencyMode = Field(default=IdempotencyMode.TRUNCATE)
    functions: IdempotencyMode = Field(default=IdempotencyMode.IF_EXISTS_DROP)
    procs: IdempotencyMode = Field(default=IdempotencyMode.IF_EXISTS_DROP)
    tables: IdempotencyMode = Field(default=IdempotencyMode.IF_NOT_EXISTS)
    triggers: IdempotencyMode = Field(default=IdempotencyMode.IF_EXISTS_DROP)
    types: IdempotencyMode = Field(default=IdempotencyMode.IF_NOT_EXISTS)
    views: IdempotencyMode = Field(default=IdempotencyMode.IF_EXISTS_DROP)

    @field_validator("data", mode="before")
    @classmethod
    def _falsy_data(cls, v: Any) -> Any:
        return IdempotencyMode.NONE if v is False or v is None else v

    @field_validator(
        "functions", "procs", "tables", "triggers", "types", "views", mode="before"
    )
    @classmethod
    def _falsy_objects(cls, v: Any) -> Any:
        return IdempotencyMode.NONE if v is False or v is None else v

    @field_validator("data")
    @classmethod
    def _data_mode(cls, v: IdempotencyMode) -> IdempotencyMode:
        if v not in DATA_MODES:
            raise ValueError(
                f"'{v.value}' is not a data mode; expected one of "
                f"{sorted(m.value for m in DATA_MODES)}."
            )
        return v

    @field_validator("functions", "procs", "tables", "triggers", "types", "views")
    @classmethod
    def _object_mode(cls, v: IdempotencyMode) -> IdempotencyMode:
        if v not in OBJECT_MODES:
            raise ValueError(
                f"'{v.value}' only applies to data; expected one of "
                f"{sorted(m.value for m in OBJECT_MODES)}."
            )
        return v

    def mode(self, setting: str) -> IdempotencyMode:
        return getattr(self, setting)


class Connection(BaseModel):
    """A named database connection (SQLAlchemy URL)."""

    model_config = _SETTINGS_CONFIG

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1, description="SQLAlchemy database URL.")

    def __repr__(self) -> str:
        return f"<Connection {self.name}>"


class MirrorConfig(BaseModel):
    """
    Complete, immutable run configuration.

    ``files`` holds include globs (``!`` prefix excludes); ``data`` lists
    tables whose rows are scripted.
    """

    model_config = _SETTINGS_CONFIG

    connections: List[Connection] = Field(default_factory=list)
    files: List[str] = Field(default_factory=list)
    data: List[str] = Field(default_factory=list)
    output: OutputConfig = Field(default_factory=OutputConfig)
    idempotency: IdempotencyConfig = Field(default_factory=IdempotencyConfig)

    @model_validator(mode="after")
    def _unique_connection_names(self) -> "MirrorConfig":
        names: List[str] = [c.name for c in self.connections]
        if len(names) != len(set(names)):
            dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate connection names: {dupes}")
        return self

    def get_connection(self, name: Optional[str] = None) -> Connection:
        """Return the named connection, or the first one when *name* is None."""
        if not self.connections:
            raise ConfigurationError("No connections are configured.")
        if name is None:
            return self.connections[0]
        for conn in self.connections:
            if conn.name == name:
                return conn
        raise ConfigurationError(
            f"Connection '{name}' not found; available: "
            f"{[c.name for c in self.connections]}"
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ObjectKind",
    "IdempotencyMode",
    "OBJECT_MODES",
    "DATA_MODES",
    "TYPE_CODE_TO_KIND",
    "KIND_TO_TYPE_CODE",
    "KIND_SETTING",
    "SchemaObject",
    "ColumnInfo",
    "KeyColumn",
    "PrimaryKeyColumn",
    "ForeignKeyColumn",
    "IndexColumn",
    "ObjectStructure",
    "SchemaInfo",
    "DataSet",
    "OutputConfig",
    "IdempotencyConfig",
    "Connection",
    "MirrorConfig",
]

logger.debug("sqlmirror.models loaded — %d public symbols.", len(__all__))
