# File: sqlmirror/catalog.py
"""
SQLMirror - Catalog Snapshot & Reader
======================================
The ``Catalog`` model holds every row the script engine consumes: schema
objects, columns, key / index columns, schemas and data sets.

A catalog comes from one of two places:

    1. ``load_catalog_file`` - a JSON / YAML snapshot (tests, offline runs).
    2. ``CatalogReader``     - live SQL Server system-catalog queries.  The
       independent queries run concurrently on a thread pool and are
       gathered before anything is rendered.

``CatalogReader.from_url`` builds the query callable on a SQLAlchemy engine;
any other ``sql -> list[dict]`` callable can be injected instead.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from sqlmirror.config import load_document
from sqlmirror.errors import CatalogError, ConfigurationError
from sqlmirror.grouping import rows_for_object
from sqlmirror.models import (
    ColumnInfo,
    DataSet,
    ForeignKeyColumn,
    IndexColumn,
    ObjectKind,
    ObjectStructure,
    PrimaryKeyColumn,
    SchemaInfo,
    SchemaObject,
)
from sqlmirror.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("sqlmirror.catalog")

QueryFn = Callable[[str], List[Dict[str, Any]]]


# ---------------------------------------------------------------------------
# System catalog queries (SQL Server)
# ---------------------------------------------------------------------------

OBJECTS_QUERY: str = """
SELECT
    o.object_id,
    o.type,
    s.name AS [schema],
    o.name,
    sm.definition AS [text]
FROM sys.sql_modules sm
    JOIN sys.objects o ON o.object_id = sm.object_id
    JOIN sys.schemas s ON s.schema_id = o.schema_id
WHERE o.type IN ('P', 'V', 'FN', 'TF', 'IF', 'TR')
    AND o.is_ms_shipped = 0
ORDER BY s.name, o.name
"""

TABLES_QUERY: str = """
SELECT
    o.object_id,
    o.type,
    s.name AS [schema],
    o.name
FROM sys.objects o
    JOIN sys.schemas s ON s.schema_id = o.schema_id
WHERE o.type = 'U'
    AND o.is_ms_shipped = 0
ORDER BY s.name, o.name
"""

TYPES_QUERY: str = """
SELECT
    o.object_id,
    o.type,
    s.name AS [schema],
    t.name
FROM sys.table_types t
    JOIN sys.objects o ON o.object_id = t.type_table_object_id
    JOIN sys.schemas s ON s.schema_id = t.schema_id
WHERE o.type = 'TT'
    AND t.is_user_defined = 1
ORDER BY s.name, t.name
"""

COLUMNS_QUERY: str = """
SELECT
    c.object_id,
    c.name,
    tp.name AS [datatype],
    c.max_length,
    c.is_computed,
    c.precision,
    c.scale,
    c.collation_name,
    c.is_nullable,
    dc.definition,
    ic.is_identity,
    CAST(ic.seed_value AS bigint) AS seed_value,
    CAST(ic.increment_value AS bigint) AS increment_value,
    cc.definition AS [formula]
FROM sys.columns c
    JOIN sys.types tp ON tp.user_type_id = c.user_type_id
    LEFT JOIN sys.computed_columns cc
        ON cc.object_id = c.object_id AND cc.column_id = c.column_id
    LEFT JOIN sys.default_constraints dc
        ON c.default_object_id != 0
        AND dc.parent_object_id = c.object_id
        AND dc.parent_column_id = c.column_id
    LEFT JOIN sys.identity_columns ic
        ON c.is_identity = 1
        AND ic.object_id = c.object_id
        AND ic.column_id = c.column_id
ORDER BY c.object_id, c.column_id
"""

PRIMARY_KEYS_QUERY: str = """
SELECT
    c.object_id,
    ic.is_descending_key,
    k.name,
    c.name AS [column]
FROM sys.index_columns ic
    JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
    JOIN sys.key_constraints k
        ON k.parent_object_id = ic.object_id AND k.unique_index_id = ic.index_id
    JOIN sys.objects po ON po.object_id = k.parent_object_id
WHERE ic.is_included_column = 0
    AND k.type = 'PK'
    AND po.type = 'U'
ORDER BY c.object_id, ic.key_ordinal
"""

FOREIGN_KEYS_QUERY: str = """
SELECT
    po.object_id,
    k.constraint_object_id,
    fk.is_not_trusted,
    c.name AS [column],
    rc.name AS [reference],
    fk.name,
    SCHEMA_NAME(po.schema_id) AS [schema],
    po.name AS [table],
    SCHEMA_NAME(ro.schema_id) AS [parent_schema],
    ro.name AS [parent_table],
    fk.delete_referential_action,
    fk.update_referential_action
FROM sys.foreign_key_columns k
    JOIN sys.columns rc
        ON rc.object_id = k.referenced_object_id AND rc.column_id = k.referenced_column_id
    JOIN sys.columns c
        ON c.object_id = k.parent_object_id AND c.column_id = k.parent_column_id
    JOIN sys.foreign_keys fk ON fk.object_id = k.constraint_object_id
    JOIN sys.objects ro ON ro.object_id = fk.referenced_object_id
    JOIN sys.objects po ON po.object_id = fk.parent_object_id
ORDER BY po.object_id, k.constraint_object_id, k.constraint_column_id
"""

INDEXES_QUERY: str = """
SELECT
    ic.object_id,
    ic.index_id,
    ic.is_descending_key,
    ic.is_included_column,
    i.is_unique,
    i.name,
    c.name AS [column],
    SCHEMA_NAME(ro.schema_id) AS [schema],
    ro.name AS [table]
FROM sys.index_columns ic
    JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
    JOIN sys.indexes i
        ON i.object_id = c.object_id
        AND i.index_id = ic.index_id
        AND i.is_primary_key = 0
        AND i.type = 2
    JOIN sys.objects ro ON ro.object_id = c.object_id
WHERE ro.is_ms_shipped = 0
    AND ro.type = 'U'
    AND ic.is_included_column = 0
ORDER BY ro.schema_id, ro.name, ic.index_id, ic.key_ordinal
"""

SCHEMAS_QUERY: str = """
SELECT s.name
FROM sys.schemas s
WHERE s.schema_id > 4 AND s.schema_id < 16384
ORDER BY s.name
"""

CATALOG_QUERIES: Dict[str, str] = {
    "objects": OBJECTS_QUERY,
    "tables": TABLES_QUERY,
    "types": TYPES_QUERY,
    "columns": COLUMNS_QUERY,
    "primary_keys": PRIMARY_KEYS_QUERY,
    "foreign_keys": FOREIGN_KEYS_QUERY,
    "indexes": INDEXES_QUERY,
    "schemas": SCHEMAS_QUERY,
}


# ---------------------------------------------------------------------------
# Catalog model
# ---------------------------------------------------------------------------


class Catalog(BaseModel):
    """
    Every catalog row for one database.

    ``tables`` and ``types`` rows default to type codes ``U`` / ``TT`` so
    snapshot files may omit them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    objects: List[SchemaObject] = Field(
        default_factory=list, description="Views, procedures, functions, triggers."
    )
    tables: List[SchemaObject] = Field(default_factory=list)
    types: List[SchemaObject] = Field(default_factory=list)
    columns: List[ColumnInfo] = Field(default_factory=list)
    primary_keys: List[PrimaryKeyColumn] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyColumn] = Field(default_factory=list)
    indexes: List[IndexColumn] = Field(default_factory=list)
    schemas: List[SchemaInfo] = Field(default_factory=list)
    data: List[DataSet] = Field(default_factory=list)

    _structures: Optional[Dict[int, ObjectStructure]] = PrivateAttr(default=None)

    @model_validator(mode="before")
    @classmethod
    def _default_type_codes(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, code in (("tables", "U"), ("types", "TT")):
            rows: Any = data.get(key)
            if isinstance(rows, list):
                data[key] = [
                    {"type": code, **row}
                    if isinstance(row, dict) and "kind" not in row and "type" not in row
                    else row
                    for row in rows
                ]
        return data

    @model_validator(mode="after")
    def _kinds_match_lists(self) -> "Catalog":
        for obj in self.tables:
            if obj.kind is not ObjectKind.TABLE:
                raise ValueError(f"{obj.qualified_name} in 'tables' is a {obj.kind.value}.")
        for obj in self.types:
            if obj.kind is not ObjectKind.TYPE:
                raise ValueError(f"{obj.qualified_name} in 'types' is a {obj.kind.value}.")
        for obj in self.objects:
            if obj.kind in (ObjectKind.TABLE, ObjectKind.TYPE):
                raise ValueError(
                    f"{obj.qualified_name} belongs in '{obj.kind.value}s', not 'objects'."
                )
        return self

    def all_objects(self) -> List[SchemaObject]:
        return list(self.tables) + list(self.types) + list(self.objects)

    def objects_of(self, *kinds: ObjectKind) -> List[SchemaObject]:
        """Script objects of the given kinds, catalog order."""
        return [o for o in self.objects if o.kind in kinds]

    def structure_for(self, object_id: int) -> ObjectStructure:
        """Columns, keys and indexes of one object (built once, then cached)."""
        if self._structures is None:
            self._structures = {}
        structure: Optional[ObjectStructure] = self._structures.get(object_id)
        if structure is None:
            structure = ObjectStructure(
                columns=rows_for_object(self.columns, object_id),
                primary_keys=rows_for_object(self.primary_keys, object_id),
                foreign_keys=rows_for_object(self.foreign_keys, object_id),
                indexes=[
                    r for r in rows_for_object(self.indexes, object_id)
                    if not r.is_included_column
                ],
            )
            self._structures[object_id] = structure
        return structure

    def __repr__(self) -> str:
        return (
            f"<Catalog {len(self.tables)} tables, {len(self.types)} types, "
            f"{len(self.objects)} objects, {len(self.data)} data sets>"
        )


def parse_catalog(raw: Any) -> Catalog:
    """Validate a raw mapping into a ``Catalog``."""
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Expected a catalog mapping at top level, got {type(raw).__name__}."
        )
    try:
        return Catalog.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid catalog: {exc}") from exc


def load_catalog_file(path: Path) -> Catalog:
    """
    Load a JSON / YAML catalog snapshot.

    Raises:
        ConfigurationError: missing, unparsable or invalid snapshot.
    """
    catalog: Catalog = parse_catalog(load_document(path))
    logger.info("Loaded catalog snapshot %s: %r.", path, catalog)
    return catalog


# ---------------------------------------------------------------------------
# CatalogReader
# ---------------------------------------------------------------------------


def _sqlalchemy_fetch(engine: Engine) -> QueryFn:
    def fetch(sql: str) -> List[Dict[str, Any]]:
        with engine.connect() as conn:
            return [dict(row) for row in conn.execute(text(sql)).mappings()]

    return fetch


class CatalogReader:
    """
    Runs the catalog queries and assembles a ``Catalog``.

    Usage::

        with CatalogReader.from_url("mssql+pyodbc://...") as reader:
            catalog = reader.read(data_tables=["dbo.Lookup"])

    Queries are independent and run concurrently; the first failure is
    raised as ``CatalogError`` once all of them have finished.
    """

    def __init__(
        self,
        fetch: QueryFn,
        *,
        max_workers: int = 4,
        engine: Optional[Engine] = None,
    ) -> None:
        self._fetch: QueryFn = fetch
        self._max_workers: int = max_workers
        self._engine: Optional[Engine] = engine

    @classmethod
    def from_url(cls, url: str, *, max_workers: int = 4, **engine_kwargs: Any) -> "CatalogReader":
        """Reader backed by a SQLAlchemy engine for *url*."""
        try:
            engine: Engine = create_engine(url, **engine_kwargs)
        except (SQLAlchemyError, ImportError, ValueError) as exc:
            raise ConfigurationError(f"Cannot create engine: {exc}") from exc
        return cls(_sqlalchemy_fetch(engine), max_workers=max_workers, engine=engine)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> "CatalogReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def data_query(table: str) -> str:
        return f"SELECT * FROM {table}"

    def read(self, data_tables: Sequence[str] = ()) -> Catalog:
        """
        Fetch every catalog query (plus one ``SELECT *`` per data table).

        Raises:
            CatalogError: a query failed.
            ConfigurationError: the rows do not form a valid catalog.
        """
        jobs: Dict[str, str] = dict(CATALOG_QUERIES)
        for table in data_tables:
            jobs[f"data:{table}"] = self.data_query(table)

        results: Dict[str, List[Dict[str, Any]]] = {}
        failures: List[str] = []
        with Timer("read catalog") as timer:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                futures: Dict[str, Future] = {
                    key: pool.submit(self._fetch, sql) for key, sql in jobs.items()
                }
                for key, future in futures.items():
                    try:
                        results[key] = future.result()
                    except (SQLAlchemyError, OSError) as exc:
                        logger.error("Catalog query '%s' failed: %s", key, exc)
                        failures.append(f"{key}: {exc}")

        if failures:
            raise CatalogError("; ".join(failures))

        raw: Dict[str, Any] = {key: results[key] for key in CATALOG_QUERIES}
        raw["data"] = [
            {"name": table, "rows": results[f"data:{table}"]} for table in data_tables
        ]
        catalog: Catalog = parse_catalog(raw)
        logger.info("Read catalog in %.3fs: %r.", timer.elapsed, catalog)
        return catalog


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CATALOG_QUERIES",
    "Catalog",
    "CatalogReader",
    "QueryFn",
    "load_catalog_file",
    "parse_catalog",
]

logger.debug("sqlmirror.catalog loaded.")
