# File: sqlmirror/__init__.py
"""
SQLMirror - SQL Server Schema Mirroring
========================================

Mirrors a SQL Server database's schema (tables, views, procedures,
functions, triggers, table types, schemas and selected table data) into a
tree of idempotent ``.sql`` scripts, keeps that tree in sync across runs,
and replays it against a database.

Architecture overview::

    ┌──────────────┐     ┌───────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ SchemaMirror  │────▶│ ScriptGenerator  │
    │   (cli.py)   │     │(generator.py) │     │  (templates.py)  │
    └──────────────┘     └───────┬───────┘     └──────────────────┘
                                 │
                    ┌────────────┼────────────┐
                    ▼            ▼            ▼
             ┌──────────┐ ┌───────────┐ ┌───────────┐
             │validators│ │  catalog  │ │ exporters │
             │  (.py)   │ │  (.py)    │ │ + cache   │
             └──────────┘ └───────────┘ └───────────┘

Usage::

    # As a library
    from sqlmirror import SchemaMirror, load_catalog_file, load_config
    config = load_config(Path("sqlmirror.json"))
    report = SchemaMirror(config).pull(load_catalog_file(path), root)

    # From the command line
    python -m sqlmirror pull dev --verbose

Public API:
    - SchemaMirror      - Pull orchestrator
    - ScriptGenerator   - Script rendering engine
    - FileSynchronizer  - Output tree reconciliation
    - ChecksumCache     - Persisted path -> checksum snapshot
    - ScriptPusher      - Replays scripts through an executor
    - validate_catalog  - Catalog validation entry point
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from sqlmirror.cache import ChecksumCache
from sqlmirror.catalog import Catalog, CatalogReader, load_catalog_file
from sqlmirror.config import load_config, write_default_config
from sqlmirror.errors import (
    CatalogError,
    ConfigurationError,
    MirrorError,
    PushError,
    RenderError,
    SyncWriteError,
)
from sqlmirror.exporters import FileRecord, FileSynchronizer, SyncAction, SyncStats
from sqlmirror.generator import PullReport, SchemaMirror
from sqlmirror.grouping import ConstraintGroup, group_constraints
from sqlmirror.models import (
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
from sqlmirror.push import PushReport, ScriptPusher, collect_scripts, concatenate_scripts
from sqlmirror.templates import ScriptGenerator
from sqlmirror.utils import Timer
from sqlmirror.validators import ValidationResult, validate_catalog

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Orchestration
    "SchemaMirror",
    "PullReport",
    "ScriptPusher",
    "PushReport",
    "collect_scripts",
    "concatenate_scripts",
    # Catalog & config
    "Catalog",
    "CatalogReader",
    "load_catalog_file",
    "load_config",
    "write_default_config",
    # Models
    "ColumnInfo",
    "DataSet",
    "ForeignKeyColumn",
    "IdempotencyMode",
    "IndexColumn",
    "MirrorConfig",
    "ObjectKind",
    "ObjectStructure",
    "PrimaryKeyColumn",
    "SchemaInfo",
    "SchemaObject",
    # Engines
    "ConstraintGroup",
    "group_constraints",
    "ScriptGenerator",
    "FileSynchronizer",
    "FileRecord",
    "SyncAction",
    "SyncStats",
    "ChecksumCache",
    # Validation
    "validate_catalog",
    "ValidationResult",
    # Errors
    "MirrorError",
    "ConfigurationError",
    "CatalogError",
    "RenderError",
    "SyncWriteError",
    "PushError",
    # Utilities
    "Timer",
]
