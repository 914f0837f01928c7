"""
tests/conftest.py
Shared fixtures for the sqlmirror test suite.

No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import copy
import json
import pathlib
from typing import Any, Callable, Dict, List

import pytest
import yaml

from sqlmirror.catalog import Catalog, parse_catalog
from sqlmirror.config import parse_config
from sqlmirror.models import MirrorConfig


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
CATALOG_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "catalog_example.yaml"


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_catalog_dict() -> Dict[str, Any]:
    """Load the reference catalog_example.yaml once per session."""
    assert CATALOG_EXAMPLE_PATH.exists(), (
        f"Reference catalog not found at {CATALOG_EXAMPLE_PATH}. "
        "Make sure catalog_example.yaml is in the project root."
    )
    with open(CATALOG_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def catalog_dict(raw_catalog_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_catalog_dict)


@pytest.fixture()
def catalog(catalog_dict: Dict[str, Any]) -> Catalog:
    return parse_catalog(catalog_dict)


@pytest.fixture()
def catalog_yaml_path(catalog_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the catalog dict to a temporary YAML file and return its path."""
    path = tmp_path / "catalog.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(catalog_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config_dict() -> Dict[str, Any]:
    return {
        "connections": [{"name": "dev", "url": "sqlite://"}],
        "files": [],
        "data": ["dbo.Customers"],
    }


@pytest.fixture()
def config(config_dict: Dict[str, Any], tmp_path: pathlib.Path) -> MirrorConfig:
    return parse_config(config_dict, tmp_path)


@pytest.fixture()
def config_json_path(config_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "sqlmirror.json"
    path.write_text(json.dumps(config_dict, indent=2), encoding="utf-8")
    return path


@pytest.fixture()
def output_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """Output root inside tmp_path (not created yet)."""
    return tmp_path / "_sql-database"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def sql_files() -> Callable[[pathlib.Path], List[str]]:
    """Sorted root-relative posix paths of every .sql file under a root."""

    def _list(root: pathlib.Path) -> List[str]:
        return sorted(p.relative_to(root).as_posix() for p in root.rglob("*.sql"))

    return _list
