"""
tests/test_validators.py
Unit tests for sqlmirror.validators.

Tests cover:
- the reference catalog passes every check
- duplicate object ids
- orphan columns and key rows (warning), table-type keys (ignored)
- orphan foreign-key rows (error)
- key / index columns missing from their table
- foreign-key targets inside and outside the catalog
- script objects without a definition
- configured data tables that were not fetched
- ValidationResult accumulation semantics
"""

from __future__ import annotations

from typing import Any, Dict

from sqlmirror.catalog import parse_catalog
from sqlmirror.models import MirrorConfig
from sqlmirror.validators import (
    ValidationResult,
    validate_catalog,
    validate_data_sets,
    validate_definitions,
    validate_foreign_key_targets,
    validate_key_columns,
    validate_object_ids,
    validate_structural_rows,
)


class TestValidationResult:
    def test_empty_result_is_valid(self) -> None:
        result = ValidationResult()
        assert result.is_valid
        assert bool(result)
        assert len(result) == 0

    def test_errors_and_warnings_are_separated(self) -> None:
        result = ValidationResult()
        result.add_warning("W", "warn")
        assert result.is_valid
        result.add_error("E", "err", {"k": 1})
        assert not result
        assert [e.code for e in result.errors] == ["E"]
        assert [w.code for w in result.warnings] == ["W"]
        assert result.errors[0].to_dict()["context"] == {"k": 1}
        assert result.summary() == "Validation: 1 error(s), 1 warning(s)."

    def test_merge(self) -> None:
        a, b = ValidationResult(), ValidationResult()
        a.add_error("A", "a")
        b.add_warning("B", "b")
        a.merge(b)
        assert a.codes == ["A", "B"]


class TestReferenceCatalog:
    def test_reference_catalog_is_clean(self, catalog, config: MirrorConfig) -> None:
        result = validate_catalog(catalog, config)
        assert result.is_valid, result.errors
        assert result.warnings == []


class TestIndividualChecks:
    def test_duplicate_object_id(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["objects"][0]["object_id"] = 101
        result = validate_object_ids(parse_catalog(catalog_dict))
        assert result.codes == ["DUPLICATE_OBJECT_ID"]

    def test_orphan_columns_are_warnings(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["columns"].append({"object_id": 301, "name": "Id", "datatype": "int"})
        result = validate_structural_rows(parse_catalog(catalog_dict))
        assert result.is_valid
        assert result.codes == ["ORPHAN_COLUMNS"]

    def test_orphan_foreign_key_rows_are_errors(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["foreign_keys"].append(dict(catalog_dict["foreign_keys"][0], object_id=999))
        result = validate_structural_rows(parse_catalog(catalog_dict))
        assert result.codes == ["ORPHAN_KEY_ROW"]

    def test_table_type_key_rows_are_ignored(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["primary_keys"].append(
            {"object_id": 201, "name": "PK__IdList__3214EC07", "column": "Id"}
        )
        result = validate_structural_rows(parse_catalog(catalog_dict))
        assert result.is_valid
        assert result.codes == []

    def test_key_rows_of_other_objects_are_warnings(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["primary_keys"].append({"object_id": 999, "name": "PK_Gone", "column": "Id"})
        catalog_dict["indexes"].append(dict(catalog_dict["indexes"][0], object_id=301, name="IX_View"))
        result = validate_structural_rows(parse_catalog(catalog_dict))
        assert result.is_valid
        assert result.codes == ["ORPHAN_KEY_ROWS"]
        assert result.warnings[0].context["constraints"] == ["IX_View", "PK_Gone"]

    def test_index_on_unknown_column(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["indexes"][0]["column"] = "Phone"
        result = validate_key_columns(parse_catalog(catalog_dict))
        assert result.codes == ["UNKNOWN_KEY_COLUMN"]
        assert result.errors[0].context["column"] == "Phone"

    def test_included_index_columns_are_ignored(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["indexes"].append({
            "object_id": 101, "name": "IX_Customers_Email", "column": "Ghost",
            "is_included_column": True, "schema": "dbo", "table": "Customers",
        })
        assert validate_key_columns(parse_catalog(catalog_dict)).is_valid

    def test_foreign_key_to_unknown_column(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["foreign_keys"][0]["reference"] = "CustomerKey"
        result = validate_foreign_key_targets(parse_catalog(catalog_dict))
        assert result.codes == ["FK_UNKNOWN_REFERENCED_COLUMN"]

    def test_foreign_key_outside_catalog_is_warning(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["foreign_keys"][0]["parent_schema"] = "archive"
        result = validate_foreign_key_targets(parse_catalog(catalog_dict))
        assert result.is_valid
        assert result.codes == ["FK_TARGET_NOT_IN_CATALOG"]

    def test_missing_definition(self, catalog_dict: Dict[str, Any]) -> None:
        catalog_dict["objects"][2]["text"] = None
        result = validate_definitions(parse_catalog(catalog_dict))
        assert result.codes == ["MISSING_DEFINITION"]
        assert "[sales].[GetOrders]" in result.errors[0].message

    def test_data_not_fetched(self, catalog_dict: Dict[str, Any]) -> None:
        config = MirrorConfig(data=["dbo.Customers", "dbo.Status"])
        result = validate_data_sets(parse_catalog(catalog_dict), config)
        assert result.codes == ["DATA_NOT_FETCHED"]
        assert result.warnings[0].context == {"table": "dbo.Status"}

    def test_validate_catalog_collects_every_check(
        self, catalog_dict: Dict[str, Any], config: MirrorConfig
    ) -> None:
        catalog_dict["objects"][0]["text"] = ""
        catalog_dict["indexes"][0]["column"] = "Phone"
        result = validate_catalog(parse_catalog(catalog_dict), config)
        assert set(result.codes) == {"MISSING_DEFINITION", "UNKNOWN_KEY_COLUMN"}
        assert result.has_errors
