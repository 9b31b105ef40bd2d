"""
Column inference tests.

Priority is keyword rank, not header position; unmatched fields stay unset.
"""

import pytest

from portal.services.column_inference import (
    COST_SHEET_KEYWORDS,
    DEFAULT_QUANTITY_ONE,
    INVENTORY_REQUIRED,
    ColumnMapping,
    check_optional_fields,
    infer_columns,
    require_fields,
)
from portal.validation import MappingIncompleteError


class TestInferColumns:
    def test_english_headers(self):
        mapping = infer_columns(["SKU", "Product Name", "Quantity", "Unit Cost", "Batch", "Expiration"])
        assert mapping.to_dict() == {
            "sku": "SKU",
            "product_name": "Product Name",
            "quantity": "Quantity",
            "unit_cost": "Unit Cost",
            "batch_number": "Batch",
            "expiration_date": "Expiration",
        }

    def test_chinese_headers(self):
        mapping = infer_columns(["货号", "商品名称", "数量", "单价", "批次", "有效期"])
        assert mapping.get("sku") == "货号"
        assert mapping.get("product_name") == "商品名称"
        assert mapping.get("quantity") == "数量"
        assert mapping.get("unit_cost") == "单价"
        assert mapping.get("batch_number") == "批次"
        assert mapping.get("expiration_date") == "有效期"

    def test_matching_is_case_insensitive_substring(self):
        mapping = infer_columns(["ITEM CODE (internal)"])
        assert mapping.get("sku") == "ITEM CODE (internal)"

    def test_keyword_rank_beats_header_position(self):
        # "price" appears first in the sheet but "cost" ranks higher
        mapping = infer_columns(["Retail Price", "Landed Cost"])
        assert mapping.get("unit_cost") == "Landed Cost"

    def test_first_header_wins_for_same_keyword(self):
        mapping = infer_columns(["Cost A", "Cost B"])
        assert mapping.get("unit_cost") == "Cost A"

    def test_unmatched_fields_stay_unset(self):
        mapping = infer_columns(["Colour", "Size"])
        assert mapping.to_dict() == {}

    def test_blank_headers_are_ignored(self):
        mapping = infer_columns(["", "SKU"])
        assert mapping.get("sku") == "SKU"

    def test_cost_sheet_keywords(self):
        mapping = infer_columns(["SKU", "Cost", "Notes"], COST_SHEET_KEYWORDS)
        assert mapping.to_dict() == {"sku": "SKU", "cost": "Cost", "notes": "Notes"}


class TestColumnMapping:
    def test_from_dict_drops_unknown_and_blank_fields(self):
        mapping = ColumnMapping.from_dict({"sku": " SKU ", "colour": "Colour", "quantity": ""}, ["sku", "quantity"])
        assert mapping.to_dict() == {"sku": "SKU"}

    def test_merged_overrides_win(self):
        base = ColumnMapping(fields={"sku": "Code", "quantity": "Qty"})
        merged = base.merged(ColumnMapping(fields={"sku": "SKU"}))
        assert merged.to_dict() == {"sku": "SKU", "quantity": "Qty"}

    def test_quantity_sentinel(self):
        assert ColumnMapping(fields={"quantity": DEFAULT_QUANTITY_ONE}).quantity_defaults_to_one


class TestRequireFields:
    HEADERS = ["SKU", "Name", "Cost"]

    def test_missing_required_fields_are_listed(self):
        mapping = ColumnMapping(fields={"sku": "SKU", "product_name": "Name"})
        with pytest.raises(MappingIncompleteError) as exc:
            require_fields(mapping, self.HEADERS, INVENTORY_REQUIRED)
        assert exc.value.missing == ["quantity", "unit_cost"]

    def test_quantity_sentinel_satisfies_requirement(self):
        mapping = ColumnMapping(fields={
            "sku": "SKU", "product_name": "Name", "quantity": DEFAULT_QUANTITY_ONE, "unit_cost": "Cost",
        })
        require_fields(mapping, self.HEADERS, INVENTORY_REQUIRED)

    def test_mapping_to_absent_header_counts_as_missing(self):
        mapping = ColumnMapping(fields={
            "sku": "Item", "product_name": "Name", "quantity": DEFAULT_QUANTITY_ONE, "unit_cost": "Cost",
        })
        with pytest.raises(MappingIncompleteError) as exc:
            require_fields(mapping, self.HEADERS, INVENTORY_REQUIRED)
        assert exc.value.missing == ["sku"]

    def test_optional_field_must_exist_when_set(self):
        mapping = ColumnMapping(fields={"batch_number": "Lot"})
        with pytest.raises(MappingIncompleteError) as exc:
            check_optional_fields(mapping, self.HEADERS)
        assert exc.value.missing == ["batch_number"]
