"""
Row validation tests.

Rows breaking a rule are set aside with their sheet row number, never fixed.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from portal.services.column_inference import DEFAULT_QUANTITY_ONE, ColumnMapping
from portal.services.row_validation import (
    RejectedRow,
    ValidationResult,
    require_valid,
    validate_cost_rows,
    validate_inventory_rows,
)
from portal.validation import NoValidDataError


HEADERS = ["SKU", "Name", "Qty", "Cost", "Batch", "Expiry"]
MAPPING = ColumnMapping(fields={
    "sku": "SKU",
    "product_name": "Name",
    "quantity": "Qty",
    "unit_cost": "Cost",
    "batch_number": "Batch",
    "expiration_date": "Expiry",
})


class TestInventoryRows:
    def test_valid_row_is_typed(self):
        result = validate_inventory_rows(
            HEADERS, [[" A1 ", "Widget", 5.0, "$2.50", "L-7", datetime(2027, 1, 31)]], MAPPING
        )
        assert result.rejected == []
        row = result.valid[0]
        assert row.row_number == 2
        assert row.sku == "A1"
        assert row.quantity == 5
        assert row.unit_cost == Decimal("2.50")
        assert row.batch_number == "L-7"
        assert row.expiration_date == date(2027, 1, 31)

    @pytest.mark.parametrize(
        "row,message",
        [
            (["   ", "Widget", 1, 1], "sku is required"),
            (["A1", "", 1, 1], "product_name is required"),
            (["A1", "Widget", "five", 1], "quantity must be a positive whole number"),
            (["A1", "Widget", 0, 1], "quantity must be a positive whole number"),
            (["A1", "Widget", -2, 1], "quantity must be a positive whole number"),
            (["A1", "Widget", 1.5, 1], "quantity must be a positive whole number"),
            (["A1", "Widget", 1, "n/a"], "unit_cost must be a positive number"),
            (["A1", "Widget", 1, 0], "unit_cost must be a positive number"),
            (["A1", "Widget", 1, None], "unit_cost must be a positive number"),
            (["A1", "Widget", 1, 1e30], "unit_cost is out of range"),
            (["A1", "Widget", 1, "12345678901.00"], "unit_cost is out of range"),
        ],
    )
    def test_rule_violations_are_rejected(self, row, message):
        result = validate_inventory_rows(HEADERS, [row + [None, None]], MAPPING)
        assert result.valid == []
        assert message in result.rejected[0].errors

    def test_every_problem_is_reported(self):
        result = validate_inventory_rows(HEADERS, [["", "", "x", "y", None, None]], MAPPING)
        assert len(result.rejected[0].errors) == 4

    def test_sheet_row_numbers_are_kept(self):
        rows = [["A1", "Widget", 1, 1, None, None], ["", "Bad", 1, 1, None, None]]
        result = validate_inventory_rows(HEADERS, rows, MAPPING, row_numbers=[5, 9])
        assert result.valid[0].row_number == 5
        assert result.rejected[0].row_number == 9

    def test_default_quantity_sentinel_counts_one(self):
        mapping = MAPPING.merged(ColumnMapping(fields={"quantity": DEFAULT_QUANTITY_ONE}))
        result = validate_inventory_rows(HEADERS, [["A1", "Widget", "ignored", 3, None, None]], mapping)
        assert result.valid[0].quantity == 1

    def test_unreadable_optional_date_becomes_none(self):
        result = validate_inventory_rows(HEADERS, [["A1", "Widget", 1, 1, None, "soon"]], MAPPING)
        assert result.valid[0].expiration_date is None

    def test_to_dict_is_json_friendly(self):
        result = validate_inventory_rows(HEADERS, [["A1", "Widget", 2, 3, None, "2027-03-01"]], MAPPING)
        assert result.valid[0].to_dict()["unit_cost"] == "3.00"
        assert result.valid[0].to_dict()["expiration_date"] == "2027-03-01"


class TestCostRows:
    HEADERS = ["SKU", "Cost", "Notes"]
    MAPPING = ColumnMapping(fields={"sku": "SKU", "cost": "Cost", "notes": "Notes"})

    def test_zero_cost_is_allowed(self):
        result = validate_cost_rows(self.HEADERS, [["A1", 0, None]], self.MAPPING)
        assert result.valid[0].cost == Decimal("0.00")
        assert result.valid[0].notes == ""

    def test_negative_and_missing_cost_are_rejected(self):
        result = validate_cost_rows(self.HEADERS, [["A1", -1, ""], ["B2", "", ""]], self.MAPPING)
        assert [r.errors for r in result.rejected] == [["cost must be >= 0"], ["cost must be a valid number"]]

    def test_huge_cost_is_rejected_not_raised(self):
        result = validate_cost_rows(self.HEADERS, [["A1", 1e30, None]], self.MAPPING)
        assert result.valid == []
        assert result.rejected[0].errors == ["cost is out of range"]


class TestRequireValid:
    def test_raises_with_rejections_when_nothing_is_valid(self):
        result = ValidationResult(rejected=[RejectedRow(row_number=2, errors=["sku is required"])])
        with pytest.raises(NoValidDataError) as exc:
            require_valid(result)
        assert exc.value.rejected == [{"row_number": 2, "errors": ["sku is required"]}]
