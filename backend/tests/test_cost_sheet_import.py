"""
Cost sheet import tests.

ProductCost rows are upserted by SKU; cost and notes are overwritten, there is no quantity.
"""

from decimal import Decimal

from portal.extensions import db
from portal.models import InventoryItem, ProductCost
from portal.models.imports import IMPORT_TYPE_COST_SHEET
from portal.services import import_service
from portal.services.spreadsheet_reader import build_sheet


def _import_costs(user, *rows, headers=("SKU", "Cost", "Notes")):
    return import_service.import_sheet(
        sheet=build_sheet([list(headers), *rows], "CSV"),
        import_type=IMPORT_TYPE_COST_SHEET,
        actor_user_id=user.id,
    )


def test_new_costs_are_inserted(admin_user):
    summary = _import_costs(admin_user, ["A1", "2.5", "supplier X"], ["B2", "0", ""])

    assert summary["inserted"] == 2
    costs = {c.sku: c for c in db.session.query(ProductCost).all()}
    assert costs["A1"].cost == Decimal("2.50")
    assert costs["A1"].notes == "supplier X"
    assert costs["A1"].uploaded_by_user_id == admin_user.id
    assert costs["B2"].cost == Decimal("0.00")


def test_existing_cost_is_overwritten(admin_user):
    _import_costs(admin_user, ["A1", "2.5", "old"])
    summary = _import_costs(admin_user, ["A1", "3.75", "new"])

    assert summary["updated"] == 1
    cost = db.session.query(ProductCost).filter_by(sku="A1").one()
    assert cost.cost == Decimal("3.75")
    assert cost.notes == "new"
    assert cost.import_batch_id == summary["batch_id"]
    assert db.session.query(ProductCost).count() == 1


def test_invalid_rows_are_skipped(admin_user):
    summary = _import_costs(admin_user, ["A1", "-1", ""], ["B2", "abc", ""], ["C3", "4", ""])

    assert summary["posted"] == 1
    assert [r["row_number"] for r in summary["rejected"]] == [2, 3]
    assert [c.sku for c in db.session.query(ProductCost).all()] == ["C3"]


def test_cost_sheet_never_touches_inventory(admin_user):
    _import_costs(admin_user, ["A1", "2.5", ""])
    assert db.session.query(InventoryItem).count() == 0


def test_notes_column_is_optional(admin_user):
    _import_costs(admin_user, ["A1", "1"], headers=("SKU", "Cost"))
    assert db.session.query(ProductCost).filter_by(sku="A1").one().notes == ""
