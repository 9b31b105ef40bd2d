"""
Inventory service tests: stock-out, detail edits and history.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm.exc import StaleDataError

from portal.extensions import db
from portal.models import InventoryHistory, InventoryItem
from portal.services import inventory_service
from portal.services.concurrency import run_with_retry
from portal.services.inventory_service import InventoryError, InventoryNotFoundError


@pytest.fixture
def widget(db_session):
    item = InventoryItem(sku="A1", product_name="Widget", quantity=5, unit_cost=Decimal("2.50"))
    db_session.add(item)
    db_session.commit()
    return item


class TestStockOut:
    def test_decrements_and_logs_out_movement(self, admin_user, widget):
        item = inventory_service.stock_out(
            sku="A1", quantity=2, actor_user_id=admin_user.id, reason="damaged", out_date=date(2024, 4, 2)
        )
        assert item.quantity == 3

        entry = db.session.query(InventoryHistory).one()
        assert entry.operation_type == "out"
        assert entry.quantity == 2
        assert entry.reason == "damaged"
        assert entry.occurred_on == date(2024, 4, 2)

    def test_can_empty_the_shelf(self, admin_user, widget):
        assert inventory_service.stock_out(sku="A1", quantity=5, actor_user_id=admin_user.id, reason="sold").quantity == 0

    def test_overdraw_is_refused_and_changes_nothing(self, admin_user, widget):
        with pytest.raises(InventoryError, match="Insufficient stock"):
            inventory_service.stock_out(sku="A1", quantity=6, actor_user_id=admin_user.id, reason="sold")
        assert db.session.query(InventoryItem).filter_by(sku="A1").one().quantity == 5
        assert db.session.query(InventoryHistory).count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_quantity_must_be_positive_int(self, admin_user, widget, quantity):
        with pytest.raises(InventoryError):
            inventory_service.stock_out(sku="A1", quantity=quantity, actor_user_id=admin_user.id, reason="sold")

    def test_reason_is_required(self, admin_user, widget):
        with pytest.raises(InventoryError):
            inventory_service.stock_out(sku="A1", quantity=1, actor_user_id=admin_user.id, reason="  ")

    def test_unknown_sku(self, admin_user, db_session):
        with pytest.raises(InventoryNotFoundError):
            inventory_service.stock_out(sku="ZZ", quantity=1, actor_user_id=admin_user.id, reason="sold")


class TestItemDetails:
    def test_edit_descriptive_fields(self, widget):
        item = inventory_service.update_item_details(sku="A1", patch={"product_name": "Widget v2"})
        assert item.product_name == "Widget v2"
        assert item.version_id == 2

    def test_quantity_is_not_editable(self, widget):
        with pytest.raises(InventoryError):
            inventory_service.update_item_details(sku="A1", patch={"quantity": 99})

    def test_stale_version_is_refused(self, widget):
        with pytest.raises(InventoryError):
            inventory_service.update_item_details(sku="A1", patch={"batch_number": "L-1"}, expected_version=7)


class TestListing:
    def test_search_matches_sku_or_name(self, db_session):
        db_session.add_all([
            InventoryItem(sku="A1", product_name="Widget", quantity=1, unit_cost=Decimal("1")),
            InventoryItem(sku="B2", product_name="Gadget", quantity=1, unit_cost=Decimal("1")),
        ])
        db_session.commit()
        result = inventory_service.list_inventory(search="gadg")
        assert result["total"] == 1
        assert result["items"][0]["sku"] == "B2"

    def test_history_filter_rejects_unknown_operation(self, db_session):
        with pytest.raises(InventoryError):
            inventory_service.list_history(operation_type="adjust")


class TestInventoryRoutes:
    def test_employee_can_read_but_not_stock_out(self, client, employee_headers, widget):
        assert client.get("/api/inventory?q=A1", headers=employee_headers).json["total"] == 1
        resp = client.post("/api/inventory/A1/stock-out", json={"quantity": 1, "reason": "x"}, headers=employee_headers)
        assert resp.status_code == 403

    def test_overdraw_over_http_is_400(self, client, admin_headers, widget):
        resp = client.post("/api/inventory/A1/stock-out", json={"quantity": 50, "reason": "sold"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_missing_item_is_404(self, client, admin_headers):
        assert client.get("/api/inventory/NOPE", headers=admin_headers).status_code == 404


class TestRunWithRetry:
    def test_lost_race_is_retried(self, db_session):
        calls = []

        def op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version moved")
            return "done"

        assert run_with_retry(op, backoff_base=0) == "done"
        assert len(calls) == 2

    def test_gives_up_after_the_last_attempt(self, db_session):
        def op():
            raise StaleDataError("version moved")

        with pytest.raises(StaleDataError):
            run_with_retry(op, attempts=2, backoff_base=0)

    def test_business_errors_are_not_retried(self, db_session):
        calls = []

        def op():
            calls.append(1)
            raise InventoryError("Insufficient stock")

        with pytest.raises(InventoryError):
            run_with_retry(op, backoff_base=0)
        assert len(calls) == 1
