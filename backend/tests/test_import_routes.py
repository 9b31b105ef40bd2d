"""
Import API tests.

Covers the upload -> mapping -> post round trip over HTTP and the
admin-only access rule.
"""

import io
from datetime import date, time, timedelta
from decimal import Decimal

import pytest

from conftest import make_xlsx
from portal.services.import_service import json_safe


def _upload(client, headers, rows, kind="inventory", filename="stock.xlsx"):
    return client.post(
        f"/api/imports/{kind}/upload",
        data={"file": (io.BytesIO(make_xlsx(rows)), filename)},
        headers=headers,
        content_type="multipart/form-data",
    )


STOCK = [
    ["SKU", "Product Name", "Quantity", "Unit Cost"],
    ["A1", "Widget", 5, 2.5],
    ["", "Nameless", 1, 1],
]


class TestImportAccess:
    def test_requires_auth(self, client):
        resp = client.post("/api/imports/inventory/upload")
        assert resp.status_code == 401

    def test_employee_cannot_import(self, client, employee_headers):
        resp = _upload(client, employee_headers, STOCK)
        assert resp.status_code == 403
        assert resp.json["required_role"] == ["admin"]


class TestImportFlow:
    def test_full_round_trip(self, client, admin_headers):
        upload = _upload(client, admin_headers, STOCK)
        assert upload.status_code == 201
        body = upload.json
        assert body["headers"] == STOCK[0]
        assert body["suggested_mapping"]["unit_cost"] == "Unit Cost"
        assert body["preview"][0]["SKU"] == "A1"
        batch_id = body["batch"]["id"]

        mapping = client.post(f"/api/imports/batches/{batch_id}/mapping", json={"mapping": {}}, headers=admin_headers)
        assert mapping.status_code == 200
        assert len(mapping.json["valid"]) == 1
        assert mapping.json["rejected"] == [{"row_number": 3, "errors": ["sku is required"]}]

        post = client.post(f"/api/imports/batches/{batch_id}/post", json={"in_reason": "purchase"}, headers=admin_headers)
        assert post.status_code == 200
        assert post.json["summary"]["posted"] == 1

        item = client.get("/api/inventory/A1", headers=admin_headers)
        assert item.json["item"]["quantity"] == 5

        status = client.get(f"/api/imports/batches/{batch_id}", headers=admin_headers)
        assert status.json["batch"]["status"] == "COMPLETED"
        assert status.json["batch"]["posted_rows"] == 1
        assert status.json["batch"]["rejected_rows"] == 1

    def test_unknown_kind_is_404(self, client, admin_headers):
        assert _upload(client, admin_headers, STOCK, kind="payroll").status_code == 404

    def test_missing_file_is_400(self, client, admin_headers):
        resp = client.post("/api/imports/inventory/upload", data={}, headers=admin_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("filename", ["stock.pdf", "stock.xlsx"])
    def test_unreadable_upload_is_400(self, client, admin_headers, filename):
        resp = client.post(
            "/api/imports/inventory/upload",
            data={"file": (io.BytesIO(b"garbage"), filename)},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_incomplete_mapping_lists_missing_fields(self, client, admin_headers):
        upload = _upload(client, admin_headers, [["Code", "Title"], ["A1", "Widget"]])
        batch_id = upload.json["batch"]["id"]
        resp = client.post(f"/api/imports/batches/{batch_id}/mapping", json={}, headers=admin_headers)
        assert resp.status_code == 400
        assert set(resp.json["missing"]) == {"sku", "product_name", "quantity", "unit_cost"}

    def test_no_valid_rows_is_400_with_rejections(self, client, admin_headers):
        upload = _upload(client, admin_headers, [STOCK[0], ["A1", "Widget", 0, 2]])
        batch_id = upload.json["batch"]["id"]
        resp = client.post(f"/api/imports/batches/{batch_id}/mapping", json={}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["rejected"][0]["row_number"] == 2

    def test_post_before_mapping_is_409(self, client, admin_headers):
        batch_id = _upload(client, admin_headers, STOCK).json["batch"]["id"]
        resp = client.post(f"/api/imports/batches/{batch_id}/post", json={"in_reason": "gift"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_unknown_batch_is_404(self, client, admin_headers):
        assert client.get("/api/imports/batches/12345", headers=admin_headers).status_code == 404

    def test_cost_sheet_upload(self, client, admin_headers):
        upload = _upload(client, admin_headers, [["SKU", "Cost"], ["A1", 4.5]], kind="cost-sheet")
        batch_id = upload.json["batch"]["id"]
        client.post(f"/api/imports/batches/{batch_id}/mapping", json={}, headers=admin_headers)
        post = client.post(f"/api/imports/batches/{batch_id}/post", json={}, headers=admin_headers)
        assert post.status_code == 200

        costs = client.get("/api/finance/product-costs", headers=admin_headers)
        assert costs.json["product_costs"][0]["cost"] == 4.5


class TestTimeCells:
    def test_time_of_day_cells_are_staged_as_text(self, client, admin_headers):
        rows = [
            ["SKU", "Product Name", "Quantity", "Unit Cost", "入库时间"],
            ["A1", "Widget", 5, 2.5, time(9, 30)],
        ]
        upload = _upload(client, admin_headers, rows)
        assert upload.status_code == 201
        assert upload.json["suggested_mapping"]["date"] == "入库时间"
        assert upload.json["preview"][0]["入库时间"] == "09:30:00"

        batch_id = upload.json["batch"]["id"]
        mapping = client.post(f"/api/imports/batches/{batch_id}/mapping", json={"mapping": {}}, headers=admin_headers)
        assert mapping.status_code == 200
        assert mapping.json["valid"][0]["date"] is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            (time(9, 30), "09:30:00"),
            (timedelta(hours=26), "1 day, 2:00:00"),
            (date(2027, 1, 31), "2027-01-31"),
            (Decimal("2.50"), "2.50"),
            (7, 7),
        ],
    )
    def test_json_safe(self, value, expected):
        assert json_safe(value) == expected
