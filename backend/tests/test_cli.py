"""
CLI command tests via Flask's CLI runner.
"""

from portal.extensions import db
from portal.models import InventoryItem, User
from conftest import make_xlsx


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--username", "boss", "--password", "Password123", "--role", "admin",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS" in result.output
    assert db.session.query(User).filter_by(username="boss").one().role == "admin"

    listing = runner.invoke(args=["users", "list"])
    assert "boss" in listing.output


def test_users_create_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--username", "boss", "--password", "weak", "--role", "admin",
    ])
    assert result.exit_code == 1
    assert "FAIL" in result.output


def test_import_inventory_file(app, admin_user, tmp_path):
    path = tmp_path / "stock.xlsx"
    path.write_bytes(make_xlsx([
        ["Item Code", "Item Name", "Qty", "Price"],
        ["A1", "Widget", 5, 2.5],
        ["B2", "", 1, 1],
    ]))

    result = app.test_cli_runner().invoke(args=[
        "imports", "inventory", str(path), "--reason", "purchase", "--user", "admin",
    ])
    assert result.exit_code == 0, result.output
    assert "SKIP row 3" in result.output
    assert db.session.query(InventoryItem).filter_by(sku="A1").one().quantity == 5


def test_import_reports_missing_mapping(app, admin_user, tmp_path):
    path = tmp_path / "stock.csv"
    path.write_text("Code,Title\nA1,Widget\n", encoding="utf-8")

    result = app.test_cli_runner().invoke(args=[
        "imports", "inventory", str(path), "--reason", "purchase", "--user", "admin",
    ])
    assert result.exit_code == 1
    assert "--map" in result.output


def test_finance_profit_writes_reports(app, db_session, tmp_path):
    path = tmp_path / "payouts.xlsx"
    path.write_bytes(make_xlsx([["Date", "Net"], ["2024-04-01", 100], ["2024-04-02", -10]]))
    report = tmp_path / "report.json"

    result = app.test_cli_runner().invoke(args=[
        "finance", "profit", str(path), "--date-column", "Date", "--amount-column", "Net", "--json", str(report),
    ])
    assert result.exit_code == 0, result.output
    assert "negative_count" in result.output
    assert report.exists()


def test_health_endpoint(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["checks"]["database"]["status"] == "healthy"


def test_cors_headers_only_for_configured_origins(app, client, monkeypatch):
    monkeypatch.setitem(app.config, "CORS_ORIGINS", ("https://ops.example.com",))

    allowed = client.get("/health", headers={"Origin": "https://ops.example.com"})
    assert allowed.headers["Access-Control-Allow-Origin"] == "https://ops.example.com"

    other = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert "Access-Control-Allow-Origin" not in other.headers


def test_no_cors_headers_by_default(client):
    resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert "Access-Control-Allow-Origin" not in resp.headers
