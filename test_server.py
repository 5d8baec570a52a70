import threading
import time

import httplib2
import pytest
from googleapiclient.errors import HttpError

import order_processor
from models import Spreadsheet, make_session_factory

AUTH = {"Authorization": "Bearer ya29.test-token"}

FORM = {
    "customer_name": "Lisa Kincaid",
    "product_code": "PX-100",
    "units_ordered": "12",
    "unit_price": "4.50",
    "status": "PENDING",
}


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


def test_index_lists_orders_and_spreadsheets(client, db):
    order_processor.upsert_order(db, order_processor.parse_order_form(FORM))
    db.add(Spreadsheet(id="sheet-1", sheet_id=0, pivot_sheet_id=1, name="Orders (10:00:00)"))
    db.commit()

    response = client.get("/")
    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "Lisa Kincaid" in body
    assert "$4.50" in body
    assert "Orders (10:00:00)" in body
    assert 'data-spreadsheetid="sheet-1"' in body


def test_create_form(client):
    response = client.get("/create")
    assert response.status_code == 200
    assert 'name="customer_name"' in response.get_data(as_text=True)


def test_upsert_creates_and_edit_shows_order(client, db):
    response = client.post("/upsert", data=FORM)
    assert response.status_code == 302

    (order,) = order_processor.list_orders(db)
    response = client.get(f"/edit/{order.id}")
    assert response.status_code == 200
    assert 'value="PX-100"' in response.get_data(as_text=True)

    client.post("/upsert", data=dict(FORM, id=str(order.id), status="SHIPPED"))
    db.expire_all()
    assert order_processor.get_order(db, order.id).status == "SHIPPED"


def test_upsert_rejects_invalid_form(client, db):
    response = client.post("/upsert", data=dict(FORM, units_ordered="lots"))
    assert response.status_code == 400
    assert response.get_json()["status"] == "error"
    assert order_processor.list_orders(db) == []


def test_delete(client, db):
    order = order_processor.upsert_order(db, order_processor.parse_order_form(FORM))
    response = client.get(f"/delete/{order.id}")
    assert response.status_code == 302
    db.expire_all()
    assert order_processor.list_orders(db) == []


def test_missing_order_is_404(client):
    for url in ("/edit/99", "/delete/99"):
        response = client.get(url)
        assert response.status_code == 404
        assert response.get_json() == {"status": "error", "message": "Order not found: 99"}


@pytest.mark.parametrize("url", ["/spreadsheets", "/spreadsheets/sheet-1/sync"])
def test_spreadsheet_routes_require_authorization(client, fake_service, url):
    response = client.post(url)
    assert response.status_code == 401
    assert response.get_json()["message"] == "Authorization required."
    assert fake_service.calls == []


def test_create_spreadsheet(client, db, fake_service):
    response = client.post("/spreadsheets", headers=AUTH)
    assert response.status_code == 200
    model = response.get_json()
    assert model["id"] == "sheet-abc123"
    assert model["sheetId"] == 0
    assert model["pivotSheetId"] == 1234567
    assert model["name"].startswith("Orders (")
    assert client.tokens == ["ya29.test-token"]

    assert db.get(Spreadsheet, "sheet-abc123").name == model["name"]
    assert [call[0] for call in fake_service.calls] == ["create", "batchUpdate"]


def test_sync_spreadsheet(client, db, fake_service):
    db.add(Spreadsheet(id="sheet-1", sheet_id=5, pivot_sheet_id=6, name="Orders"))
    db.commit()
    client.post("/upsert", data=FORM)
    client.post("/upsert", data=dict(FORM, customer_name="Bob"))

    response = client.post("/spreadsheets/sheet-1/sync", headers=AUTH)
    assert response.status_code == 200
    assert response.get_json() == 2

    (call,) = fake_service.batch_updates()
    assert call[1] == "sheet-1"
    resize = call[2]["requests"][0]["updateSheetProperties"]["properties"]
    assert resize == {"sheetId": 5, "gridProperties": {"rowCount": 3, "columnCount": 6}}


def test_sync_unknown_spreadsheet(client):
    response = client.post("/spreadsheets/nope/sync", headers=AUTH)
    assert response.status_code == 404
    assert response.get_json()["message"] == "Spreadsheet not found: nope"


def test_sheets_api_error_is_passed_through(client, fake_service):
    fake_service.errors["create"] = HttpError(
        httplib2.Response({"status": 403}),
        b'{"error": {"code": 403, "message": "The caller does not have permission"}}',
    )
    response = client.post("/spreadsheets", headers=AUTH)
    assert response.status_code == 403
    assert response.get_json() == {
        "status": "error",
        "message": "The caller does not have permission",
    }


def test_health(client, monkeypatch):
    import config

    monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", "")
    body = client.get("/health").get_json()
    assert body == {"status": "ok", "config_valid": False, "missing_keys": ["GOOGLE_CLIENT_ID"]}


@pytest.mark.parametrize("field, value", [
    ("unit_price", "1e30"),
    ("units_ordered", str(10**20)),
    ("unit_price", "1234567890.5"),
])
def test_upsert_rejects_out_of_range_numbers(client, db, field, value):
    response = client.post("/upsert", data=dict(FORM, **{field: value}))
    assert response.status_code == 400
    body = response.get_json()
    assert body["status"] == "error"
    assert field in body["message"]
    assert order_processor.list_orders(db) == []


def test_unexpected_error_is_json(client, monkeypatch):
    def broken(session):
        raise RuntimeError("database is on fire")

    monkeypatch.setattr(order_processor, "list_orders", broken)
    response = client.get("/")
    assert response.status_code == 500
    assert response.get_json() == {"status": "error", "message": "database is on fire"}


def test_index_passes_sheets_scope(client):
    body = client.get("/").get_data(as_text=True)
    assert '"https://www.googleapis.com/auth/spreadsheets"' in body


def test_session_factory_is_built_once(monkeypatch):
    import server

    built = []

    def slow_factory(url):
        built.append(url)
        time.sleep(0.05)
        return make_session_factory("sqlite://")

    monkeypatch.setitem(server.app.config, "SESSION_FACTORY", None)
    monkeypatch.setitem(server.app.config, "DATABASE_URL", "sqlite://")
    monkeypatch.setattr(server, "make_session_factory", slow_factory)

    def open_and_close():
        server.open_session().close()

    threads = [threading.Thread(target=open_and_close) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert built == ["sqlite://"]
