from __future__ import annotations

import io

import openpyxl
import pytest


def _create(client, **overrides):
    payload = {
        "name": "Atún en aceite",
        "barcode": "8412345678905",
        "price": "2.35",
        "cost": "1.50",
        "stock": 10,
        "minStock": 3,
        "categoryName": "Conservas",
    }
    payload.update(overrides)
    response = client.post("/api/products/", json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["product"]


def test_create_and_get_product(client) -> None:
    created = _create(client)
    assert created["price"] == "2.35"
    assert created["minStock"] == 3
    assert created["createdAt"]

    response = client.get(f"/api/products/{created['id']}")
    assert response.status_code == 200
    fetched = response.get_json()
    assert fetched == created


def test_numeric_price_is_accepted_without_drift(client) -> None:
    created = _create(client, price=19.99, cost=None)
    assert created["price"] == "19.99"
    assert created["cost"] is None


def test_create_validation_errors_use_api_field_names(client) -> None:
    response = client.post("/api/products/", json={"name": "", "price": "-3", "minStock": -1})
    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert set(body["errors"]) >= {"name", "price", "minStock"}


def test_create_rejects_three_decimals(client) -> None:
    response = client.post("/api/products/", json={"name": "X", "price": "1.005"})
    assert response.status_code == 400
    assert "price" in response.get_json()["errors"]


def test_create_rejects_read_only_and_unknown_fields(client) -> None:
    response = client.post("/api/products/", json={"name": "X", "price": "1", "id": 7, "color": "rojo"})
    assert response.status_code == 400
    assert set(response.get_json()["errors"]) == {"id", "color"}


def test_create_requires_json_object(client) -> None:
    response = client.post("/api/products/", data="no json", content_type="text/plain")
    assert response.status_code == 400


def test_partial_update(client) -> None:
    created = _create(client)
    response = client.patch(f"/api/products/{created['id']}", json={"price": "2.40", "categoryName": None})
    assert response.status_code == 200
    updated = response.get_json()["product"]
    assert updated["price"] == "2.40"
    assert updated["categoryName"] is None
    assert updated["name"] == created["name"]
    assert updated["stock"] == 10


def test_update_cannot_null_required_field(client) -> None:
    created = _create(client)
    response = client.put(f"/api/products/{created['id']}", json={"price": None})
    assert response.status_code == 400
    assert "price" in response.get_json()["errors"]


def test_update_missing_product_is_404(client) -> None:
    response = client.put("/api/products/999", json={"stock": 1})
    assert response.status_code == 404


def test_delete_then_get_is_404(client) -> None:
    created = _create(client)
    response = client.delete(f"/api/products/{created['id']}")
    assert response.status_code == 200
    assert response.get_json()["deleted"] is True
    assert client.get(f"/api/products/{created['id']}").status_code == 404
    assert client.delete(f"/api/products/{created['id']}").get_json()["deleted"] is False


def test_list_filters_and_revision(client) -> None:
    start = client.get("/api/products/").get_json()["revision"]
    _create(client, name="Atún", barcode="1", categoryName="Conservas", stock=10, minStock=3)
    _create(client, name="Yogur", barcode="2", categoryName="Lácteos", stock=1, minStock=3)
    _create(client, name="Sal", barcode="3", categoryName=None, stock=0, minStock=0)

    response = client.get("/api/products/")
    body = response.get_json()
    assert body["total"] == 3
    assert [p["name"] for p in body["items"]] == ["Sal", "Yogur", "Atún"]
    assert body["revision"] == start + 3
    assert response.headers["X-Catalog-Revision"] == str(start + 3)

    def names(query):
        return [p["name"] for p in client.get(f"/api/products/?{query}").get_json()["items"]]

    assert names("search=YOG") == ["Yogur"]
    assert names("category=uncategorized") == ["Sal"]
    assert names("stock_status=low-stock") == ["Yogur"]
    assert names("stock_status=out-of-stock") == ["Sal"]
    assert client.get("/api/products/?stock_status=raro").status_code == 400


def test_stats(client) -> None:
    _create(client, name="A", stock=2, minStock=5, price="1.50", categoryName="B")
    _create(client, name="C", stock=0, price="3.00", categoryName=None)
    stats = client.get("/api/products/stats").get_json()
    assert stats["totalProducts"] == 2
    assert stats["lowStock"] == 1
    assert stats["outOfStock"] == 1
    assert stats["totalValue"] == "3.00"
    assert stats["categories"] == ["B"]
    assert stats["uncategorized"] == 1


def test_lookup_by_barcode(client) -> None:
    created = _create(client, barcode="0123456789128")
    response = client.get("/api/products/barcode/0123456789128")
    assert response.status_code == 200
    assert response.get_json()["id"] == created["id"]
    assert client.get("/api/products/barcode/000").status_code == 404


def test_barcode_label_svg(client) -> None:
    created = _create(client, barcode="ABC-123")
    response = client.get(f"/api/products/{created['id']}/barcode.svg")
    assert response.status_code == 200
    assert response.mimetype == "image/svg+xml"
    assert b"<svg" in response.data

    no_code = _create(client, barcode="")
    assert client.get(f"/api/products/{no_code['id']}/barcode.svg").status_code == 404


def test_export_excel_and_sql(client) -> None:
    _create(client, name="Té", categoryName="Bebidas")
    _create(client, name="Sal", categoryName="Despensa")

    response = client.get("/api/export/excel")
    assert response.status_code == 200
    assert "inventario_" in response.headers["Content-Disposition"]
    sheet = openpyxl.load_workbook(io.BytesIO(response.data))["Productos"]
    assert sheet.max_row == 3

    response = client.get("/api/export/sql?scope=visible&category=Bebidas")
    assert response.status_code == 200
    text = response.data.decode("utf-8")
    assert text.count("INSERT INTO inventory_products") == 1
    assert "'Té'" in text


def test_export_with_no_products(client) -> None:
    assert client.get("/api/export/excel").status_code == 400
    assert client.get("/api/export/sql").status_code == 400


def test_scanner_flow_hands_code_to_form(client, decoders, scheduler) -> None:
    _create(client, name="Galletas", barcode="0123456789128")

    assert client.get("/api/scanner/main").get_json()["state"] == "idle"
    assert client.post("/api/scanner/main/open").get_json()["state"] == "initializing"
    assert client.post("/api/scanner/main/start").get_json()["state"] == "scanning"

    decoders.last.emit("0123456789128")
    state = client.get("/api/scanner/main").get_json()
    assert state["state"] == "success"
    assert state["lastScan"]["barcode"] == "0123456789128"

    scan = client.get("/api/scanner/main/scan").get_json()
    assert scan["product"]["name"] == "Galletas"

    scheduler.advance(1.5)
    assert client.get("/api/scanner/main").get_json()["state"] == "idle"

    assert client.delete("/api/scanner/main/scan").get_json()["scan"]["barcode"] == "0123456789128"
    assert client.get("/api/scanner/main/scan").status_code == 404


def test_scanner_error_and_unknown_action(client, decoders) -> None:
    from errors import CameraPermissionError

    decoders.start_error = CameraPermissionError()
    client.post("/api/scanner/caja/open")
    state = client.post("/api/scanner/caja/start").get_json()
    assert state["state"] == "error"
    assert state["retryable"] is True
    assert state["error"] == "Permiso de cámara denegado"

    assert client.post("/api/scanner/caja/explode").status_code == 404
    assert client.post("/api/scanner/caja/close").get_json()["state"] == "idle"


def test_surfaces_are_independent(client, decoders) -> None:
    client.post("/api/scanner/a/open")
    client.post("/api/scanner/b/open")
    client.post("/api/scanner/a/start")
    assert client.get("/api/scanner/a").get_json()["state"] == "scanning"
    assert client.get("/api/scanner/b").get_json()["state"] == "initializing"
    assert len(decoders.created) == 2


def test_auth_flow(client) -> None:
    assert client.get("/auth/me").status_code == 401

    response = client.post("/auth/register", json={"username": "maria", "password": "clave123", "confirm": "clave123"})
    assert response.status_code == 201
    assert client.post("/auth/register", json={"username": "maria", "password": "clave123", "confirm": "clave123"}).status_code == 400

    assert client.post("/auth/login", json={"username": "maria", "password": "mala"}).status_code == 401
    assert client.post("/auth/login", json={"username": "maria", "password": "clave123"}).status_code == 200
    assert client.get("/auth/me").get_json()["username"] == "maria"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_close_all_releases_every_surface(app, client, decoders) -> None:
    client.post("/api/scanner/a/open")
    client.post("/api/scanner/a/start")
    client.post("/api/scanner/b/open")

    assert app.extensions["capture_surfaces"].close_all() == 2

    assert client.get("/api/scanner/a").get_json()["state"] == "idle"
    assert client.get("/api/scanner/b").get_json()["state"] == "idle"
    assert all(d.released for d in decoders.created)
    assert app.extensions["capture_surfaces"].close_all() == 0


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"price": "1e30"}, "price"),
        ({"price": "100000000000000000"}, "price"),
        ({"cost": "123456789.00"}, "cost"),
        ({"stock": 2**31}, "stock"),
        ({"minStock": 2**40}, "minStock"),
    ],
)
def test_create_rejects_out_of_range_numbers(client, overrides, field) -> None:
    payload = {"name": "Caviar", "price": "10.00"}
    payload.update(overrides)
    response = client.post("/api/products/", json=payload)
    assert response.status_code == 400
    assert field in response.get_json()["errors"]
    assert client.get("/api/products/").get_json()["total"] == 0


def test_update_rejects_out_of_range_price(client) -> None:
    created = _create(client)
    response = client.patch(f"/api/products/{created['id']}", json={"price": "1e30"})
    assert response.status_code == 400
    assert client.get(f"/api/products/{created['id']}").get_json()["price"] == "2.35"


def test_search_matches_accented_text(client) -> None:
    _create(client, name="Ñoquis", barcode="1", categoryName="Pastas")
    _create(client, name="Yogur", barcode="2", categoryName="Lácteos")
    items = client.get("/api/products/", query_string={"search": "LÁC"}).get_json()["items"]
    assert [p["name"] for p in items] == ["Yogur"]


def test_shutdown_hook_closes_surfaces_of_every_app(app, client, decoders) -> None:
    from app import _close_surfaces, _live_surfaces, create_app

    other = create_app({"SQLALCHEMY_DATABASE_URI": "sqlite://"})
    assert app.extensions["capture_surfaces"] in _live_surfaces
    assert other.extensions["capture_surfaces"] in _live_surfaces

    client.post("/api/scanner/main/open")
    client.post("/api/scanner/main/start")
    _close_surfaces()

    assert client.get("/api/scanner/main").get_json()["state"] == "idle"
    assert decoders.last.released
