from io import BytesIO

import pytest
from openpyxl import load_workbook

from listasprecios.accounts import UserService


def _import(client, items, **extra):
    payload = {"supplierName": "Acme", "items": items, **extra}
    return client.post("/api/pricelists/import", json=payload)


@pytest.fixture()
def imported(client):
    res = _import(
        client,
        [
            {"code": "CAM-1", "name": "Cámara", "basePriceUsd": 100, "markupPct": 10, "impuestosPct": 5, "ivaPct": 21},
            {"code": "SW-8", "name": "Switch", "brand": "TP-Link", "basePriceUsd": 50},
        ],
        sourceLabel="api",
        effectiveDate="2024-01-15T00:00:00",
    )
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def discounted_user(seed):
    def _create(s):
        return UserService(s).create_user({"email": "cliente@example.com", "discount_pct": 10})["user"]["id"]

    return seed(_create)


def test_health(client):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.get_json()["database"] is True


def test_json_import(imported):
    assert imported["imported"] == 2
    assert imported["priceList"]["itemsCount"] == 2
    assert imported["priceList"]["supplier"]["name"] == "Acme"
    assert imported["priceList"]["sourceLabel"] == "api"


def test_products_are_priced_for_the_caller(client, imported, discounted_user):
    anonymous = client.get("/api/products", query_string={"q": "cámara"}).get_json()
    customer = client.get(
        "/api/products", query_string={"q": "cámara"}, headers={"X-User-Id": str(discounted_user)}
    ).get_json()

    assert anonymous["total"] == 1
    assert anonymous["page"] == 1
    assert anonymous["pageSize"] == 20
    assert anonymous["items"][0]["pricing"]["priceForUserUsd"] == pytest.approx(139.755)
    assert customer["items"][0]["pricing"]["priceForUserUsd"] == pytest.approx(125.7795)


def test_page_size_is_clamped(client, imported):
    body = client.get("/api/products", query_string={"page": 0, "pageSize": 1000}).get_json()

    assert body["page"] == 1
    assert body["pageSize"] == 100


def test_product_detail_and_patch(client, imported):
    product_id = client.get("/api/products", query_string={"q": "SW-8"}).get_json()["items"][0]["id"]

    res = client.patch(f"/api/products/{product_id}", json={"stockLaredo": 9, "photoUrl": "https://img.example.com/sw.png"})
    assert res.status_code == 200

    detail = client.get(f"/api/products/{product_id}").get_json()
    assert detail["stockLaredo"] == 9
    assert detail["photoUrl"] == "https://img.example.com/sw.png"
    assert detail["brand"] == "TP-Link"


def test_unknown_product(client):
    res = client.get("/api/products/999")

    assert res.status_code == 404
    body = res.get_json()
    assert body["ok"] is False
    assert body["error"] == "NOT_FOUND"


def test_import_without_supplier(client):
    res = client.post("/api/pricelists/import", json={"items": [{"code": "X", "basePriceUsd": 1}]})

    assert res.status_code == 400
    assert res.get_json()["error"] == "SUPPLIER_REQUIRED"


def test_import_validation_errors(client):
    res = _import(client, [{"code": "", "basePriceUsd": -1}])

    assert res.status_code == 400
    body = res.get_json()
    assert body["error"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["details"]}
    assert "items.0.code" in fields
    assert "items.0.basePriceUsd" in fields


def test_xlsx_import(client, make_xlsx):
    path = make_xlsx(
        [
            ["X-1", "Bocina", "Acme", "Audio", "$ 1,500.00", "USD", "4", "Menos de 5pz"],
            ["X-2", "Amplificador", "Acme", "Audio", "2.750,00", "MXN", None, None],
            [None, "Sin código", None, None, 1, None, None, None],
        ]
    )

    with path.open("rb") as fh:
        res = client.post(
            "/api/pricelists/import-xlsx",
            data={"file": (fh, "lista.xlsx"), "supplierName": "Acme"},
            content_type="multipart/form-data",
        )

    assert res.status_code == 201
    body = res.get_json()
    assert body["imported"] == 2
    assert body["priceList"]["sourceLabel"] == "lista.xlsx"
    assert len(body["notes"]) == 1

    products = client.get("/api/products", query_string={"q": "audio"}).get_json()
    prices = sorted(p["pricing"]["basePriceUsd"] for p in products["items"])
    assert prices == [1500.0, 2750.0]


def test_xlsx_upload_leaves_no_temp_files(client, make_xlsx, settings):
    path = make_xlsx([["X-1", "Bocina", "Acme", "Audio", 10, "USD", 1, 1]])

    with path.open("rb") as fh:
        client.post(
            "/api/pricelists/import-xlsx",
            data={"file": (fh, "lista.xlsx"), "supplierName": "Acme"},
            content_type="multipart/form-data",
        )

    assert list(settings.upload_path.iterdir()) == []


def test_xlsx_import_requires_a_file(client):
    res = client.post("/api/pricelists/import-xlsx", data={"supplierName": "Acme"}, content_type="multipart/form-data")

    assert res.status_code == 400
    assert res.get_json()["error"] == "FILE_REQUIRED"


def test_xlsx_import_rejects_other_types(client):
    res = client.post(
        "/api/pricelists/import-xlsx",
        data={"file": (BytesIO(b"a,b"), "lista.csv"), "supplierName": "Acme"},
        content_type="multipart/form-data",
    )

    assert res.status_code == 400
    assert res.get_json()["error"] == "INVALID_FILE_TYPE"


def test_xlsx_without_usable_rows(client, make_xlsx):
    path = make_xlsx([["X-1", "Sin precio", "Acme", "Audio", "consultar", "USD", 1, 1]])

    with path.open("rb") as fh:
        res = client.post(
            "/api/pricelists/import-xlsx",
            data={"file": (fh, "lista.xlsx"), "supplierName": "Acme"},
            content_type="multipart/form-data",
        )

    assert res.status_code == 400
    assert res.get_json()["error"] == "NO_ROWS_PARSED"


def test_price_item_patch_and_bulk_update(client, imported):
    product_id = client.get("/api/products", query_string={"q": "SW-8"}).get_json()["items"][0]["id"]
    (item,) = client.get("/api/priceitems", query_string={"productId": product_id}).get_json()["items"]

    res = client.patch(f"/api/priceitems/{item['id']}", json={"markupPct": 20})
    assert res.status_code == 200
    assert res.get_json()["finalAdminUsd"] == pytest.approx(60.0)

    assert client.patch(f"/api/priceitems/{item['id']}", json={"markupPct": 120}).status_code == 400
    assert client.patch(f"/api/priceitems/{item['id']}", json={"markupPct": None}).status_code == 400

    ids = [it["id"] for it in client.get("/api/priceitems").get_json()["items"]]
    res = client.post("/api/priceitems/bulk-update", json={"ids": ids, "ivaPct": 16})
    assert res.get_json() == {"count": 2}

    assert client.post("/api/priceitems/bulk-update", json={"ids": ids}).status_code == 400


def test_price_lists_listing(client, imported):
    body = client.get("/api/pricelists").get_json()

    (pl,) = body["items"]
    assert pl["itemsCount"] == 2
    assert client.get("/api/pricelists", query_string={"supplierId": "abc"}).status_code == 400


def test_suppliers(client):
    res = client.post("/api/suppliers", json={"name": "Crestron", "slug": "crestron", "isCrestron": True})
    assert res.status_code == 201
    supplier_id = res.get_json()["id"]

    assert client.post("/api/suppliers", json={"name": "crestron"}).status_code == 409
    assert client.post("/api/suppliers", json={"name": "x"}).status_code == 400

    res = client.patch(f"/api/suppliers/{supplier_id}", json={"websiteUrl": "https://www.crestron.com"})
    assert res.get_json()["websiteUrl"].startswith("https://www.crestron.com")

    names = [s["name"] for s in client.get("/api/suppliers").get_json()["items"]]
    assert names == ["Crestron"]


def test_users(client):
    res = client.post("/api/users", json={"email": " Vendedor@Example.com ", "descuentoPct": 5})
    assert res.status_code == 201
    body = res.get_json()
    assert body["user"]["email"] == "vendedor@example.com"
    assert body["temporaryPassword"]
    user_id = body["user"]["id"]

    assert client.post("/api/users", json={"email": "vendedor@example.com"}).status_code == 409
    assert client.post("/api/users", json={"email": "no-es-email"}).status_code == 400
    res = client.post("/api/users", json={"email": "otro@example.com", "descuentoPct": 150})
    assert res.status_code == 400
    assert res.get_json()["details"][0]["field"] == "descuentoPct"

    res = client.patch(f"/api/users/{user_id}", json={"role": "admin"})
    assert res.get_json()["role"] == "admin"
    assert client.patch(f"/api/users/{user_id}", json={"descuentoPct": -1}).status_code == 400

    res = client.post(f"/api/users/{user_id}/reset-password", json={"newPassword": "nueva-clave"})
    assert res.get_json()["temporaryPassword"] is None

    listed = client.get("/api/users").get_json()["items"]
    assert [u["email"] for u in listed] == ["vendedor@example.com"]


def test_export_selection(client, imported, discounted_user):
    ids = [p["id"] for p in client.get("/api/products").get_json()["items"]]

    res = client.post("/api/products/export", json={"ids": ids}, headers={"X-User-Id": str(discounted_user)})

    assert res.status_code == 200
    assert res.mimetype.endswith("spreadsheetml.sheet")
    ws = load_workbook(BytesIO(res.data)).active
    assert ws.cell(row=2, column=1).value == "CÓDIGO"
    exported = {ws.cell(row=r, column=1).value: ws.cell(row=r, column=5).value for r in range(3, 3 + len(ids))}
    assert exported["CAM-1"] == pytest.approx(125.7795)


def test_unknown_route_is_json(client):
    res = client.get("/api/nope")

    assert res.status_code == 404
    assert res.get_json()["ok"] is False
