from sqlalchemy import select

from tea_inventory.models import AuditEntry, Product

NEW_PRODUCT = {
    "name": "Earl Grey Pouch",
    "sku": "EG-POUCH-50",
    "sizeFormat": "pouch",
    "stockQuantity": 3,
    "reorderThreshold": 5,
    "price": 6.25,
}


def _audits(db, entity_type="product"):
    db.expire_all()
    return db.execute(
        select(AuditEntry).where(AuditEntry.entity_type == entity_type).order_by(AuditEntry.id)
    ).scalars().all()


def test_create_product_is_audited(fulfillment_client, db, users):
    r = fulfillment_client.post("/api/products", json=NEW_PRODUCT)

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["sku"] == "EG-POUCH-50"
    assert body["sizeFormat"] == "pouch"
    assert body["category"] == "tea"
    assert body["isLowStock"] is True
    assert body["updatedBy"] == {"id": users["fulfillment"].id, "username": "fulfillment"}

    entries = _audits(db)
    assert len(entries) == 1
    assert entries[0].action == "create"
    assert entries[0].entity_id == str(body["id"])
    assert entries[0].user_id == users["fulfillment"].id
    assert entries[0].before_json is None
    assert entries[0].after_json["sku"] == "EG-POUCH-50"


def test_duplicate_sku_conflicts(admin_client, product, db):
    r = admin_client.post("/api/products", json={**NEW_PRODUCT, "sku": product.sku})

    assert r.status_code == 409
    assert r.json()["error"]["code"] == "PRODUCT_EXISTS"
    assert _audits(db) == []


def test_production_cannot_edit_products(production_client, product):
    r = production_client.post("/api/products", json=NEW_PRODUCT)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "FORBIDDEN"

    r = production_client.put(f"/api/products/{product.id}", json={"price": 1})
    assert r.status_code == 403


def test_anonymous_cannot_list(client, product):
    assert client.get("/api/products").status_code == 401


def test_invalid_body_is_rejected(admin_client, db):
    r = admin_client.post("/api/products", json={**NEW_PRODUCT, "stockQuantity": -1})

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"
    assert db.execute(select(Product)).scalars().all() == []


def test_partial_update_keeps_sku(admin_client, product, db, users):
    r = admin_client.put(
        f"/api/products/{product.id}",
        json={"stockQuantity": 40, "sku": "CHANGED"},
    )

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["stockQuantity"] == 40
    assert body["sku"] == "AS-TIN-100"
    assert body["name"] == "Assam Tin"
    assert body["isLowStock"] is False

    [entry] = _audits(db)
    assert entry.action == "update"
    assert entry.before_json["stock_quantity"] == 5
    assert entry.after_json["stock_quantity"] == 40
    assert entry.user_id == users["admin"].id


def test_update_missing_product(admin_client, users):
    r = admin_client.put("/api/products/999", json={"price": 2})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "PRODUCT_NOT_FOUND"


def test_list_with_filters_and_pagination(fulfillment_client, product, db):
    db.add(Product(name="Green Family", sku="GR-FAM", size_format="family", stock_quantity=50, reorder_threshold=5))
    db.commit()

    r = fulfillment_client.get("/api/products")
    body = r.json()
    assert body["pagination"] == {"limit": 50, "offset": 0, "total": 2}
    assert {p["sku"] for p in body["products"]} == {"AS-TIN-100", "GR-FAM"}

    r = fulfillment_client.get("/api/products", params={"lowStock": "true"})
    assert [p["sku"] for p in r.json()["products"]] == ["AS-TIN-100"]

    r = fulfillment_client.get("/api/products", params={"search": "green"})
    assert [p["sku"] for p in r.json()["products"]] == ["GR-FAM"]

    r = fulfillment_client.get("/api/products", params={"limit": 1, "offset": 1})
    body = r.json()
    assert len(body["products"]) == 1
    assert body["pagination"]["total"] == 2

    r = fulfillment_client.get("/api/products", params={"limit": 500})
    assert r.status_code == 400


def test_product_detail_includes_recipe(production_client, product_with_bom, tea):
    r = production_client.get(f"/api/products/{product_with_bom.id}")

    assert r.status_code == 200
    lines = r.json()["billOfMaterials"]
    assert len(lines) == 2
    tea_line = next(line for line in lines if line["rawMaterialId"] == tea.id)
    assert tea_line["quantityRequired"] == 0.1
    assert tea_line["rawMaterial"]["itemName"] == "Assam loose leaf"


def test_get_by_sku_and_options(fulfillment_client, product):
    r = fulfillment_client.get("/api/products/by-sku/AS-TIN-100")
    assert r.status_code == 200
    assert r.json()["id"] == product.id

    assert fulfillment_client.get("/api/products/by-sku/NOPE").status_code == 404

    r = fulfillment_client.get("/api/products/all")
    assert r.json()["products"][0]["sku"] == "AS-TIN-100"


def test_export_csv(fulfillment_client, product):
    r = fulfillment_client.get("/api/products/export")

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "product-inventory-" in r.headers["content-disposition"]
    lines = r.text.strip().splitlines()
    assert lines[0].startswith('"Name","SKU"')
    assert '"AS-TIN-100"' in lines[1]
    assert lines[1].endswith('"Yes"')
