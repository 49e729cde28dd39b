from sqlalchemy import select

from tea_inventory.models import AuditEntry, BillOfMaterial


def test_product_recipe(production_client, product_with_bom):
    r = production_client.get(f"/api/bom/product/{product_with_bom.id}")

    assert r.status_code == 200
    body = r.json()
    assert body["productName"] == "Assam Tin"
    assert [m["rawMaterial"]["itemName"] for m in body["materials"]] == ["Assam loose leaf", "Tin 100g"]


def test_recipe_of_missing_product(production_client):
    r = production_client.get("/api/bom/product/77")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "PRODUCT_NOT_FOUND"


def test_add_line(fulfillment_client, product, tea, db):
    r = fulfillment_client.post(
        "/api/bom",
        json={"productId": product.id, "rawMaterialId": tea.id, "quantityRequired": 0.05},
    )

    assert r.status_code == 201, r.text
    assert r.json()["rawMaterial"]["id"] == tea.id

    db.expire_all()
    [entry] = db.execute(select(AuditEntry)).scalars().all()
    assert (entry.action, entry.entity_type) == ("create", "bill_of_material")


def test_add_line_checks_references(fulfillment_client, product, tea):
    r = fulfillment_client.post(
        "/api/bom", json={"productId": 999, "rawMaterialId": tea.id, "quantityRequired": 1}
    )
    assert r.json()["error"]["code"] == "PRODUCT_NOT_FOUND"

    r = fulfillment_client.post(
        "/api/bom", json={"productId": product.id, "rawMaterialId": 999, "quantityRequired": 1}
    )
    assert r.json()["error"]["code"] == "MATERIAL_NOT_FOUND"


def test_duplicate_line_conflicts(fulfillment_client, product_with_bom, tea):
    r = fulfillment_client.post(
        "/api/bom",
        json={"productId": product_with_bom.id, "rawMaterialId": tea.id, "quantityRequired": 1},
    )
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "BOM_EXISTS"


def test_quantity_must_be_positive(fulfillment_client, product, tea):
    r = fulfillment_client.post(
        "/api/bom", json={"productId": product.id, "rawMaterialId": tea.id, "quantityRequired": 0}
    )
    assert r.status_code == 400


def test_production_cannot_edit_recipes(production_client, product, tea):
    r = production_client.post(
        "/api/bom", json={"productId": product.id, "rawMaterialId": tea.id, "quantityRequired": 1}
    )
    assert r.status_code == 403


def test_update_and_delete_line(admin_client, product_with_bom, tea, db):
    line = db.execute(
        select(BillOfMaterial).where(BillOfMaterial.raw_material_id == tea.id)
    ).scalar_one()

    r = admin_client.put(f"/api/bom/{line.id}", json={"quantityRequired": 0.2})
    assert r.status_code == 200
    assert r.json()["quantityRequired"] == 0.2

    r = admin_client.delete(f"/api/bom/{line.id}")
    assert r.status_code == 204

    db.expire_all()
    assert db.get(BillOfMaterial, line.id) is None
    actions = db.execute(select(AuditEntry.action).order_by(AuditEntry.id)).scalars().all()
    assert actions == ["update", "delete"]

    assert admin_client.delete(f"/api/bom/{line.id}").status_code == 404
