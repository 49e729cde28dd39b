import pytest
from sqlalchemy import select

from tea_inventory.models import AuditEntry, RawMaterial

NEW_MATERIAL = {
    "itemName": "Darjeeling first flush",
    "category": "tea",
    "unit": "kg",
    "count": 4,
    "reorderThreshold": 1.5,
}


def test_create_material(production_client, db, users):
    r = production_client.post("/api/raw-materials", json={**NEW_MATERIAL, "quantityPerUnit": 2.5})

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["itemName"] == "Darjeeling first flush"
    assert body["totalQuantity"] == pytest.approx(10.0)
    assert body["isLowStock"] is False

    db.expire_all()
    [entry] = db.execute(select(AuditEntry)).scalars().all()
    assert (entry.action, entry.entity_type) == ("create", "raw_material")
    assert entry.user_id == users["production"].id


def test_snake_case_body_is_accepted(admin_client):
    r = admin_client.post(
        "/api/raw-materials",
        json={"item_name": "Pouch 50g", "category": "pouches", "unit": "pcs", "count": 100},
    )
    assert r.status_code == 201
    assert r.json()["itemName"] == "Pouch 50g"


def test_negative_count_is_rejected_without_side_effects(production_client, db):
    r = production_client.post("/api/raw-materials", json={**NEW_MATERIAL, "count": -1})

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"
    db.expire_all()
    assert db.execute(select(RawMaterial)).scalars().all() == []
    assert db.execute(select(AuditEntry)).scalars().all() == []


def test_unknown_unit_is_rejected(production_client):
    r = production_client.post("/api/raw-materials", json={**NEW_MATERIAL, "unit": "litres"})
    assert r.status_code == 400


def test_fulfillment_cannot_edit_materials(fulfillment_client, tea):
    assert fulfillment_client.post("/api/raw-materials", json=NEW_MATERIAL).status_code == 403
    assert fulfillment_client.put(f"/api/raw-materials/{tea.id}", json={"count": 1}).status_code == 403
    # reading is open to every role
    assert fulfillment_client.get(f"/api/raw-materials/{tea.id}").status_code == 200


def test_update_material(production_client, tea, db):
    r = production_client.put(
        f"/api/raw-materials/{tea.id}",
        json={"count": 1, "notes": "moved to shelf B"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 1
    assert body["isLowStock"] is True
    assert body["notes"] == "moved to shelf B"
    assert body["updatedBy"]["username"] == "production"

    db.expire_all()
    [entry] = db.execute(select(AuditEntry)).scalars().all()
    assert entry.before_json["count"] == 10
    assert entry.after_json["count"] == 1


def test_update_with_negative_count_leaves_row_alone(production_client, tea, db):
    r = production_client.put(f"/api/raw-materials/{tea.id}", json={"count": -3})

    assert r.status_code == 400
    db.expire_all()
    assert db.get(RawMaterial, tea.id).count == 10


def test_missing_material(production_client, users):
    r = production_client.get("/api/raw-materials/404")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "MATERIAL_NOT_FOUND"


def test_list_orders_by_category_then_name(production_client, tea, tins):
    r = production_client.get("/api/raw-materials")

    body = r.json()
    assert [m["itemName"] for m in body["rawMaterials"]] == ["Assam loose leaf", "Tin 100g"]
    assert body["pagination"]["total"] == 2
    assert all(m["count"] >= 0 for m in body["rawMaterials"])

    r = production_client.get("/api/raw-materials", params={"category": "tins"})
    assert [m["itemName"] for m in r.json()["rawMaterials"]] == ["Tin 100g"]

    r = production_client.get("/api/raw-materials", params={"category": "bogus"})
    assert r.status_code == 400


def test_export_csv(production_client, tea):
    r = production_client.get("/api/raw-materials/export")

    assert r.status_code == 200
    assert "raw-materials-" in r.headers["content-disposition"]
    header, row = r.text.strip().splitlines()
    assert header.startswith('"Name","Category","Count"')
    assert row.startswith('"Assam loose leaf","tea"')
