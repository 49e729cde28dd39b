import pytest
from sqlalchemy import select

from tea_inventory.models import AuditEntry, Product, ProductionRequest, RawMaterial


def _raise(client, product, quantity=20, **extra):
    return client.post(
        "/api/production-requests",
        json={"productId": product.id, "quantityRequested": quantity, **extra},
    )


@pytest.fixture
def pending(fulfillment_client, product_with_bom):
    r = _raise(fulfillment_client, product_with_bom)
    assert r.status_code == 201, r.text
    return r.json()


def test_create_snapshots_materials(fulfillment_client, product_with_bom, tea, tins, users):
    r = _raise(fulfillment_client, product_with_bom, notes="for the weekend market")

    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending"
    assert body["requestNumber"] == f"PR-{body['id']:06d}"
    assert body["requestedBy"] == {"id": users["fulfillment"].id, "username": "fulfillment"}
    assert body["allMaterialsAvailable"] is True

    lines = {m["rawMaterialId"]: m for m in body["materials"]}
    assert lines[tea.id]["quantityConsumed"] == pytest.approx(2.0)
    assert lines[tea.id]["quantityAvailableAtRequest"] == 10
    assert lines[tins.id]["quantityConsumed"] == 20
    assert lines[tins.id]["isAvailable"] is True


def test_create_without_recipe(fulfillment_client, product):
    r = _raise(fulfillment_client, product)

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "NO_BOM"


def test_create_for_missing_product(fulfillment_client, users):
    r = fulfillment_client.post("/api/production-requests", json={"productId": 123, "quantityRequested": 1})
    assert r.status_code == 404


def test_quantity_must_be_positive(fulfillment_client, product_with_bom):
    assert _raise(fulfillment_client, product_with_bom, quantity=0).status_code == 400


def test_shortfall_is_flagged_at_creation(fulfillment_client, product_with_bom):
    body = _raise(fulfillment_client, product_with_bom, quantity=60).json()
    assert body["allMaterialsAvailable"] is False


def test_complete_moves_stock(production_client, pending, tea, tins, product_with_bom, db, users):
    r = production_client.post(f"/api/production-requests/{pending['id']}/complete")

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "completed"
    assert body["completedBy"]["username"] == "production"
    assert body["completedAt"] is not None

    db.expire_all()
    assert db.get(RawMaterial, tea.id).count == pytest.approx(8.0)
    assert db.get(RawMaterial, tins.id).count == pytest.approx(30)
    assert db.get(Product, product_with_bom.id).stock_quantity == 25

    completion = db.execute(
        select(AuditEntry.entity_type).where(AuditEntry.user_id == users["production"].id)
    ).scalars().all()
    assert sorted(completion) == ["product", "production_request", "raw_material", "raw_material"]


def test_complete_twice(production_client, pending):
    production_client.post(f"/api/production-requests/{pending['id']}/complete")
    r = production_client.post(f"/api/production-requests/{pending['id']}/complete")

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "ALREADY_COMPLETED"


def test_complete_with_insufficient_materials(production_client, fulfillment_client, product_with_bom, tins, db):
    created = _raise(fulfillment_client, product_with_bom, quantity=60).json()

    r = production_client.post(f"/api/production-requests/{created['id']}/complete")

    assert r.status_code == 400
    error = r.json()["error"]
    assert error["code"] == "INSUFFICIENT_MATERIALS"
    assert error["details"]["insufficientMaterials"] == [
        {"itemName": "Tin 100g", "required": 60, "available": 50}
    ]
    db.expire_all()
    assert db.get(RawMaterial, tins.id).count == 50
    assert db.get(ProductionRequest, created["id"]).status == "pending"


def test_fulfillment_cannot_complete(fulfillment_client, pending):
    r = fulfillment_client.post(f"/api/production-requests/{pending['id']}/complete")
    assert r.status_code == 403


def test_cancelled_request_cannot_complete(production_client, pending):
    r = production_client.put(f"/api/production-requests/{pending['id']}", json={"status": "cancelled"})
    assert r.json()["status"] == "cancelled"

    r = production_client.post(f"/api/production-requests/{pending['id']}/complete")
    assert r.json()["error"]["code"] == "REQUEST_CANCELLED"


def test_only_production_starts_work(fulfillment_client, production_client, pending):
    r = fulfillment_client.put(f"/api/production-requests/{pending['id']}", json={"status": "in_progress"})
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Only production team can start production"

    r = production_client.put(f"/api/production-requests/{pending['id']}", json={"status": "in_progress"})
    assert r.status_code == 200
    assert r.json()["status"] == "in_progress"


def test_status_cannot_be_set_to_completed(production_client, pending):
    r = production_client.put(f"/api/production-requests/{pending['id']}", json={"status": "completed"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_STATUS"


def test_completed_request_is_frozen(production_client, pending):
    production_client.post(f"/api/production-requests/{pending['id']}/complete")

    r = production_client.put(f"/api/production-requests/{pending['id']}", json={"notes": "late edit"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "REQUEST_COMPLETED"


def test_list_filters(fulfillment_client, production_client, pending, product_with_bom, users):
    _raise(production_client, product_with_bom, quantity=1)

    r = fulfillment_client.get("/api/production-requests")
    assert len(r.json()) == 2

    r = fulfillment_client.get("/api/production-requests", params={"requestedBy": users["production"].id})
    assert [pr["quantityRequested"] for pr in r.json()] == [1]

    r = fulfillment_client.get("/api/production-requests", params={"status": "completed"})
    assert r.json() == []

    r = fulfillment_client.get("/api/production-requests", params={"dateFrom": "2000-01-01", "dateTo": "2000-01-02"})
    assert r.json() == []

    r = fulfillment_client.get("/api/production-requests", params={"dateFrom": "yesterday"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_DATE"


def test_get_missing_request(fulfillment_client):
    r = fulfillment_client.get("/api/production-requests/9999")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "REQUEST_NOT_FOUND"
