import pytest
from sqlalchemy import select

from tea_inventory.models import AuditEntry, InventoryAdjustment, RawMaterial


def _adjust(client, material, amount, kind="count_correction", reason="Stocktake"):
    return client.post(
        "/api/inventory-adjustments",
        json={
            "rawMaterialId": material.id,
            "adjustmentType": kind,
            "adjustmentAmount": amount,
            "reason": reason,
        },
    )


def test_adjustment_updates_count_and_is_audited(production_client, tea, db, users):
    r = _adjust(production_client, tea, -2.5, kind="damage", reason="Water damage")

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["adjustment"]["quantityBefore"] == 10
    assert body["adjustment"]["quantityAfter"] == pytest.approx(7.5)
    assert body["adjustment"]["adjustmentType"] == "damage"
    assert body["material"]["count"] == pytest.approx(7.5)

    db.expire_all()
    assert db.get(RawMaterial, tea.id).count == pytest.approx(7.5)
    [entry] = db.execute(select(AuditEntry)).scalars().all()
    assert entry.entity_type == "raw_material"
    assert entry.reason == "damage: Water damage"
    assert entry.user_id == users["production"].id


def test_adjustment_cannot_go_negative(production_client, tea, db):
    r = _adjust(production_client, tea, -11)

    assert r.status_code == 400
    assert r.json()["error"] == {
        "code": "INVALID_ADJUSTMENT",
        "message": "Adjustment would result in negative stock",
    }
    db.expire_all()
    assert db.get(RawMaterial, tea.id).count == 10
    assert db.execute(select(InventoryAdjustment)).scalars().all() == []


def test_adjustment_down_to_zero_is_allowed(production_client, tea):
    r = _adjust(production_client, tea, -10)
    assert r.status_code == 201
    assert r.json()["material"]["count"] == 0


def test_blank_reason_is_rejected(production_client, tea):
    assert _adjust(production_client, tea, 1, reason="   ").status_code == 400
    assert _adjust(production_client, tea, 1, reason="").status_code == 400


def test_unknown_material(production_client, users):
    r = production_client.post(
        "/api/inventory-adjustments",
        json={"rawMaterialId": 42, "adjustmentType": "received", "adjustmentAmount": 1, "reason": "x"},
    )
    assert r.status_code == 404


def test_fulfillment_cannot_adjust(fulfillment_client, tea):
    assert _adjust(fulfillment_client, tea, 1).status_code == 403


def test_history(production_client, fulfillment_client, tea, tins):
    _adjust(production_client, tea, 5, kind="received", reason="Delivery")
    _adjust(production_client, tins, -1, kind="sample", reason="Trade show")

    r = fulfillment_client.get(f"/api/inventory-adjustments/material/{tea.id}")
    assert r.status_code == 200
    [entry] = r.json()
    assert entry["reason"] == "Delivery"
    assert entry["adjustedBy"]["username"] == "production"
    assert entry["rawMaterial"]["itemName"] == "Assam loose leaf"

    r = fulfillment_client.get("/api/inventory-adjustments")
    assert len(r.json()) == 2

    assert fulfillment_client.get("/api/inventory-adjustments/material/999").status_code == 404
