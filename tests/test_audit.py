import csv
import io

import pytest

from tea_inventory.utils.audit_pdf import diff_summary


@pytest.fixture
def activity(admin_client, production_client, tea):
    admin_client.post(
        "/api/products",
        json={"name": "Chai Tin", "sku": "CH-TIN", "sizeFormat": "tin", "stockQuantity": 1},
    )
    production_client.put(f"/api/raw-materials/{tea.id}", json={"count": 9})


def test_events_feed(admin_client, activity):
    r = admin_client.get("/api/audit/events")

    assert r.status_code == 200
    events = r.json()
    assert [(e["action"], e["entityType"]) for e in events] == [
        ("update", "raw_material"),
        ("create", "product"),
    ]
    assert events[0]["actorUsername"] == "production"
    assert events[0]["actorRole"] == "production"
    assert events[0]["beforeJson"]["count"] == 10
    assert events[0]["afterJson"]["count"] == 9


def test_events_filters(admin_client, activity):
    r = admin_client.get("/api/audit/events", params={"actor": "admin"})
    assert [e["entityType"] for e in r.json()] == ["product"]

    r = admin_client.get("/api/audit/events", params={"entityType": "raw_material", "action": "update"})
    assert len(r.json()) == 1

    r = admin_client.get("/api/audit/events", params={"action": "delete"})
    assert r.json() == []

    r = admin_client.get("/api/audit/events", params={"dateTo": "2000-01-01"})
    assert r.json() == []

    r = admin_client.get("/api/audit/events", params={"action": "explode"})
    assert r.status_code == 400


def test_audit_is_admin_only(production_client, fulfillment_client):
    for c in (production_client, fulfillment_client):
        assert c.get("/api/audit/events").status_code == 403
        assert c.get("/api/audit/events.csv").status_code == 403
        assert c.get("/api/audit/events.pdf").status_code == 403


def test_csv_export(admin_client, activity):
    r = admin_client.get("/api/audit/events.csv")

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(r.text)))
    assert rows[0][:4] == ["created_at", "action", "entity_type", "entity_id"]
    assert len(rows) == 3
    assert rows[1][1:3] == ["update", "raw_material"]
    assert '"count":9' in rows[1][-1]


def test_pdf_export(admin_client, activity):
    r = admin_client.get("/api/audit/events.pdf", params={"includeJson": "true"})

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


def test_pdf_export_with_no_rows(admin_client):
    r = admin_client.get("/api/audit/events.pdf", params={"actor": "nobody"})
    assert r.status_code == 200
    assert r.content.startswith(b"%PDF")


def test_diff_summary():
    assert diff_summary(None, None) == "-"
    assert diff_summary({"count": 10}, {"count": 9}) == "count: 10 -> 9"
    assert diff_summary(None, {"sku": "X"}) == 'root: +{"sku":"X"}'
    summary = diff_summary({"a": 1, "b": 2, "c": 3}, {"a": 2, "b": 3, "c": 4})
    assert summary == "a: 1 -> 2; b: 2 -> 3; +1 more"
