def test_health_is_public(client):
    for path in ("/api/health", "/health"):
        r = client.get(path)
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["message"] == "Tea Inventory API is running"
        assert "timestamp" in body


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/api/nowhere")
    assert r.status_code == 404
    assert r.json() == {"error": {"code": "NOT_FOUND", "message": "Resource not found"}}
