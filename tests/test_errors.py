import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tea_inventory.config import settings
from tea_inventory.errors import setup_exception_handlers


@pytest.fixture
def failing_client():
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/boom")
    def boom():
        raise RuntimeError("db password is hunter2")

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def test_unhandled_error_hides_exception_text(failing_client):
    r = failing_client.get("/boom")

    assert r.status_code == 500
    error = r.json()["error"]
    assert error["code"] == "INTERNAL_ERROR"
    assert error["message"] == "Internal server error"
    assert error["errorId"]
    assert "hunter2" not in r.text


def test_exception_text_can_be_exposed_outside_production(failing_client, monkeypatch):
    monkeypatch.setattr(settings, "expose_error_details", True)
    assert failing_client.get("/boom").json()["error"]["message"] == "db password is hunter2"

    monkeypatch.setattr(settings, "environment", "production")
    assert failing_client.get("/boom").json()["error"]["message"] == "Internal server error"
