from fastapi.testclient import TestClient

import main
from create_admin import create_admin
from conftest import make_user


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Caper Sports API"}
    health = client.get("/api/health").json()
    assert health["status"] == "OK"
    assert "database" in health["services"]


def test_test_endpoint_lists_collections(client, admin_headers):
    body = client.get("/test").json()
    assert body["backend"] == "✅ Running"
    assert "user" in body["collections"]


def test_unhandled_errors_become_500():
    @main.app.get("/api/_boom")
    def boom():
        raise RuntimeError("kaboom")

    res = TestClient(main.app, raise_server_exceptions=False).get("/api/_boom")
    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "Internal server error"}


def test_create_admin_inserts_and_promotes(db):
    created = create_admin("Boss@CaperSports.com", "strongpass")
    assert db["user"].find_one({"email": "boss@capersports.com"})["role"] == "admin"
    assert create_admin("boss@capersports.com", "strongpass") is None

    member_id = make_user(email="coach@example.com", is_active=False)
    assert create_admin("coach@example.com", "ignored") == member_id
    promoted = db["user"].find_one({"email": "coach@example.com"})
    assert promoted["role"] == "admin"
    assert promoted["is_active"] is True
    assert created != member_id
