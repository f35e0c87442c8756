import uuid
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db
from app.main import app
from app.services import radius_store


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.pop(get_db, None)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_create_plan_and_subscriber(client, tenant):
    resp = client.post(
        "/api/v1/plans",
        params={"tenant_id": str(tenant.id)},
        json={"name": "Fiber 50", "download_speed": 50, "upload_speed": 20, "price": "650.00"},
    )
    assert resp.status_code == 201
    plan_id = resp.json()["id"]

    resp = client.post(
        "/api/v1/subscribers",
        params={"tenant_id": str(tenant.id)},
        json={"username": "erin", "password": "pw-erin", "name": "Erin", "plan_id": plan_id},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["username"] == "erin"
    assert "radius_password" not in body

    resp = client.get("/api/v1/subscribers", params={"tenant_id": str(tenant.id)})
    assert resp.status_code == 200
    assert resp.json()["count"] == 1


def test_missing_subscriber_error_shape(client, tenant):
    resp = client.get(
        f"/api/v1/subscribers/{uuid.uuid4()}", params={"tenant_id": str(tenant.id)}
    )
    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == "http_404"
    assert body["message"] == "Subscriber not found"
    assert set(body) == {"code", "message", "details", "request_id"}


def test_tenant_id_required(client):
    resp = client.get("/api/v1/plans")
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_status_change_and_delete(client, tenant, subscriber):
    with patch("app.services.subscriber.enforcement.disconnect_subscriber"):
        resp = client.post(
            f"/api/v1/subscribers/{subscriber.id}/status",
            params={"tenant_id": str(tenant.id)},
            json={"status": "suspended"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "suspended"

        resp = client.delete(
            f"/api/v1/subscribers/{subscriber.id}", params={"tenant_id": str(tenant.id)}
        )
        assert resp.status_code == 204


def test_csv_import_upload(client, tenant):
    content = b"username,password,name\nfrank,pw,Frank\ngrace,,Grace\n"
    resp = client.post(
        "/api/v1/subscribers/import",
        params={"tenant_id": str(tenant.id)},
        files={"file": ("subscribers.csv", content, "text/csv")},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["created"] == 1
    assert body["failed"] == 1
    assert body["errors"][0]["row"] == 2


def test_csv_import_requires_csv_extension(client, tenant):
    resp = client.post(
        "/api/v1/subscribers/import",
        params={"tenant_id": str(tenant.id)},
        files={"file": ("subscribers.txt", b"username\n", "text/plain")},
    )
    assert resp.status_code == 400


def test_resync_endpoint(client, db_session, tenant, subscriber):
    resp = client.post(
        f"/api/v1/radius/subscribers/{subscriber.id}/resync",
        params={"tenant_id": str(tenant.id)},
    )
    assert resp.status_code == 200
    assert radius_store.get_check_attribute(db_session, "acme_alice", "Cleartext-Password")


def test_online_sessions(client, tenant, make_session):
    make_session("acme_alice")
    make_session("beta_bob")

    resp = client.get("/api/v1/radius/online", params={"tenant_slug": "acme"})
    assert resp.status_code == 200
    body = resp.json()
    assert [item["subscriber_username"] for item in body] == ["alice"]


def test_session_history(client, tenant, make_session):
    make_session("acme_alice")
    resp = client.get("/api/v1/radius/sessions", params={"tenant_slug": "acme", "page_size": 10})
    assert resp.status_code == 200
    assert resp.json()["meta"]["total"] == 1


def test_lifecycle_run_without_body(client, tenant):
    resp = client.post("/api/v1/lifecycle/grace-period/run")
    assert resp.status_code == 200
    body = resp.json()
    assert body["tenants_scanned"] == 1
    assert body["failures"] == 0


def test_stale_session_cleanup_endpoint(client, make_session):
    make_session("acme_alice", started_minutes_ago=120, updated_minutes_ago=90)
    resp = client.post("/api/v1/radius/sessions/cleanup", json={"stale_minutes": 30})
    assert resp.status_code == 200
    assert resp.json() == {"closed": 1}


def test_underscore_tenant_slug_rejected(client):
    resp = client.get("/api/v1/radius/online", params={"tenant_slug": "acme_x"})
    assert resp.status_code == 422

    resp = client.post(
        "/api/v1/radius/sessions/cleanup", json={"tenant_slug": "acme_x", "stale_minutes": 30}
    )
    assert resp.status_code == 422
