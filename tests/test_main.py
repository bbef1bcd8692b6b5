from fastapi.testclient import TestClient

from backend.app.main import app

client = TestClient(app)


def test_read_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"app": "Guardian Link Service", "status": "ok"}


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_link_routers_are_mounted():
    paths = client.get("/openapi.json").json()["paths"]
    assert "/schools/{school_id}/guardian-links" in paths
    assert "/schools/{school_id}/guardian-links/{request_id}/confirm" in paths
    assert "/schools/{school_id}/link-incidents" in paths
    assert "/schools/{school_id}/link-retention" in paths
    assert "/auth/me" in paths


def test_school_routes_require_a_bearer_token():
    response = client.get("/schools/school-1/guardian-links")
    assert response.status_code == 401
