from fastapi.testclient import TestClient

from mssp.main import app

client = TestClient(app)


def test_health_check_returns_ok_status_and_version() -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["status"] == "ok"
    assert "version" in payload["data"]
    assert payload["data"]["version"]


def test_admin_routes_require_a_bearer_token() -> None:
    response = client.get("/api/v1/admin/custom-field-definitions")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHENTICATED"
