import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    from skillforge.main import app
    return TestClient(app)


class TestApp:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "X-Request-ID" in response.headers
        assert "X-Processing-Time" in response.headers

    def test_health_head(self, client):
        assert client.head("/health").status_code == 200

    def test_routes_registered(self, client):
        paths = {route.path for route in client.app.routes}

        assert "/api/jobs/{job_id}/match-preview" in paths
        assert "/api/jobs/applications/{application_id}/move-round" in paths
        assert "/api/jobs/applications/bulk-action" in paths
        assert "/api/recruiters/dashboard-stats" in paths

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
