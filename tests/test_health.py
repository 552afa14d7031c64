from unittest.mock import AsyncMock, patch


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200

    payload = response.json()
    assert payload["status_code"] == 200
    assert payload["status"] == "success"
    assert payload["message"] == "Service is healthy"
    assert payload["data"]["status"] == "ok"
    assert payload["data"]["service"] == "Site Quality Checker"
    assert isinstance(payload["data"]["uptime"], int)


def test_browser_health_check_healthy(client):
    with patch(
        "app.features.health.routes.health.PageSession.health_check",
        new=AsyncMock(return_value={"status": "healthy", "response_time": 420}),
    ):
        response = client.get("/health/browser")

    assert response.status_code == 200
    assert response.json()["data"] == {"status": "healthy", "response_time": 420}


def test_browser_health_check_unhealthy(client):
    with patch(
        "app.features.health.routes.health.PageSession.health_check",
        new=AsyncMock(return_value={"status": "unhealthy", "error": "chrome not found"}),
    ):
        response = client.get("/health/browser")

    assert response.status_code == 503
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "Browser is unavailable"


def test_root_info(client):
    response = client.get("/")
    assert response.status_code == 200
    payload = response.json()
    assert payload["app_name"] == "Site Quality Checker"
    assert payload["version"] == "1.0.0"
    assert payload["docs_url"] == "/docs"
    assert payload["api_base"] == "/api/v1"
