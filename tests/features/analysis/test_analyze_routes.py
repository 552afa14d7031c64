from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.features.analysis.routes.analyze import get_analysis_service
from app.features.analysis.schemas.analysis import (
    AnalysisRun,
    BatchItem,
    BatchResult,
    BatchSummary,
    CheckStatus,
    EvaluationResult,
)
from app.features.analysis.services.scoring import summarize
from app.platform.exceptions import NavigationTimeoutError


def sample_run():
    results = [
        EvaluationResult(id="a11y-001", name="Color Contrast Ratio", description="d", category="accessibility",
                         impact="critical", status=CheckStatus.passed, details="ok"),
        EvaluationResult(id="seo-001", name="Title Tag", description="d", category="seo",
                         impact="critical", status=CheckStatus.warning, details="short"),
    ]
    return AnalysisRun(
        analysis_id="run-1",
        url="https://example.com",
        timestamp="2026-01-01T00:00:00+00:00",
        results=results,
        summary=summarize(results),
        processing_time=4200,
        report_url="/static/analysis/reports/run-1-report.html",
    )


@pytest.fixture
def service(test_app):
    service = MagicMock()
    service.run_analysis = AsyncMock(return_value=sample_run())
    service.run_batch = AsyncMock(return_value=BatchResult(
        batch_id="batch-1",
        timestamp="2026-01-01T00:00:00+00:00",
        summary=BatchSummary(total=1, successful=1, failed=0, success_rate=100),
        results=[BatchItem(url="https://example.com", score=50, analysis_id="run-1", processing_time=4200)],
    ))
    test_app.dependency_overrides[get_analysis_service] = lambda: service
    yield service
    test_app.dependency_overrides.pop(get_analysis_service, None)


def test_analyze_returns_grouped_results(client, service):
    response = client.post("/api/v1/analyze", json={"url": "https://example.com"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    data = payload["data"]
    assert data["analysis_id"] == "run-1"
    assert data["summary"]["score"] == 50
    assert [r["id"] for r in data["categories"]["accessibility"]] == ["a11y-001"]
    assert data["categories"]["security"] == []
    assert data["results"][1]["status"] == "warning"
    assert data["report_url"] == "/static/analysis/reports/run-1-report.html"


def test_analyze_normalizes_url_and_passes_options(client, service):
    client.post(
        "/api/v1/analyze",
        json={
            "url": "example.com",
            "viewports": [{"name": "mobile", "width": 375, "height": 667}],
            "options": {"timeout": 15000, "wait_for_selector": "#main", "generate_report": False},
        },
    )

    url, viewports, options = service.run_analysis.await_args.args
    assert url == "https://example.com"
    assert viewports[0].name == "mobile"
    assert options.timeout == 15000
    assert options.wait_for_selector == "#main"
    assert options.generate_report is False


def test_analyze_rejects_non_http_scheme(client, service):
    response = client.post("/api/v1/analyze", json={"url": "ftp://example.com"})

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "INVALID_PROTOCOL"
    service.run_analysis.assert_not_awaited()


def test_analyze_blocks_private_hosts_in_production(client, service):
    with patch("app.features.analysis.routes.analyze.settings.ENVIRONMENT", "production"):
        response = client.post("/api/v1/analyze", json={"url": "http://192.168.1.10"})

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "PRIVATE_IP_BLOCKED"


def test_analyze_allows_private_hosts_locally(client, service):
    response = client.post("/api/v1/analyze", json={"url": "http://localhost:8000"})

    assert response.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"url": "https://example.com", "options": {"timeout": 1000}},
        {"url": "https://example.com", "viewports": [{"name": "tiny", "width": 50, "height": 50}]},
    ],
)
def test_analyze_validation_errors(client, service, body):
    response = client.post("/api/v1/analyze", json=body)

    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


def test_analyze_maps_app_errors(client, service):
    service.run_analysis.side_effect = NavigationTimeoutError(
        "Navigation timeout after 30000ms", details={"url": "https://example.com", "timeout": 30000}
    )

    response = client.post("/api/v1/analyze", json={"url": "https://example.com"})

    assert response.status_code == 504
    payload = response.json()
    assert payload["status"] == "error"
    assert payload["message"] == "Navigation timeout after 30000ms"
    assert payload["data"]["code"] == "TIMEOUT_ERROR"
    assert payload["data"]["details"]["timeout"] == 30000


def test_batch(client, service):
    response = client.post("/api/v1/analyze/batch", json={"urls": ["https://example.com"]})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["batch_id"] == "batch-1"
    assert data["summary"]["success_rate"] == 100
    assert data["results"][0]["score"] == 50


def test_batch_rejects_too_many_urls(client, service):
    urls = [f"https://site{i}.com" for i in range(101)]

    response = client.post("/api/v1/analyze/batch", json={"urls": urls})

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "TOO_MANY_URLS"
    service.run_batch.assert_not_awaited()


def test_batch_requires_urls(client, service):
    response = client.post("/api/v1/analyze/batch", json={"urls": []})

    assert response.status_code == 422
