"""Tests for the HTTP API"""

import pytest
from fastapi.testclient import TestClient

from resource_engine.api.app import create_app, status_for
from resource_engine.exceptions import (
    ExperimentError,
    LedgerError,
    ResourceNotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from resource_engine.integration import ResourceEngineServices


PROFILE = {
    "anonymous_id": "u_7f3a9c",
    "risk": {"latest": {"depression_score": 6, "anxiety_score": 5}},
    "demographics": {
        "language": "bn",
        "country_of_origin": "Bangladesh",
        "employment_sector": "Construction",
        "location": {"country": "Singapore"}
    }
}


@pytest.fixture
def services():
    return ResourceEngineServices()


@pytest.fixture
def client(services):
    """Create test client over fresh services"""
    return TestClient(create_app(services))


def _recommend(client, **body):
    return client.post("/recommendations", json={"profile": PROFILE, **body})


def test_run_api_server_uses_factory(monkeypatch):
    """Test the server builds its app through create_app on startup"""
    from resource_engine import main
    from resource_engine.api import app as app_module

    calls = []
    monkeypatch.setattr(main, "initialize_app", lambda: None)
    monkeypatch.setattr(main.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))

    main.run_api_server(host="127.0.0.1", port=9000, reload=False)

    target, kwargs = calls[0]
    assert target == "resource_engine.api.app:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == 9000
    assert not hasattr(app_module, "app")


@pytest.mark.parametrize("exc,expected", [
    (ValidationError("bad"), 422),
    (ResourceNotFoundError("missing"), 404),
    (UpstreamUnavailableError("down"), 503),
    (ExperimentError("no such experiment"), 400),
    (LedgerError("disk full"), 500),
])
def test_status_for(exc, expected):
    """Test engine exceptions map to HTTP statuses"""
    assert status_for(exc) == expected


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "operational"


def test_health(client):
    """Test health reports each component"""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_status"] == "healthy"
    assert data["components"]["catalog"]["active_resources"] > 0
    assert "X-Request-ID" in response.headers


def test_request_id_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_get_recommendations(client):
    """Test recommendations are returned with localized names"""
    response = _recommend(client, max_recommendations=10)

    assert response.status_code == 200
    data = response.json()
    assert data["anonymous_id"] == "u_7f3a9c"
    assert 0 < data["total"] <= 10
    assert data["total"] == len(data["recommendations"])

    hotline = next(r for r in data["recommendations"] if r["resource_id"] == "crisis_bn_hotline")
    assert hotline["urgency"] == "urgent"
    assert hotline["recommendation_id"].startswith("rec_")
    assert hotline["name"] != ""


def test_recommendations_with_variant(client):
    response = _recommend(client, assignment_id="control_content_based")

    assert response.status_code == 200
    assert all(r["strategy"] == "content-based" for r in response.json()["recommendations"])


def test_recommendations_empty_catalog():
    """Test an empty catalog is a successful empty answer"""
    client = TestClient(create_app(ResourceEngineServices(resources=[])))

    response = _recommend(client)

    assert response.status_code == 200
    assert response.json()["recommendations"] == []
    assert response.json()["total"] == 0


def test_recommendations_invalid_profile(client):
    """Test malformed profiles are rejected with 422"""
    response = client.post("/recommendations", json={"profile": {"anonymous_id": "x"}})

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "ValidationError"
    assert data["details"]["validation_errors"]


def test_recommendations_over_limit(client):
    response = _recommend(client, max_recommendations=1000)

    assert response.status_code == 422


def test_search(client):
    """Test directory search with language and distance"""
    response = client.post("/resources/search", json={
        "filter": {"languages": ["bn"], "location": {"max_distance": 10}},
        "requester_location": {"latitude": 1.3521, "longitude": 103.8198},
        "language": "zh"
    })

    assert response.status_code == 200
    data = response.json()
    ids = [r["resource_id"] for r in data["results"]]
    assert "dormitory_support_hub" in ids
    hub = next(r for r in data["results"] if r["resource_id"] == "dormitory_support_hub")
    assert hub["name"] == "宿舍心理健康支援中心"
    assert hub["distance_km"] == 0.0


def test_search_malformed_filter(client):
    response = client.post("/resources/search", json={"filter": {"location": {"max_distance": 10}}})

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_search_invalid_sort(client):
    response = client.post("/resources/search", json={"filter": {"sort_by": "popularity"}})

    assert response.status_code == 422


def test_track_interaction(client):
    """Test interactions on served recommendations are recorded"""
    rec_id = _recommend(client).json()["recommendations"][0]["recommendation_id"]

    response = client.post("/interactions", json={
        "recommendation_id": rec_id,
        "payload": {"type": "rate", "rating": 5, "helpfulness": 4}
    })

    assert response.status_code == 200
    assert response.json()["recorded"] is True
    assert response.json()["event_id"].startswith("evt_")


def test_track_unknown_interaction(client):
    """Test unknown recommendation ids are accepted and ignored"""
    response = client.post("/interactions", json={
        "recommendation_id": "rec_missing",
        "payload": {"type": "view"}
    })

    assert response.status_code == 200
    assert response.json() == {"recorded": False, "event_id": None}


def test_track_invalid_payload(client):
    response = client.post("/interactions", json={
        "recommendation_id": "rec_missing",
        "payload": {"type": "rate", "rating": 9}
    })

    assert response.status_code == 422


def test_analytics(client):
    _recommend(client, max_recommendations=2)

    response = client.get("/analytics")

    assert response.status_code == 200
    data = response.json()
    assert data["overview"]["total_recommendations"] == 2
    assert "recommendation_strategies_2025" in data["experiment_results"]


def test_analytics_inverted_range(client):
    """Test an inverted time range is a validation error"""
    response = client.get("/analytics", params={
        "start": "2025-12-01T00:00:00",
        "end": "2025-11-01T00:00:00"
    })

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_analytics_aware_range(client):
    """Test UTC-suffixed bounds are accepted"""
    _recommend(client, max_recommendations=2)

    response = client.get("/analytics", params={"start": "2000-01-01T00:00:00Z", "end": "2999-01-01T00:00:00+08:00"})

    assert response.status_code == 200
    assert response.json()["overview"]["total_recommendations"] == 2


def test_list_resources(client, services):
    response = client.get("/resources")

    assert response.status_code == 200
    assert len(response.json()) == len(services.catalog.get_all_resources())


def test_list_resources_by_category(client):
    response = client.get("/resources", params={"category": "helplines"})

    assert [r["id"] for r in response.json()] == ["crisis_bn_hotline"]


def test_get_resource(client):
    response = client.get("/resources/therapy_multilingual")

    assert response.status_code == 200
    assert response.json()["id"] == "therapy_multilingual"


def test_get_missing_resource(client):
    """Test unknown resources are 404s"""
    response = client.get("/resources/missing")

    assert response.status_code == 404
    assert response.json()["error"] == "ResourceNotFoundError"


def test_submit_feedback(client):
    """Test feedback recomputes the resource rating"""
    response = client.post("/resources/peer_filipino_circle/feedback", json={
        "user_id": "u_1",
        "rating": 5,
        "comment": "Very welcoming"
    })

    assert response.status_code == 201
    data = response.json()
    assert data["feedback_id"].startswith("feedback_")
    assert data["total_reviews"] >= 1


def test_feedback_for_missing_resource(client):
    response = client.post("/resources/missing/feedback", json={"user_id": "u_1", "rating": 5})

    assert response.status_code == 404


def test_track_utilization(client):
    response = client.post("/resources/dormitory_support_hub/utilization", json={
        "action": "qr_scan",
        "country": "Bangladesh"
    })

    assert response.status_code == 202
    assert response.json()["counts"]["qr_scan"] == 1


def test_resource_analytics(client):
    client.post("/resources/dormitory_support_hub/utilization", json={"action": "view"})

    response = client.get("/resources/dormitory_support_hub/analytics")

    assert response.status_code == 200


def test_list_experiments(client):
    response = client.get("/experiments")

    assert response.status_code == 200
    assert {e["id"] for e in response.json()} == {"recommendation_strategies_2025", "crisis_optimization_2025"}


def test_statistics(client):
    _recommend(client, max_recommendations=1)

    response = client.get("/statistics")

    assert response.status_code == 200
    assert response.json()["recommendations_served"] == 1


def test_metrics(client):
    """Test Prometheus metrics are exported"""
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "resource_engine" in response.text
