# This file tests API health and version endpoints.
# It exists to validate operational contracts used by orchestration and monitoring.
# The tests confirm request IDs and version metadata are always returned.

from __future__ import annotations

from tests.api.support import api_test_client, build_test_config, build_test_service


def test_health_endpoint_returns_expected_fields() -> None:
    config = build_test_config()
    with api_test_client(config=config) as client:
        response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["environment"] == "test"
    assert payload["service_name"] == config.api_name
    assert payload["api_version"] == "v1"
    assert payload["schema_version"] == config.schema_version
    assert payload["request_id"]
    assert response.headers["x-request-id"] == payload["request_id"]
    assert "timestamp" in payload


def test_health_endpoint_echoes_caller_request_id() -> None:
    with api_test_client() as client:
        response = client.get("/health", headers={"x-request-id": "trace-123"})

    assert response.json()["request_id"] == "trace-123"
    assert response.headers["x-request-id"] == "trace-123"
    assert "x-response-time-ms" in response.headers


def test_version_endpoint_returns_version_metadata() -> None:
    config = build_test_config()
    service = build_test_service(pricing_policy_version="rp-test")
    with api_test_client(config=config, pricing_service=service) as client:
        response = client.get("/version")

    assert response.status_code == 200
    payload = response.json()
    assert payload["api_version_path"] == "/api/v1"
    assert payload["schema_version"] == config.schema_version
    assert payload["app_version"] == config.app_version
    assert payload["pricing_policy_version"] == "rp-test"
    assert payload["project"] == config.api_name
    assert payload["version"] == config.app_version


def test_metrics_endpoint_exposes_request_counters() -> None:
    with api_test_client() as client:
        client.get("/health")
        response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert "api_http_requests_total" in body
    assert 'path="/health"' in body
    assert "api_http_request_duration_seconds_bucket" in body
    assert "api_http_inflight_requests" in body
