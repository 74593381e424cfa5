# This file tests the rent quote and carry-forward endpoints.
# It exists to lock the request contract, the response envelope, and the structured error codes.
# Services run against the standard test policy and an in-memory carry-forward store.

from __future__ import annotations

from typing import Any

from tests.api.support import api_test_client, build_test_service

QUOTE_PATH = "/api/v1/pricing/quote"


def _quote_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "units": [
            {"unit_id": "A1-101", "floorplan_code": "A1", "status": "Occupied", "current_rent": 1000},
            {"unit_id": "A1-102", "floorplan_code": "A1", "status": "Vacant", "current_rent": 1000, "vacant_days": 10},
        ],
        "floorplan_trends": [
            {"code": "A1", "trending": 0.80, "current": 0.80, "band_low": 0.93, "band_high": 0.96, "bedrooms": 1}
        ],
        "community": {"trending_occupancy": 0.90, "current_occupancy": 0.90, "target": 0.95},
        "today": "2025-01-15",
    }
    payload.update(overrides)
    return payload


def test_quote_returns_capped_prices_with_reasons() -> None:
    service = build_test_service()
    with api_test_client(pricing_service=service) as client:
        response = client.post(QUOTE_PATH, json=_quote_payload())

    assert response.status_code == 200
    payload = response.json()
    assert payload["api_version"] == "v1"
    assert payload["request_id"]
    assert payload["warnings"] is None

    data = payload["data"]
    assert data["pricing_policy_version"] == service.base_config.pricing_policy_version
    assert data["saved_carry_forward"] is False
    units = {row["unit_id"]: row for row in data["unit_pricing"]}
    assert units["A1-101"]["reference_term"] == 14
    assert units["A1-101"]["reference_rent"] == 950
    assert units["A1-101"]["flags"]["cap_clamped"] is True
    assert units["A1-101"]["primary_reason"] == "cap"
    assert units["A1-101"]["delta"]["dollar_change"] == -50
    assert [quote["term"] for quote in units["A1-101"]["term_pricing"]] == list(range(2, 15))
    assert units["A1-101"]["term_pricing"][0]["price"] == 1026

    floorplans = data["floorplan_pricing"]
    assert [fp["code"] for fp in floorplans] == ["A1"]
    assert floorplans[0]["total_units"] == 2
    assert floorplans[0]["vacant_units"] == 1
    assert floorplans[0]["lower_tier_reference_rent"] is None


def test_quote_fills_default_band_and_target_from_policy() -> None:
    payload = _quote_payload(
        floorplan_trends=[{"code": "A1", "trending": 0.945, "current": 0.945, "bedrooms": 1}],
        community={"trending_occupancy": 0.95, "current_occupancy": 0.95},
    )
    with api_test_client() as client:
        response = client.post(QUOTE_PATH, json=payload)

    assert response.status_code == 200
    unit = response.json()["data"]["unit_pricing"][0]
    assert unit["flags"]["inside_comfort_band"] is True
    assert unit["reference_rent"] == 1000


def test_quote_with_no_units_returns_warning() -> None:
    with api_test_client() as client:
        response = client.post(QUOTE_PATH, json=_quote_payload(units=[]))

    assert response.status_code == 200
    assert response.json()["data"]["unit_pricing"] == []
    assert response.json()["warnings"] == ["No units supplied; nothing was priced."]


def test_quote_rejects_invalid_policy_override() -> None:
    with api_test_client() as client:
        response = client.post(QUOTE_PATH, json=_quote_payload(policy_overrides={"max_weekly_dec": 1.5}))

    assert response.status_code == 400
    payload = response.json()
    assert payload["error_code"] == "INVALID_POLICY"
    assert "max_weekly_dec" in payload["message"]
    assert payload["details"] == {"policy_overrides": ["max_weekly_dec"]}


def test_quote_applies_valid_policy_override() -> None:
    with api_test_client() as client:
        response = client.post(QUOTE_PATH, json=_quote_payload(policy_overrides={"max_weekly_dec": 0.02}))

    assert response.status_code == 200
    units = {row["unit_id"]: row for row in response.json()["data"]["unit_pricing"]}
    assert units["A1-101"]["reference_rent"] == 980


def test_quote_validation_error_uses_error_envelope() -> None:
    payload = _quote_payload()
    payload.pop("community")
    with api_test_client() as client:
        response = client.post(QUOTE_PATH, json=payload)

    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert body["message"] == "Invalid request payload."
    assert body["request_id"]


def test_save_requires_property_id() -> None:
    with api_test_client() as client:
        response = client.post(QUOTE_PATH, json=_quote_payload(save_carry_forward=True))

    assert response.status_code == 400
    assert response.json()["error_code"] == "PROPERTY_ID_REQUIRED"


def test_carry_forward_round_trip_through_quote() -> None:
    service = build_test_service()
    with api_test_client(pricing_service=service) as client:
        missing = client.get("/api/v1/pricing/carry-forward/prop-1")
        saved = client.post(QUOTE_PATH, json=_quote_payload(property_id="prop-1", save_carry_forward=True))
        stored = client.get("/api/v1/pricing/carry-forward/prop-1")
        requote = client.post(
            QUOTE_PATH,
            json=_quote_payload(
                property_id="prop-1",
                use_stored_carry_forward=True,
                floorplan_trends=[
                    {"code": "A1", "trending": 0.945, "current": 0.945, "band_low": 0.93, "band_high": 0.96, "bedrooms": 1}
                ],
            ),
        )

    assert missing.status_code == 404
    assert missing.json()["error_code"] == "CARRY_FORWARD_NOT_FOUND"

    assert saved.status_code == 200
    assert saved.json()["data"]["saved_carry_forward"] is True

    assert stored.status_code == 200
    snapshot = stored.json()["data"]
    assert snapshot["property_id"] == "prop-1"
    rents = {row["unit_id"]: row["prior_approved_rent"] for row in snapshot["units"]}
    assert rents["A1-101"] == 950
    assert snapshot["units"][0]["prior_approved_date"] == "2025-01-15"

    assert requote.status_code == 200
    units = {row["unit_id"]: row for row in requote.json()["data"]["unit_pricing"]}
    assert units["A1-101"]["baseline_source"] == "carryForward"
    assert units["A1-101"]["flags"]["carry_forward_used"] is True
    assert units["A1-101"]["delta"]["previous"] == 950
    assert units["A1-101"]["reference_rent"] == 950


def test_request_carry_forward_rows_override_stored_rows() -> None:
    payload = _quote_payload(
        floorplan_trends=[{"code": "A1", "trending": 0.945, "current": 0.945, "band_low": 0.93, "band_high": 0.96, "bedrooms": 1}],
        carry_forward_baselines=[
            {"unit_id": "A1-101", "floorplan_code": "A1", "prior_approved_rent": 1040, "prior_approved_date": "2025-01-08"}
        ],
    )
    with api_test_client() as client:
        response = client.post(QUOTE_PATH, json=payload)

    units = {row["unit_id"]: row for row in response.json()["data"]["unit_pricing"]}
    assert units["A1-101"]["reference_rent"] == 1040
    assert units["A1-102"]["baseline_source"] == "currentRent"
