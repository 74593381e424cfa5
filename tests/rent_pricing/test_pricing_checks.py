# This test file validates the flattened result frames and the post-run invariant checks.
# Corrupted frames must fail the right check, and strict mode must block persistence.

from __future__ import annotations

from datetime import UTC, datetime

import pandas as pd
import pytest

from src.rent_pricing.pricing_checks import PricingCheckError, enforce_pricing_checks, run_pricing_checks
from src.rent_pricing.pricing_engine import price_all_units
from src.rent_pricing.pricing_frames import (
    FLAG_COLUMNS,
    floorplan_results_to_frame,
    reason_type_summary,
    unit_results_to_frame,
)
from tests.rent_pricing.support import context, standard_config, unit

CALCULATED_AT = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


def _priced_frame() -> pd.DataFrame:
    units = [
        unit("S0-001", "S0", current_rent=1200),
        unit("A1-101", "A1", current_rent=1250),
        unit("A1-102", "A1", current_rent=1500, vacant_days=60, status="vacant"),
    ]
    result = price_all_units(units, standard_config(), context({"S0": 0.94, "A1": 0.80}), calculated_at=CALCULATED_AT)
    return unit_results_to_frame(result)


def test_unit_frame_has_flags_terms_and_reasons() -> None:
    frame = _priced_frame()

    assert len(frame) == 3
    assert set(FLAG_COLUMNS).issubset(frame.columns)
    assert [f"term_{term}" for term in range(2, 15)] == [column for column in frame.columns if column.startswith("term_")]
    assert frame["reason_types"].apply(lambda value: isinstance(value, list)).all()
    assert (frame["term_14"] == frame["reference_rent"]).all()
    assert frame["primary_reason"].astype(str).str.len().gt(0).all()


def test_floorplan_frame_is_bedroom_ordered() -> None:
    units = [unit("A1-101", "A1", current_rent=1250), unit("S0-001", "S0", current_rent=1200)]
    result = price_all_units(units, standard_config(), context({"S0": 0.94, "A1": 0.94}), calculated_at=CALCULATED_AT)

    frame = floorplan_results_to_frame(result)

    assert frame["code"].tolist() == ["S0", "A1"]
    assert frame.loc[frame["code"] == "A1", "lower_tier_reference_rent"].iloc[0] == 1199


def test_reason_type_summary_counts_units() -> None:
    summary = reason_type_summary(_priced_frame())
    counts = dict(zip(summary["reason_type"], summary["unit_count"], strict=True))

    assert counts["carryForward"] == 3
    assert counts["vacancyAge"] == 1


def test_checks_pass_for_engine_output() -> None:
    summary = run_pricing_checks(pricing_frame=_priced_frame(), expected_units=3, pricing_config=standard_config())

    assert summary.passed is True
    assert summary.failures == []


def test_checks_flag_floor_and_unit_count_violations() -> None:
    frame = _priced_frame()
    frame.loc[0, "baseline_rent"] = frame.loc[0, "min_floor"] - 50

    summary = run_pricing_checks(pricing_frame=frame, expected_units=4, pricing_config=standard_config())
    failed = {failure["check"] for failure in summary.failures}

    assert summary.passed is False
    assert {"unit_count", "floor_invariant"}.issubset(failed)


def test_checks_flag_reference_term_mismatch() -> None:
    frame = _priced_frame()
    frame.loc[1, "term_14"] = frame.loc[1, "reference_rent"] + 10

    summary = run_pricing_checks(pricing_frame=frame, expected_units=3, pricing_config=standard_config())

    assert any(failure["check"] == "reference_term_consistency" for failure in summary.failures)


def test_empty_frame_warns_without_failing() -> None:
    summary = run_pricing_checks(
        pricing_frame=pd.DataFrame(columns=["unit_id"]), expected_units=0, pricing_config=standard_config()
    )

    assert summary.passed is True
    assert summary.warnings[0]["check"] == "empty_pricing_frame"


def test_enforce_raises_only_when_strict() -> None:
    frame = _priced_frame()
    summary = run_pricing_checks(pricing_frame=frame, expected_units=5, pricing_config=standard_config())

    enforce_pricing_checks(summary, strict_checks=False)
    with pytest.raises(PricingCheckError) as excinfo:
        enforce_pricing_checks(summary, strict_checks=True)
    assert excinfo.value.details["passed"] is False
