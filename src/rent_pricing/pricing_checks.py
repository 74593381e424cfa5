# This module implements hard quality checks over a priced unit frame.
# It exists to block a run from persisting carry-forward baselines that violate pricing invariants.
# The checks enforce unit coverage, floors, caps, tier gaps, reference-term consistency, and reasons.
# Results are structured for run summaries so operators can see exactly which rows failed.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from src.rent_pricing.pricing_config import PricingConfig

INVARIANT_TOLERANCE_DOLLARS = 1.0


class PricingCheckError(RuntimeError):
    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class PricingCheckSummary:
    passed: bool
    failures: list[dict[str, Any]]
    warnings: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"passed": self.passed, "failures": self.failures, "warnings": self.warnings}


def run_pricing_checks(
    *,
    pricing_frame: pd.DataFrame,
    expected_units: int,
    pricing_config: PricingConfig,
) -> PricingCheckSummary:
    failures: list[dict[str, Any]] = []
    warnings: list[dict[str, Any]] = []

    actual_rows = int(len(pricing_frame))
    if actual_rows != expected_units:
        failures.append({"check": "unit_count", "expected_units": expected_units, "actual_units": actual_rows})

    if pricing_frame.empty:
        warnings.append({"check": "empty_pricing_frame", "message": "No units were priced in this run."})
        return PricingCheckSummary(passed=len(failures) == 0, failures=failures, warnings=warnings)

    duplicate_count = int(pricing_frame.duplicated(subset=["unit_id"]).sum())
    if duplicate_count > 0:
        failures.append({"check": "duplicate_unit_ids", "duplicate_rows": duplicate_count})

    reference = pricing_frame["reference_rent"].astype(float)
    if reference.isna().any() or (reference < 0).any():
        failures.append(
            {
                "check": "reference_rent_valid",
                "null_rows": int(reference.isna().sum()),
                "negative_rows": int((reference < 0).sum()),
            }
        )

    baseline = pricing_frame["baseline_rent"].astype(float)
    min_floor = pricing_frame["min_floor"].astype(float)
    floor_violation = baseline < (min_floor - INVARIANT_TOLERANCE_DOLLARS)
    if floor_violation.any():
        failures.append({"check": "floor_invariant", "invalid_rows": int(floor_violation.sum())})

    previous = pricing_frame["previous_rent"].astype(float)
    moving_down = pricing_frame["trend_direction"].astype(float) < 0
    cap_limit = previous * (1 - pricing_config.max_weekly_dec)
    cap_violation = moving_down & (baseline < cap_limit - INVARIANT_TOLERANCE_DOLLARS)
    if cap_violation.any():
        failures.append({"check": "cap_invariant", "invalid_rows": int(cap_violation.sum())})

    lower_tier = pricing_frame["lower_tier_reference_rent"].astype(float)
    gaps = pricing_frame["floorplan_code"].astype(str).map(pricing_config.min_gap_to_next_tier).fillna(0.0).astype(float)
    has_lower = lower_tier.notna()
    gap_violation = has_lower & (baseline < lower_tier + gaps - INVARIANT_TOLERANCE_DOLLARS)
    if gap_violation.any():
        failures.append({"check": "tier_gap_invariant", "invalid_rows": int(gap_violation.sum())})

    reference_column = f"term_{pricing_config.reference_term}"
    if reference_column not in pricing_frame.columns:
        failures.append({"check": "reference_term_present", "missing_column": reference_column})
    else:
        mismatched = ~np.isclose(pricing_frame[reference_column].astype(float), reference)
        if mismatched.any():
            failures.append({"check": "reference_term_consistency", "invalid_rows": int(mismatched.sum())})

    term_columns = [column for column in pricing_frame.columns if column.startswith("term_")]
    if term_columns:
        term_prices = pricing_frame[term_columns].astype(float).to_numpy()
        negative_terms = np.nan_to_num(term_prices, nan=0.0) < 0
        if negative_terms.any():
            failures.append({"check": "term_prices_nonnegative", "invalid_cells": int(negative_terms.sum())})

    invalid_reason_types = pricing_frame["reason_types"].apply(lambda value: not isinstance(value, list))
    if invalid_reason_types.any():
        failures.append({"check": "reason_types_type", "invalid_rows": int(invalid_reason_types.sum())})

    empty_primary = pricing_frame["primary_reason"].isna() | (pricing_frame["primary_reason"].astype(str) == "")
    if empty_primary.any():
        failures.append({"check": "primary_reason_presence", "invalid_rows": int(empty_primary.sum())})

    fallback_rows = int((pricing_frame["baseline_source"].astype(str) == "startingRent").sum())
    if fallback_rows:
        warnings.append(
            {
                "check": "starting_rent_fallback",
                "rows": fallback_rows,
                "message": "Units priced from floorplan starting rent; no current or prior approved rent.",
            }
        )

    return PricingCheckSummary(passed=len(failures) == 0, failures=failures, warnings=warnings)


def enforce_pricing_checks(summary: PricingCheckSummary, *, strict_checks: bool) -> None:
    if summary.passed:
        return
    if strict_checks:
        raise PricingCheckError(
            "Pricing checks failed; carry-forward baselines were not saved.", details=summary.to_dict()
        )
