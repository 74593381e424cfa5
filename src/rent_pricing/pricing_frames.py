# This module flattens engine results into pandas frames for checks, reports, and exports.
# One row per unit carries the rents, the delta, every flag, and a per-term price column.
# Keeping the flattening here leaves the pricing engine free of any dataframe dependency.

from __future__ import annotations

import pandas as pd

from src.rent_pricing.pricing_engine import PricingEngineResult
from src.rent_pricing.reason_codes import PriceFlags, primary_reason, reason_summary

FLAG_COLUMNS = [f"flag_{name}" for name in PriceFlags().to_dict()]

UNIT_FRAME_COLUMNS = [
    "unit_id",
    "floorplan_code",
    "baseline_source",
    "previous_rent",
    "baseline_rent",
    "min_floor",
    "floor_basis",
    "lower_tier_reference_rent",
    "reference_term",
    "reference_rent",
    "dollar_change",
    "percent_change",
    "trend_direction",
    "trend_magnitude",
    "conversion_nudge",
    "vacancy_age_discount",
    *FLAG_COLUMNS,
    "reason_types",
    "primary_reason",
    "reason_summary",
]


def unit_results_to_frame(result: PricingEngineResult) -> pd.DataFrame:
    rows: list[dict[str, object]] = []
    for unit_result in result.unit_pricing.values():
        row: dict[str, object] = {
            "unit_id": unit_result.unit_id,
            "floorplan_code": unit_result.floorplan_code,
            "baseline_source": unit_result.baseline_source,
            "previous_rent": unit_result.delta.previous,
            "baseline_rent": unit_result.baseline_rent,
            "min_floor": unit_result.debug.get("min_floor"),
            "floor_basis": unit_result.debug.get("floor_basis"),
            "lower_tier_reference_rent": unit_result.debug.get("lower_tier_reference_rent"),
            "reference_term": unit_result.reference_term,
            "reference_rent": unit_result.reference_rent,
            "dollar_change": unit_result.delta.dollar_change,
            "percent_change": unit_result.delta.percent_change,
            "trend_direction": unit_result.debug.get("trend_direction"),
            "trend_magnitude": unit_result.debug.get("trend_magnitude"),
            "conversion_nudge": unit_result.debug.get("conversion_nudge"),
            "vacancy_age_discount": unit_result.debug.get("vacancy_age_discount"),
            "reason_types": sorted({reason.type for reason in unit_result.reasons if reason.applied}),
            "primary_reason": primary_reason(unit_result.reasons),
            "reason_summary": reason_summary(unit_result.reasons),
        }
        for name, value in unit_result.flags.to_dict().items():
            row[f"flag_{name}"] = value
        for quote in unit_result.term_pricing:
            row[f"term_{quote.term}"] = quote.price
        rows.append(row)

    if not rows:
        return pd.DataFrame(columns=UNIT_FRAME_COLUMNS)
    frame = pd.DataFrame(rows)
    term_columns = [column for column in frame.columns if column.startswith("term_")]
    return frame[UNIT_FRAME_COLUMNS + term_columns]


def floorplan_results_to_frame(result: PricingEngineResult) -> pd.DataFrame:
    rows = [
        {
            "code": fp.code,
            "name": fp.name,
            "bedrooms": fp.bedrooms,
            "total_units": fp.total_units,
            "vacant_units": fp.vacant_units,
            "on_notice_units": fp.on_notice_units,
            "trending": fp.trending,
            "trend_direction": fp.trend_direction,
            "trend_magnitude": fp.trend_magnitude,
            "baseline_rent": fp.baseline_rent,
            "reference_term": fp.reference_term,
            "reference_rent": fp.reference_rent,
            "lower_tier_reference_rent": fp.lower_tier_reference_rent,
        }
        for fp in result.floorplan_pricing.values()
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "code",
            "name",
            "bedrooms",
            "total_units",
            "vacant_units",
            "on_notice_units",
            "trending",
            "trend_direction",
            "trend_magnitude",
            "baseline_rent",
            "reference_term",
            "reference_rent",
            "lower_tier_reference_rent",
        ],
    )


def reason_type_summary(unit_frame: pd.DataFrame) -> pd.DataFrame:
    if unit_frame.empty:
        return pd.DataFrame(columns=["reason_type", "unit_count"])
    exploded = unit_frame[["reason_types"]].explode("reason_types").dropna()
    return (
        exploded.groupby("reason_types")
        .size()
        .reset_index(name="unit_count")
        .rename(columns={"reason_types": "reason_type"})
    )
