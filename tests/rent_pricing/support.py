# This file provides shared builders for rent pricing tests.
# It exists so every test prices against the same policy and market fixtures.
# The standard policy mirrors configs/pricing_policy.yaml with vacancy and seasonality switched on.

from __future__ import annotations

from datetime import date

from src.rent_pricing.models import (
    CarryForwardBaseline,
    CommunityMetrics,
    FloorplanTrend,
    LeadsApps,
    MarketContext,
    UnitState,
)
from src.rent_pricing.pricing_config import PricingConfig, VacancyAgePolicy

TODAY = date(2025, 1, 15)
BEDROOMS = {"S0": 0, "A1": 1, "B2": 2}


def standard_config(**overrides: object) -> PricingConfig:
    values: dict[str, object] = {
        "min_gap_to_next_tier": {"S0": 100.0, "A1": 150.0, "B2": 100.0},
        "stop_down_buffer": {"S0": 50.0, "A1": 75.0, "B2": 50.0},
        "vacancy_age_pricing": VacancyAgePolicy(enabled=True),
        "seasonality_enabled": True,
    }
    values.update(overrides)
    return PricingConfig(**values)  # type: ignore[arg-type]


def trend(code: str, trending: float, *, band_low: float = 0.93, band_high: float = 0.96) -> FloorplanTrend:
    return FloorplanTrend(
        code=code,
        trending=trending,
        current=trending,
        band_low=band_low,
        band_high=band_high,
        bedrooms=BEDROOMS.get(code, 0),
    )


def unit(
    unit_id: str,
    floorplan_code: str,
    *,
    current_rent: float = 0.0,
    vacant_days: float = 0.0,
    status: str = "occupied",
) -> UnitState:
    return UnitState(
        unit_id=unit_id,
        floorplan_code=floorplan_code,
        status=status,
        current_rent=current_rent,
        vacant_days=vacant_days,
    )


def context(
    trends: dict[str, float],
    *,
    community: float = 0.95,
    today: date = TODAY,
    leads_apps: dict[str, LeadsApps | None] | None = None,
    carry_forward: dict[str, float] | None = None,
    starting_rents: dict[str, float] | None = None,
) -> MarketContext:
    baselines = {
        unit_id: CarryForwardBaseline(
            unit_id=unit_id,
            floorplan_code="",
            prior_approved_rent=rent,
            prior_approved_date="2025-01-08",
        )
        for unit_id, rent in (carry_forward or {}).items()
    }
    return MarketContext(
        floorplan_trends={code: trend(code, value) for code, value in trends.items()},
        community=CommunityMetrics(trending_occupancy=community, current_occupancy=community, target=0.95),
        today=today,
        leads_apps=dict(leads_apps or {}),
        carry_forward_baselines=baselines,
        starting_rents=dict(starting_rents or {}),
    )
