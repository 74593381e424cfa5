# This file defines request and response schemas for the rent pricing endpoints.
# Request models mirror the pricing input records; response models mirror the engine results.
# Numeric request fields accept nulls so the engine can report data-quality reasons instead of rejecting rows.

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from src.api.schemas.common import EnvelopeFields


class UnitStateIn(BaseModel):
    unit_id: str = Field(min_length=1)
    floorplan_code: str = Field(min_length=1)
    status: str = ""
    current_rent: float | None = None
    vacant_days: float | None = None
    lease_end_date: date | None = None
    prelease_start_date: date | None = None
    move_in_date: date | None = None
    amenity_adj: float = 0.0
    floorplan_label: str | None = None


class FloorplanTrendIn(BaseModel):
    code: str = Field(min_length=1)
    trending: float = Field(ge=0, le=1)
    current: float = Field(ge=0, le=1)
    band_low: float | None = Field(default=None, ge=0, le=1)
    band_high: float | None = Field(default=None, ge=0, le=1)
    bedrooms: int = Field(default=0, ge=0)


class CommunityMetricsIn(BaseModel):
    trending_occupancy: float = Field(ge=0, le=1)
    current_occupancy: float = Field(ge=0, le=1)
    target: float | None = Field(default=None, ge=0, le=1)


class LeadsAppsIn(BaseModel):
    leads: float = Field(ge=0)
    apps: float = Field(ge=0)
    days_tracked: int = Field(default=30, ge=1)


class CarryForwardBaselineIn(BaseModel):
    unit_id: str = Field(min_length=1)
    floorplan_code: str = Field(min_length=1)
    prior_approved_rent: float | None = None
    prior_approved_date: str | None = None
    term: int | None = None


class PricingQuoteRequest(BaseModel):
    units: list[UnitStateIn]
    floorplan_trends: list[FloorplanTrendIn]
    community: CommunityMetricsIn
    today: date
    leads_apps: dict[str, LeadsAppsIn | None] = Field(default_factory=dict)
    carry_forward_baselines: list[CarryForwardBaselineIn] = Field(default_factory=list)
    starting_rents: dict[str, float] = Field(default_factory=dict)
    policy_overrides: dict[str, Any] = Field(default_factory=dict)
    property_id: str | None = None
    use_stored_carry_forward: bool = False
    save_carry_forward: bool = False


class PriceReasonOut(BaseModel):
    type: str
    description: str
    value: float
    applied: bool


class TermPricingOut(BaseModel):
    term: int
    price: int
    notes: str
    reasons: list[PriceReasonOut]


class PriceDeltaOut(BaseModel):
    previous: float
    proposed: float
    dollar_change: float
    percent_change: float


class PriceFlagsOut(BaseModel):
    trend_up: bool
    trend_down: bool
    inside_comfort_band: bool
    conversion_nudge_up: bool
    conversion_nudge_down: bool
    carry_forward_used: bool
    short_term_premium: bool
    over_cap_premium: bool
    seasonal_uplift: bool
    cap_clamped: bool
    floor_clamped: bool
    tier_gap_enforced: bool
    buffer_guardrail: bool


class UnitPricingOut(BaseModel):
    unit_id: str
    floorplan_code: str
    baseline_rent: float
    baseline_source: str
    reference_term: int
    reference_rent: int
    delta: PriceDeltaOut
    term_pricing: list[TermPricingOut]
    reasons: list[PriceReasonOut]
    flags: PriceFlagsOut
    primary_reason: str
    reason_summary: str
    debug: dict[str, Any]


class FloorplanPricingOut(BaseModel):
    code: str
    name: str
    bedrooms: int
    baseline_rent: float
    reference_term: int
    reference_rent: int
    trending: float
    trend_direction: int
    trend_magnitude: float
    total_units: int
    vacant_units: int
    on_notice_units: int
    lower_tier_reference_rent: float | None = None
    term_pricing: list[TermPricingOut]
    reasons: list[PriceReasonOut]
    flags: PriceFlagsOut


class PricingQuoteData(BaseModel):
    pricing_policy_version: str
    calculated_at: str
    unit_pricing: list[UnitPricingOut]
    floorplan_pricing: list[FloorplanPricingOut]
    config_snapshot: dict[str, Any]
    saved_carry_forward: bool = False


class PricingQuoteResponseV1(EnvelopeFields):
    data: PricingQuoteData


class CarryForwardUnitOut(BaseModel):
    unit_id: str
    floorplan_code: str
    prior_approved_rent: float | None = None
    prior_approved_date: str | None = None
    term: int | None = None


class CarryForwardSnapshotOut(BaseModel):
    property_id: str
    fp_baselines: dict[str, float]
    at: str
    units: list[CarryForwardUnitOut]


class CarryForwardResponseV1(EnvelopeFields):
    data: CarryForwardSnapshotOut
