# This module defines the read-only records the rent pricing rules operate on.
# Units, floorplan trends, community metrics, and carry-forward baselines are frozen per run.
# Numeric coercion helpers live here so every rule sanitizes inputs the same way.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass(frozen=True)
class UnitState:
    unit_id: str
    floorplan_code: str
    status: str
    current_rent: float = 0.0
    vacant_days: float = 0.0
    lease_end_date: date | None = None
    prelease_start_date: date | None = None
    move_in_date: date | None = None
    amenity_adj: float = 0.0
    floorplan_label: str | None = None


@dataclass(frozen=True)
class FloorplanTrend:
    code: str
    trending: float
    current: float
    band_low: float
    band_high: float
    bedrooms: int = 0


@dataclass(frozen=True)
class CommunityMetrics:
    trending_occupancy: float
    current_occupancy: float
    target: float


@dataclass(frozen=True)
class LeadsApps:
    leads: float
    apps: float
    days_tracked: int = 30


@dataclass(frozen=True)
class CarryForwardBaseline:
    unit_id: str
    floorplan_code: str
    prior_approved_rent: float | None
    prior_approved_date: str | None = None
    term: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "floorplan_code": self.floorplan_code,
            "prior_approved_rent": self.prior_approved_rent,
            "prior_approved_date": self.prior_approved_date,
            "term": self.term,
        }


@dataclass(frozen=True)
class MarketContext:
    """Per-run snapshot of everything the pricing rules read besides the unit itself."""

    floorplan_trends: dict[str, FloorplanTrend]
    community: CommunityMetrics
    today: date
    leads_apps: dict[str, LeadsApps | None] = field(default_factory=dict)
    carry_forward_baselines: dict[str, CarryForwardBaseline] = field(default_factory=dict)
    starting_rents: dict[str, float] = field(default_factory=dict)


def is_finite_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def coerce_nonnegative(value: Any) -> tuple[float, bool]:
    """Return `(value, coerced)` where NaN, infinite, missing, or negative inputs become 0."""

    if not is_finite_number(value):
        return 0.0, value is not None
    number = float(value)
    if number < 0:
        return 0.0, True
    return number, False


def positive_or_none(value: Any) -> float | None:
    if not is_finite_number(value):
        return None
    number = float(value)
    return number if number > 0 else None
