# This module classifies unit statuses and computes the box score occupancy metrics.
# Trending occupancy counts preleased units and discounts notices so pricing reacts ahead of move-outs.
# Box scores roll up into the floorplan trends and community metrics the trend calculator reads.

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from src.rent_pricing.models import CommunityMetrics, FloorplanTrend, UnitState, is_finite_number

OCCUPIED = "occupied"
VACANT = "vacant"
ON_NOTICE = "on_notice"
PRELEASED = "preleased"
UNKNOWN = "unknown"


def _normalize(status: str | None) -> str:
    return str(status or "").strip().lower().replace("-", "_").replace(" ", "_")


def classify_status(status: str | None, *, prelease_start_date: date | None, today: date) -> str:
    normalized = _normalize(status)
    if not normalized:
        return UNKNOWN
    if "notice" in normalized and ("rented" in normalized or "leased" in normalized):
        if prelease_start_date is not None and today >= prelease_start_date:
            return PRELEASED
        return ON_NOTICE
    if "notice" in normalized:
        return ON_NOTICE
    if "prelease" in normalized:
        return PRELEASED
    if "vacant" in normalized:
        return VACANT
    if normalized in {"occupied", "offline", "model", "down"} or normalized.startswith("occupied"):
        return OCCUPIED
    return UNKNOWN


@dataclass(frozen=True)
class BoxScore:
    total_units: int
    occupied: int
    vacant: int
    on_notice: int
    preleased: int
    unknown: int
    occupancy_rate: float
    trending_occupancy: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_units": self.total_units,
            "occupied": self.occupied,
            "vacant": self.vacant,
            "on_notice": self.on_notice,
            "preleased": self.preleased,
            "unknown": self.unknown,
            "occupancy_rate": self.occupancy_rate,
            "trending_occupancy": self.trending_occupancy,
        }


def _clamp_unit_interval(value: float) -> float:
    return max(0.0, min(1.0, value))


def compute_box_score(units: Iterable[UnitState], today: date) -> BoxScore:
    counts = {OCCUPIED: 0, VACANT: 0, ON_NOTICE: 0, PRELEASED: 0, UNKNOWN: 0}
    for unit in units:
        counts[classify_status(unit.status, prelease_start_date=unit.prelease_start_date, today=today)] += 1

    total = sum(counts.values())
    occupancy_rate = counts[OCCUPIED] / total if total > 0 else 0.0
    trending = (counts[OCCUPIED] + counts[PRELEASED] - counts[ON_NOTICE]) / total if total > 0 else 0.0
    return BoxScore(
        total_units=total,
        occupied=counts[OCCUPIED],
        vacant=counts[VACANT],
        on_notice=counts[ON_NOTICE],
        preleased=counts[PRELEASED],
        unknown=counts[UNKNOWN],
        occupancy_rate=_clamp_unit_interval(occupancy_rate),
        trending_occupancy=_clamp_unit_interval(trending),
    )


def box_scores_by_floorplan(units: Iterable[UnitState], today: date) -> dict[str, BoxScore]:
    grouped: dict[str, list[UnitState]] = {}
    for unit in units:
        grouped.setdefault(unit.floorplan_code, []).append(unit)
    return {code: compute_box_score(fp_units, today) for code, fp_units in sorted(grouped.items())}


def build_floorplan_trends(
    *,
    box_scores: Mapping[str, BoxScore],
    floorplan_setup: Mapping[str, Mapping[str, Any]],
    default_band_low: float,
    default_band_high: float,
) -> dict[str, FloorplanTrend]:
    trends: dict[str, FloorplanTrend] = {}
    for code, score in box_scores.items():
        setup = dict(floorplan_setup.get(code, {}))
        band_low = setup.get("band_low")
        band_high = setup.get("band_high")
        bedrooms = setup.get("bedrooms")
        trends[code] = FloorplanTrend(
            code=code,
            trending=score.trending_occupancy,
            current=score.occupancy_rate,
            band_low=float(band_low) if is_finite_number(band_low) else default_band_low,
            band_high=float(band_high) if is_finite_number(band_high) else default_band_high,
            bedrooms=int(bedrooms) if is_finite_number(bedrooms) else 0,
        )
    return trends


def build_community_metrics(community_score: BoxScore, *, target: float) -> CommunityMetrics:
    return CommunityMetrics(
        trending_occupancy=community_score.trending_occupancy,
        current_occupancy=community_score.occupancy_rate,
        target=target,
    )
