# This module runs the full rent pricing rule order for units, floorplans, and a whole property.
# Rule order is fixed: trend, conversion nudge, baseline, cap, floor, tier gap, buffer, then terms.
# Floorplans are priced bedroom-ascending so each tier gap sees the lower tier's final reference rent.
# Everything here is a pure function of (units, config, context); no I/O and no shared state.

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from src.rent_pricing.baseline_reference import SOURCE_CARRY_FORWARD, resolve_baseline
from src.rent_pricing.cap_guardrail import apply_clamp_chain
from src.rent_pricing.models import MarketContext, UnitState, coerce_nonnegative
from src.rent_pricing.pricing_config import PricingConfig
from src.rent_pricing.reason_codes import PriceFlags, PriceReason
from src.rent_pricing.term_pricer import TermPricing, price_terms, vacancy_age_discount
from src.rent_pricing.trend_signal import compute_conversion_nudge, compute_trend_move

LOGGER = logging.getLogger("pricing.engine")


@dataclass(frozen=True)
class PriceDelta:
    previous: float
    proposed: float
    dollar_change: float
    percent_change: float


@dataclass(frozen=True)
class UnitPricingResult:
    unit_id: str
    floorplan_code: str
    baseline_rent: float
    baseline_source: str
    reference_term: int
    reference_rent: int
    delta: PriceDelta
    term_pricing: tuple[TermPricing, ...]
    reasons: tuple[PriceReason, ...]
    flags: PriceFlags
    debug: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FloorplanPricingResult:
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
    lower_tier_reference_rent: float | None
    term_pricing: tuple[TermPricing, ...]
    reasons: tuple[PriceReason, ...]
    flags: PriceFlags

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PricingEngineResult:
    unit_pricing: dict[str, UnitPricingResult]
    floorplan_pricing: dict[str, FloorplanPricingResult]
    calculated_at: datetime
    config_snapshot: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_pricing": {unit_id: result.to_dict() for unit_id, result in self.unit_pricing.items()},
            "floorplan_pricing": {code: result.to_dict() for code, result in self.floorplan_pricing.items()},
            "calculated_at": self.calculated_at.isoformat(),
            "config_snapshot": self.config_snapshot,
        }


def _sanitize_unit(unit: UnitState) -> tuple[UnitState, list[PriceReason]]:
    reasons: list[PriceReason] = []
    current_rent, rent_coerced = coerce_nonnegative(unit.current_rent)
    if rent_coerced:
        reasons.append(
            PriceReason(
                type="dataQuality",
                description=f"Invalid current rent {unit.current_rent!r} treated as 0",
                value=0.0,
            )
        )
    vacant_days, days_coerced = coerce_nonnegative(unit.vacant_days)
    if days_coerced:
        reasons.append(
            PriceReason(
                type="dataQuality",
                description=f"Invalid vacant days {unit.vacant_days!r} treated as 0",
                value=0.0,
            )
        )
    if current_rent == unit.current_rent and vacant_days == unit.vacant_days:
        return unit, reasons
    return dataclasses.replace(unit, current_rent=current_rent, vacant_days=vacant_days), reasons


def _sanitize_lower_tier(value: float | None) -> tuple[float | None, list[PriceReason]]:
    if value is None:
        return None, []
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value) and value >= 0:
        return float(value), []
    reason = PriceReason(
        type="dataQuality",
        description=f"Invalid lower-tier reference rent {value!r} ignored",
        value=0.0,
    )
    return None, [reason]


def price_unit(
    unit: UnitState,
    config: PricingConfig,
    context: MarketContext,
    lower_tier_reference_rent: float | None = None,
) -> UnitPricingResult:
    unit, reasons = _sanitize_unit(unit)
    lower_tier, lower_reasons = _sanitize_lower_tier(lower_tier_reference_rent)
    reasons.extend(lower_reasons)

    trend = compute_trend_move(unit.floorplan_code, context, config)
    reasons.extend(trend.reasons)

    conversion = compute_conversion_nudge(unit.floorplan_code, inside_band=trend.inside_band, context=context)
    reasons.extend(conversion.reasons)

    baseline = resolve_baseline(unit, config, context)
    reasons.extend(baseline.reasons)

    candidate = baseline.baseline * (1 + trend.magnitude + conversion.nudge)
    floor_basis = unit.current_rent if unit.current_rent > 0 else baseline.baseline
    clamp = apply_clamp_chain(
        candidate=candidate,
        baseline=baseline.baseline,
        floor_basis=floor_basis,
        floorplan_code=unit.floorplan_code,
        lower_tier_reference_rent=lower_tier,
        pricing_config=config,
    )
    reasons.extend(clamp.reasons)

    discount, vacancy_reason = vacancy_age_discount(unit.vacant_days, config.vacancy_age_pricing)
    if vacancy_reason is not None:
        reasons.append(vacancy_reason)

    quote = price_terms(
        clamped_baseline=clamp.clamped,
        vacancy_discount=discount,
        config=config,
        today=context.today,
    )

    flags = PriceFlags(
        trend_up=trend.direction > 0,
        trend_down=trend.direction < 0,
        inside_comfort_band=trend.inside_band,
        conversion_nudge_up=conversion.nudge > 0,
        conversion_nudge_down=conversion.nudge < 0,
        carry_forward_used=baseline.source == SOURCE_CARRY_FORWARD,
        short_term_premium=quote.short_term_premium,
        over_cap_premium=quote.over_cap_premium,
        seasonal_uplift=quote.seasonal_uplift,
        cap_clamped=clamp.step_applied("cap"),
        floor_clamped=clamp.step_applied("floor"),
        tier_gap_enforced=clamp.step_applied("tierGap"),
        buffer_guardrail=clamp.step_applied("buffer"),
    )

    previous = baseline.baseline
    proposed = quote.reference_rent
    delta = PriceDelta(
        previous=previous,
        proposed=proposed,
        dollar_change=proposed - previous,
        percent_change=((proposed - previous) / previous) * 100 if previous > 0 else 0.0,
    )

    return UnitPricingResult(
        unit_id=unit.unit_id,
        floorplan_code=unit.floorplan_code,
        baseline_rent=clamp.clamped,
        baseline_source=baseline.source,
        reference_term=quote.reference_term,
        reference_rent=quote.reference_rent,
        delta=delta,
        term_pricing=quote.term_pricing,
        reasons=tuple(reasons),
        flags=flags,
        debug={
            "trend_direction": trend.direction,
            "trend_magnitude": trend.magnitude,
            "conversion_nudge": conversion.nudge,
            "conversion_ratio": conversion.ratio,
            "candidate_rent": candidate,
            "min_floor": clamp.min_floor,
            "floor_basis": floor_basis,
            "lower_tier_reference_rent": lower_tier,
            "vacancy_age_discount": discount,
        },
    )


def price_floorplan(
    units: Sequence[UnitState],
    config: PricingConfig,
    context: MarketContext,
    lower_tier_reference_rent: float | None = None,
) -> tuple[UnitPricingResult, ...]:
    return tuple(price_unit(unit, config, context, lower_tier_reference_rent) for unit in units)


def order_floorplans(codes: Iterable[str], context: MarketContext) -> list[str]:
    """Sort floorplan codes bedroom-ascending, ties broken by code."""

    def bedrooms(code: str) -> int:
        fp_trend = context.floorplan_trends.get(code)
        return int(fp_trend.bedrooms) if fp_trend is not None else 0

    return sorted(set(codes), key=lambda code: (bedrooms(code), code))


def _status_count(units: Sequence[UnitState], token: str) -> int:
    return sum(1 for unit in units if token in str(unit.status or "").lower())


def _floorplan_summary(
    *,
    code: str,
    units: Sequence[UnitState],
    results: tuple[UnitPricingResult, ...],
    lower_tier_reference_rent: float | None,
    config: PricingConfig,
    context: MarketContext,
) -> FloorplanPricingResult:
    fp_trend = context.floorplan_trends.get(code)
    trend = compute_trend_move(code, context, config)
    first = results[0] if results else None
    label = next((unit.floorplan_label for unit in units if unit.floorplan_label), None)

    return FloorplanPricingResult(
        code=code,
        name=label or code,
        bedrooms=int(fp_trend.bedrooms) if fp_trend is not None else 0,
        baseline_rent=first.baseline_rent if first else 0.0,
        reference_term=config.reference_term,
        reference_rent=max((result.reference_rent for result in results), default=0),
        trending=float(fp_trend.trending) if fp_trend is not None else 0.0,
        trend_direction=trend.direction,
        trend_magnitude=trend.magnitude,
        total_units=len(units),
        vacant_units=_status_count(units, "vacant"),
        on_notice_units=_status_count(units, "notice"),
        lower_tier_reference_rent=lower_tier_reference_rent,
        term_pricing=first.term_pricing if first else (),
        reasons=trend.reasons,
        flags=first.flags if first else PriceFlags(),
    )


def price_all_units(
    units: Iterable[UnitState],
    config: PricingConfig,
    context: MarketContext,
    *,
    calculated_at: datetime | None = None,
) -> PricingEngineResult:
    """Price every unit floorplan by floorplan, cheapest bedroom count first.

    `calculated_at` defaults to the current UTC time, which makes `to_dict()` differ between
    calls. Pass a fixed timestamp when two runs must produce identical output.
    """

    units_by_fp: dict[str, list[UnitState]] = {}
    for unit in units:
        units_by_fp.setdefault(unit.floorplan_code, []).append(unit)

    unit_pricing: dict[str, UnitPricingResult] = {}
    floorplan_pricing: dict[str, FloorplanPricingResult] = {}

    lower_tier_reference_rent: float | None = None
    for code in order_floorplans(units_by_fp, context):
        fp_units = units_by_fp[code]
        results = price_floorplan(fp_units, config, context, lower_tier_reference_rent)
        for result in results:
            unit_pricing[result.unit_id] = result

        floorplan_pricing[code] = _floorplan_summary(
            code=code,
            units=fp_units,
            results=results,
            lower_tier_reference_rent=lower_tier_reference_rent,
            config=config,
            context=context,
        )
        LOGGER.debug(
            "Priced floorplan=%s units=%d lower_tier_reference_rent=%s",
            code,
            len(results),
            lower_tier_reference_rent,
        )
        if results:
            lower_tier_reference_rent = float(max(result.reference_rent for result in results))

    return PricingEngineResult(
        unit_pricing=unit_pricing,
        floorplan_pricing=floorplan_pricing,
        calculated_at=calculated_at or datetime.now(tz=UTC),
        config_snapshot=config.to_dict(),
    )
