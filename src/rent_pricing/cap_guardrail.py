# This module applies the rent guardrails to a moved baseline in a fixed order.
# Cap, floor, tier gap, then stop-down buffer; reordering changes results and breaks audits.
# Each step only ever raises the candidate and records the before/after values it used.
# Policy values are bounded here so a malformed policy cannot crash a pricing run.

from __future__ import annotations

import math
from dataclasses import dataclass

from src.rent_pricing.pricing_config import PricingConfig
from src.rent_pricing.reason_codes import PriceReason

ABSOLUTE_MIN_RENT = 500.0
CLAMP_ORDER = ("cap", "floor", "tierGap", "buffer")


@dataclass(frozen=True)
class ClampStep:
    name: str
    before: float
    after: float
    limit: float | None

    @property
    def applied(self) -> bool:
        return self.after != self.before


@dataclass(frozen=True)
class ClampResult:
    clamped: float
    min_floor: float
    steps: tuple[ClampStep, ...]
    reasons: tuple[PriceReason, ...]

    def step_applied(self, name: str) -> bool:
        return any(step.name == name and step.applied for step in self.steps)


def _bounded_rate(value: float, *, default: float) -> float:
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return min(1.0, max(0.0, float(value)))


def _dollars(value: float | None) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return max(0.0, float(value))


def apply_directional_cap(
    candidate: float, *, baseline: float, max_weekly_dec: float
) -> tuple[ClampStep, PriceReason | None]:
    max_dec = _bounded_rate(max_weekly_dec, default=0.05)
    min_allowed = baseline * (1 - max_dec)
    if candidate < min_allowed:
        reason = PriceReason(
            type="cap",
            description=(
                f"Capped to max {max_dec * 100:.0f}% decrease "
                f"(was ${round(candidate)}, capped to ${round(min_allowed)})"
            ),
            value=min_allowed - candidate,
        )
        return ClampStep("cap", candidate, min_allowed, min_allowed), reason
    return ClampStep("cap", candidate, candidate, min_allowed), None


def compute_min_floor(*, floor_basis: float, min_floor_vs_current_rent: float) -> float:
    ratio = _bounded_rate(min_floor_vs_current_rent, default=0.90)
    return max(ABSOLUTE_MIN_RENT, _dollars(floor_basis) * ratio)


def apply_floor(
    candidate: float, *, floor_basis: float, min_floor_vs_current_rent: float
) -> tuple[ClampStep, PriceReason | None]:
    min_floor = compute_min_floor(floor_basis=floor_basis, min_floor_vs_current_rent=min_floor_vs_current_rent)
    if candidate < min_floor:
        ratio = _bounded_rate(min_floor_vs_current_rent, default=0.90)
        reason = PriceReason(
            type="floor",
            description=(
                f"Floored to {ratio * 100:.0f}% of current rent "
                f"(was ${round(candidate)}, floored to ${round(min_floor)})"
            ),
            value=min_floor - candidate,
        )
        return ClampStep("floor", candidate, min_floor, min_floor), reason
    return ClampStep("floor", candidate, candidate, min_floor), None


def apply_tier_gap(
    candidate: float, *, lower_tier_reference_rent: float | None, min_gap: float | None
) -> tuple[ClampStep, PriceReason | None]:
    if lower_tier_reference_rent is None:
        return ClampStep("tierGap", candidate, candidate, None), None

    gap = _dollars(min_gap)
    min_required = lower_tier_reference_rent + gap
    if candidate < min_required:
        reason = PriceReason(
            type="tierGap",
            description=(
                f"Enforced {round(gap)} min gap to lower tier "
                f"(was ${round(candidate)}, raised to ${round(min_required)})"
            ),
            value=min_required - candidate,
        )
        return ClampStep("tierGap", candidate, min_required, min_required), reason
    return ClampStep("tierGap", candidate, candidate, min_required), None


def apply_stop_down_buffer(
    candidate: float,
    *,
    baseline: float,
    lower_tier_reference_rent: float | None,
    buffer_dollars: float | None,
) -> tuple[ClampStep, PriceReason | None]:
    buffer = _dollars(buffer_dollars)
    if lower_tier_reference_rent is None or buffer <= 0 or candidate >= baseline:
        return ClampStep("buffer", candidate, candidate, None), None

    min_allowed = lower_tier_reference_rent + buffer
    if candidate < min_allowed:
        reason = PriceReason(
            type="buffer",
            description=(
                f"Buffer guardrail kept ≥ ${round(min_allowed)} vs lower tier + {round(buffer)} "
                f"(was ${round(candidate)})"
            ),
            value=min_allowed - candidate,
        )
        return ClampStep("buffer", candidate, min_allowed, min_allowed), reason
    return ClampStep("buffer", candidate, candidate, min_allowed), None


def apply_clamp_chain(
    *,
    candidate: float,
    baseline: float,
    floor_basis: float,
    floorplan_code: str,
    lower_tier_reference_rent: float | None,
    pricing_config: PricingConfig,
) -> ClampResult:
    steps: list[ClampStep] = []
    reasons: list[PriceReason] = []

    cap_step, cap_reason = apply_directional_cap(
        candidate, baseline=baseline, max_weekly_dec=pricing_config.max_weekly_dec
    )
    floor_step, floor_reason = apply_floor(
        cap_step.after,
        floor_basis=floor_basis,
        min_floor_vs_current_rent=pricing_config.min_floor_vs_current_rent,
    )
    gap_step, gap_reason = apply_tier_gap(
        floor_step.after,
        lower_tier_reference_rent=lower_tier_reference_rent,
        min_gap=pricing_config.min_gap_to_next_tier.get(floorplan_code),
    )
    buffer_step, buffer_reason = apply_stop_down_buffer(
        gap_step.after,
        baseline=baseline,
        lower_tier_reference_rent=lower_tier_reference_rent,
        buffer_dollars=pricing_config.stop_down_buffer.get(floorplan_code),
    )

    for step, reason in (
        (cap_step, cap_reason),
        (floor_step, floor_reason),
        (gap_step, gap_reason),
        (buffer_step, buffer_reason),
    ):
        steps.append(step)
        if reason is not None:
            reasons.append(reason)

    return ClampResult(
        clamped=buffer_step.after,
        min_floor=floor_step.limit if floor_step.limit is not None else ABSOLUTE_MIN_RENT,
        steps=tuple(steps),
        reasons=tuple(reasons),
    )
