# This module picks the rent every movement and guardrail is measured against.
# Prior approved rents win so prices do not snap back between runs, then current rent, then starting rent.
# The resolved source is kept on the result so the carry-forward flag is auditable.
# Present but unusable prior or starting rents are skipped with a dataQuality reason.

from __future__ import annotations

from dataclasses import dataclass

from src.rent_pricing.models import MarketContext, UnitState, positive_or_none
from src.rent_pricing.pricing_config import PricingConfig
from src.rent_pricing.reason_codes import PriceReason

DEFAULT_STARTING_RENT = 1000.0

SOURCE_CARRY_FORWARD = "carryForward"
SOURCE_CURRENT_RENT = "currentRent"
SOURCE_STARTING_RENT = "startingRent"


@dataclass(frozen=True)
class BaselineResolution:
    baseline: float
    source: str
    reasons: tuple[PriceReason, ...] = ()


def _invalid_input_reason(label: str, value: object) -> PriceReason:
    return PriceReason(
        type="dataQuality",
        description=f"Invalid {label} {value!r} ignored",
        value=0.0,
    )


def resolve_baseline(unit: UnitState, config: PricingConfig, context: MarketContext) -> BaselineResolution:
    quality: list[PriceReason] = []
    if config.enable_carry_forward:
        carry_forward = context.carry_forward_baselines.get(unit.unit_id)
        prior_rent = positive_or_none(carry_forward.prior_approved_rent) if carry_forward else None
        if carry_forward is not None and prior_rent is not None:
            approved_on = carry_forward.prior_approved_date or "unknown date"
            reason = PriceReason(
                type="carryForward",
                description=f"Using prior approved rent ${round(prior_rent)} ({approved_on})",
                value=prior_rent,
            )
            return BaselineResolution(baseline=prior_rent, source=SOURCE_CARRY_FORWARD, reasons=(reason,))
        if carry_forward is not None and carry_forward.prior_approved_rent is not None:
            quality.append(_invalid_input_reason("prior approved rent", carry_forward.prior_approved_rent))

    current_rent = positive_or_none(unit.current_rent)
    if current_rent is not None:
        reason = PriceReason(
            type="carryForward",
            description=f"Using current rent ${round(current_rent)}",
            value=current_rent,
        )
        return BaselineResolution(baseline=current_rent, source=SOURCE_CURRENT_RENT, reasons=(*quality, reason))

    configured = context.starting_rents.get(unit.floorplan_code)
    starting_rent = positive_or_none(configured)
    if configured is not None and starting_rent is None:
        quality.append(_invalid_input_reason(f"starting rent for {unit.floorplan_code}", configured))
    starting_rent = starting_rent or DEFAULT_STARTING_RENT
    reason = PriceReason(
        type="carryForward",
        description=f"Using starting rent ${round(starting_rent)} (fallback)",
        value=starting_rent,
    )
    return BaselineResolution(baseline=starting_rent, source=SOURCE_STARTING_RENT, reasons=(*quality, reason))
