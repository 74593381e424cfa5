# This module converts occupancy and lead conversion signals into a price movement.
# The trend move compares floorplan trending occupancy to its comfort band midpoint with a tanh curve.
# Inside the band the trend is damped so the small conversion nudge can steer the price.
# Missing or invalid inputs produce zero movement with a recorded reason instead of an error.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from src.rent_pricing.models import MarketContext, is_finite_number
from src.rent_pricing.pricing_config import PricingConfig
from src.rent_pricing.reason_codes import PriceReason

LOGGER = logging.getLogger("pricing.trend")

DEVIATION_SCALE_PP = 5.0
TANH_STEEPNESS = 1.4
INSIDE_BAND_DAMPING = 0.1
COMMUNITY_BIAS_THRESHOLD_PP = 1.0
COMMUNITY_BIAS_SLOPE = 0.15
COMMUNITY_BIAS_CAP = 0.3

STRONG_CONVERSION_RATIO = 0.30
WEAK_CONVERSION_RATIO = 0.10
CONVERSION_NUDGE = 0.005


@dataclass(frozen=True)
class TrendMove:
    direction: int
    magnitude: float
    inside_band: bool
    reasons: tuple[PriceReason, ...] = ()


@dataclass(frozen=True)
class ConversionNudge:
    nudge: float
    ratio: float | None
    reasons: tuple[PriceReason, ...] = ()


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def is_inside_band(floorplan_code: str, context: MarketContext) -> bool:
    fp_trend = context.floorplan_trends.get(floorplan_code)
    if fp_trend is None:
        return False
    if not all(is_finite_number(value) for value in (fp_trend.trending, fp_trend.band_low, fp_trend.band_high)):
        return False
    return fp_trend.band_low <= fp_trend.trending <= fp_trend.band_high


def _community_bias(*, sign: int, context: MarketContext) -> tuple[float, float]:
    community = context.community
    if not (is_finite_number(community.trending_occupancy) and is_finite_number(community.target)):
        return 1.0, 0.0
    delta_site_pp = (community.trending_occupancy - community.target) * 100
    if delta_site_pp > COMMUNITY_BIAS_THRESHOLD_PP and sign > 0:
        return 1 + min(COMMUNITY_BIAS_SLOPE * delta_site_pp, COMMUNITY_BIAS_CAP), delta_site_pp
    if delta_site_pp < -COMMUNITY_BIAS_THRESHOLD_PP and sign < 0:
        return 1 + min(COMMUNITY_BIAS_SLOPE * abs(delta_site_pp), COMMUNITY_BIAS_CAP), delta_site_pp
    return 1.0, delta_site_pp


def compute_trend_move(floorplan_code: str, context: MarketContext, config: PricingConfig) -> TrendMove:
    fp_trend = context.floorplan_trends.get(floorplan_code)
    if fp_trend is None or not all(
        is_finite_number(value) for value in (fp_trend.trending, fp_trend.band_low, fp_trend.band_high)
    ):
        LOGGER.debug("No usable trend data for floorplan=%s", floorplan_code)
        missing = PriceReason(
            type="trend",
            description=f"No trend data for floorplan {floorplan_code}; no movement applied",
            value=0.0,
            applied=False,
        )
        return TrendMove(direction=0, magnitude=0.0, inside_band=False, reasons=(missing,))

    inside_band = is_inside_band(floorplan_code, context)
    max_move = config.max_move()

    override = config.trend_override_pct_by_fp.get(floorplan_code)
    if override is not None and is_finite_number(override):
        magnitude = max(-max_move, min(max_move, float(override)))
        reasons: tuple[PriceReason, ...] = ()
        if magnitude != 0:
            reasons = (
                PriceReason(
                    type="trend",
                    description=f"Trend override {magnitude * 100:+.1f}% for {floorplan_code}",
                    value=magnitude,
                ),
            )
        return TrendMove(direction=_sign(magnitude), magnitude=magnitude, inside_band=inside_band, reasons=reasons)

    low_pp = fp_trend.band_low * 100
    high_pp = fp_trend.band_high * 100
    mid_pp = (low_pp + high_pp) / 2
    occ_pp = fp_trend.trending * 100
    dev_pp = occ_pp - mid_pp
    sign = _sign(dev_pp)

    magnitude = max_move * math.tanh(TANH_STEEPNESS * abs(dev_pp) / DEVIATION_SCALE_PP)
    if inside_band:
        magnitude *= INSIDE_BAND_DAMPING

    bias_mult = 1.0
    if not inside_band:
        bias_mult, _ = _community_bias(sign=sign, context=context)
    magnitude *= bias_mult
    if sign < 0:
        magnitude = -magnitude

    move_reasons: list[PriceReason] = []
    if magnitude != 0:
        direction_label = "up" if magnitude > 0 else "down"
        move_reasons.append(
            PriceReason(
                type="trend",
                description=(
                    f"Trend {direction_label} {abs(magnitude) * 100:.1f}% "
                    f"(occ: {occ_pp:.1f}% vs mid: {mid_pp:.1f}%)"
                ),
                value=magnitude,
            )
        )
        if bias_mult != 1.0:
            community = context.community
            move_reasons.append(
                PriceReason(
                    type="trend",
                    description=(
                        f"Community bias {(bias_mult - 1) * 100:.1f}% "
                        f"(site: {community.trending_occupancy * 100:.1f}% vs {community.target * 100:.1f}%)"
                    ),
                    value=bias_mult - 1,
                )
            )

    return TrendMove(direction=sign, magnitude=magnitude, inside_band=inside_band, reasons=tuple(move_reasons))


def compute_conversion_nudge(floorplan_code: str, *, inside_band: bool, context: MarketContext) -> ConversionNudge:
    if not inside_band:
        return ConversionNudge(nudge=0.0, ratio=None)

    leads_apps = context.leads_apps.get(floorplan_code)
    if leads_apps is None:
        return ConversionNudge(nudge=0.0, ratio=None)
    if not (is_finite_number(leads_apps.leads) and is_finite_number(leads_apps.apps)):
        return ConversionNudge(nudge=0.0, ratio=None)
    if leads_apps.leads <= 0 or leads_apps.apps < 0:
        return ConversionNudge(nudge=0.0, ratio=None)

    ratio = float(leads_apps.apps) / float(leads_apps.leads)
    if ratio > STRONG_CONVERSION_RATIO:
        reason = PriceReason(
            type="conversion",
            description=f"Strong conversion {ratio * 100:.1f}% → nudge up +0.5%",
            value=CONVERSION_NUDGE,
        )
        return ConversionNudge(nudge=CONVERSION_NUDGE, ratio=ratio, reasons=(reason,))
    if ratio < WEAK_CONVERSION_RATIO:
        reason = PriceReason(
            type="conversion",
            description=f"Weak conversion {ratio * 100:.1f}% → nudge down -0.5%",
            value=-CONVERSION_NUDGE,
        )
        return ConversionNudge(nudge=-CONVERSION_NUDGE, ratio=ratio, reasons=(reason,))
    return ConversionNudge(nudge=0.0, ratio=ratio)
