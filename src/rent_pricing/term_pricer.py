# This module expands one clamped baseline rent into a price per lease term.
# Short terms carry a tapering premium, over-cap terms may pick up positive seasonality,
# and long-vacant units get an age discount applied to every term.
# The reference term's price is the canonical rent used for deltas and tier gaps.

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date

from src.rent_pricing.pricing_config import PricingConfig, VacancyAgePolicy
from src.rent_pricing.reason_codes import PriceReason

SHORT_TERM_START_PREMIUM = 0.08
SHORT_TERM_TAPER_PER_MONTH = 0.01
SHORT_TERM_CUTOFF_MONTHS = 10
SEASONALITY_MIN = 0.8
SEASONALITY_MAX = 1.2


@dataclass(frozen=True)
class TermPricing:
    term: int
    price: int
    notes: str
    reasons: tuple[PriceReason, ...] = ()


@dataclass(frozen=True)
class TermQuote:
    term_pricing: tuple[TermPricing, ...]
    reference_term: int
    reference_rent: int
    short_term_premium: bool
    over_cap_premium: bool
    seasonal_uplift: bool


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def short_term_premium(term: int) -> float:
    if term >= SHORT_TERM_CUTOFF_MONTHS:
        return 0.0
    return max(0.0, SHORT_TERM_START_PREMIUM - (term - 2) * SHORT_TERM_TAPER_PER_MONTH)


def term_end_month(today: date, term: int) -> int:
    """Return the calendar month (1-12) in which a lease starting today ends."""

    return (today.month - 1 + term) % 12 + 1


def seasonality_uplift(*, term: int, reference_term: int, end_month: int, config: PricingConfig) -> float:
    if not config.seasonality_enabled:
        return 0.0
    if term <= reference_term:
        return 0.0
    multipliers = config.seasonality_multipliers
    if len(multipliers) < end_month:
        return 0.0
    raw = multipliers[end_month - 1]
    multiplier = float(raw) if isinstance(raw, (int, float)) and math.isfinite(raw) and raw > 0 else 1.0
    uplift = min(SEASONALITY_MAX, max(SEASONALITY_MIN, multiplier)) - 1
    return uplift if uplift > 0 else 0.0


def vacancy_age_discount(vacant_days: float, policy: VacancyAgePolicy) -> tuple[float, PriceReason | None]:
    if not policy.enabled:
        return 0.0, None
    if vacant_days <= policy.threshold_days:
        return 0.0, None

    days_over = vacant_days - policy.threshold_days
    discount = min(days_over * max(0.0, policy.discount_per_day), min(1.0, max(0.0, policy.max_discount)))
    if discount <= 0:
        return 0.0, None
    reason = PriceReason(
        type="vacancyAge",
        description=f"Vacancy age discount {discount * 100:.1f}% ({vacant_days:g} days vacant)",
        value=-discount,
    )
    return discount, reason


def _term_notes(*, short_pct: float, seasonal_pct: float, vacancy_pct: float) -> str:
    parts: list[str] = []
    if short_pct:
        parts.append(f"Short: +{short_pct * 100:.1f}%")
    if seasonal_pct:
        parts.append(f"Seasonal: +{seasonal_pct * 100:.1f}%")
    if vacancy_pct:
        parts.append(f"Vacancy: -{vacancy_pct * 100:.1f}%")
    return " + ".join(parts) if parts else "Base price"


def price_terms(
    *,
    clamped_baseline: float,
    vacancy_discount: float,
    config: PricingConfig,
    today: date,
) -> TermQuote:
    reference_term = int(config.reference_term)
    terms = [int(term) for term in config.available_terms if int(term) > 0]
    if reference_term not in terms:
        terms.append(reference_term)

    quotes: list[TermPricing] = []
    any_short = False
    any_over_cap = False
    any_seasonal = False
    reference_rent = 0

    for term in terms:
        term_reasons: list[PriceReason] = []

        short_pct = short_term_premium(term)
        if short_pct > 0:
            any_short = True
            term_reasons.append(
                PriceReason(type="shortTerm", description=f"Short-term premium +{short_pct * 100:.1f}%", value=short_pct)
            )

        over_cap = term > reference_term
        if over_cap:
            any_over_cap = True
            term_reasons.append(
                PriceReason(
                    type="overCap",
                    description=f"Over-cap term ({term} > {reference_term} months)",
                    value=0.0,
                )
            )

        seasonal_pct = seasonality_uplift(
            term=term,
            reference_term=reference_term,
            end_month=term_end_month(today, term),
            config=config,
        )
        if seasonal_pct > 0:
            any_seasonal = True
            term_reasons.append(
                PriceReason(type="seasonality", description=f"Seasonal uplift +{seasonal_pct * 100:.1f}%", value=seasonal_pct)
            )

        raw_price = clamped_baseline * (1 + short_pct + seasonal_pct - vacancy_discount)
        price = round_half_up(max(0.0, raw_price))
        quotes.append(
            TermPricing(
                term=term,
                price=price,
                notes=_term_notes(short_pct=short_pct, seasonal_pct=seasonal_pct, vacancy_pct=vacancy_discount),
                reasons=tuple(term_reasons),
            )
        )
        if term == reference_term:
            reference_rent = price

    return TermQuote(
        term_pricing=tuple(quotes),
        reference_term=reference_term,
        reference_rent=reference_rent,
        short_term_premium=any_short,
        over_cap_premium=any_over_cap,
        seasonal_uplift=any_seasonal,
    )
