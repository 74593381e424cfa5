# This test file validates the per-term price expansion of a clamped baseline.
# It covers the short-term taper, over-cap seasonality, vacancy-age discounts, and half-up rounding.

from __future__ import annotations

from datetime import date

import pytest

from src.rent_pricing.pricing_config import VacancyAgePolicy
from src.rent_pricing.term_pricer import (
    price_terms,
    round_half_up,
    short_term_premium,
    term_end_month,
    vacancy_age_discount,
)
from tests.rent_pricing.support import TODAY, standard_config


@pytest.mark.parametrize(
    ("term", "expected"),
    [(2, 0.08), (5, 0.05), (9, 0.01), (10, 0.0), (14, 0.0)],
)
def test_short_term_premium_tapers(term: int, expected: float) -> None:
    assert short_term_premium(term) == pytest.approx(expected)


def test_round_half_up() -> None:
    assert round_half_up(1424.5) == 1425
    assert round_half_up(1424.49) == 1424
    assert round_half_up(1080.0) == 1080


def test_term_end_month_wraps_calendar() -> None:
    assert term_end_month(date(2025, 1, 15), 14) == 3
    assert term_end_month(date(2025, 1, 15), 12) == 1
    assert term_end_month(date(2025, 11, 1), 2) == 1


def test_two_month_term_on_1000_is_1080() -> None:
    quote = price_terms(clamped_baseline=1000.0, vacancy_discount=0.0, config=standard_config(), today=TODAY)
    prices = {item.term: item.price for item in quote.term_pricing}

    assert prices[2] == 1080
    assert prices[14] == 1000
    assert quote.reference_rent == 1000
    assert quote.short_term_premium is True
    assert quote.over_cap_premium is False


def test_short_terms_decay_toward_reference() -> None:
    config = standard_config(seasonality_enabled=False)
    quote = price_terms(clamped_baseline=1337.0, vacancy_discount=0.0, config=config, today=TODAY)
    prices = [item.price for item in quote.term_pricing if item.term <= 10]

    assert prices == sorted(prices, reverse=True)


def test_seasonality_only_lifts_over_cap_terms() -> None:
    config = standard_config(reference_term=12, available_terms=[2, 12, 13, 14, 15])
    quote = price_terms(clamped_baseline=1000.0, vacancy_discount=0.0, config=config, today=TODAY)
    prices = {item.term: item.price for item in quote.term_pricing}

    assert prices[12] == 1000
    assert prices[13] == 1000
    assert prices[14] == 1050
    assert prices[15] == 1080
    assert quote.over_cap_premium is True
    assert quote.seasonal_uplift is True
    assert next(item for item in quote.term_pricing if item.term == 15).notes == "Seasonal: +8.0%"


def test_seasonality_multiplier_is_clamped() -> None:
    multipliers = [1.0] * 12
    multipliers[2] = 1.5
    config = standard_config(reference_term=12, available_terms=[12, 14], seasonality_multipliers=multipliers)
    quote = price_terms(clamped_baseline=1000.0, vacancy_discount=0.0, config=config, today=TODAY)

    assert {item.term: item.price for item in quote.term_pricing}[14] == 1200


def test_reference_term_is_priced_even_when_not_listed() -> None:
    config = standard_config(available_terms=[2, 12])
    quote = price_terms(clamped_baseline=1000.0, vacancy_discount=0.0, config=config, today=TODAY)

    assert [item.term for item in quote.term_pricing] == [2, 12, 14]
    assert quote.reference_rent == 1000


@pytest.mark.parametrize(
    ("vacant_days", "expected"),
    [(30, 0.0), (45, 0.03), (90, 0.10)],
)
def test_vacancy_age_discount(vacant_days: float, expected: float) -> None:
    discount, reason = vacancy_age_discount(vacant_days, VacancyAgePolicy(enabled=True))

    assert discount == pytest.approx(expected)
    assert (reason is None) == (expected == 0.0)


def test_vacancy_discount_disabled_by_policy() -> None:
    discount, reason = vacancy_age_discount(365, VacancyAgePolicy(enabled=False))

    assert discount == 0.0
    assert reason is None


def test_vacancy_discount_applies_to_every_term() -> None:
    quote = price_terms(clamped_baseline=1080.0, vacancy_discount=0.10, config=standard_config(), today=TODAY)
    prices = {item.term: item.price for item in quote.term_pricing}

    assert prices[14] == 972
    assert prices[2] == 1058
    assert "Vacancy: -10.0%" in next(item for item in quote.term_pricing if item.term == 2).notes
