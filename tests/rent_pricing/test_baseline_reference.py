# This test file validates baseline resolution priority.
# Prior approved rents beat current rent, which beats the floorplan starting rent.

from __future__ import annotations

import pytest

from src.rent_pricing.baseline_reference import (
    DEFAULT_STARTING_RENT,
    SOURCE_CARRY_FORWARD,
    SOURCE_CURRENT_RENT,
    SOURCE_STARTING_RENT,
    resolve_baseline,
)
from tests.rent_pricing.support import context, standard_config, unit


def test_carry_forward_wins_over_current_rent() -> None:
    resolution = resolve_baseline(
        unit("A1-101", "A1", current_rent=1400),
        standard_config(),
        context({"A1": 0.95}, carry_forward={"A1-101": 1450}),
    )

    assert resolution.baseline == 1450
    assert resolution.source == SOURCE_CARRY_FORWARD
    assert resolution.reasons[0].description == "Using prior approved rent $1450 (2025-01-08)"


def test_disabled_carry_forward_falls_back_to_current_rent() -> None:
    resolution = resolve_baseline(
        unit("A1-101", "A1", current_rent=1400),
        standard_config(enable_carry_forward=False),
        context({"A1": 0.95}, carry_forward={"A1-101": 1450}),
    )

    assert resolution.baseline == 1400
    assert resolution.source == SOURCE_CURRENT_RENT


@pytest.mark.parametrize("prior_rent", [0.0, -10.0, float("nan")])
def test_invalid_prior_rent_is_treated_as_absent(prior_rent: float) -> None:
    resolution = resolve_baseline(
        unit("A1-101", "A1", current_rent=1400),
        standard_config(),
        context({"A1": 0.95}, carry_forward={"A1-101": prior_rent}),
    )

    assert resolution.source == SOURCE_CURRENT_RENT
    quality = [reason for reason in resolution.reasons if reason.type == "dataQuality"]
    assert len(quality) == 1
    assert "prior approved rent" in quality[0].description
    assert quality[0].applied is True
    assert resolution.reasons[-1].type == "carryForward"


def test_starting_rent_fallback() -> None:
    config = standard_config()
    with_setup = resolve_baseline(unit("S0-1", "S0"), config, context({"S0": 0.95}, starting_rents={"S0": 1150}))
    without_setup = resolve_baseline(unit("S0-1", "S0"), config, context({"S0": 0.95}))

    assert with_setup.baseline == 1150
    assert with_setup.source == SOURCE_STARTING_RENT
    assert without_setup.baseline == DEFAULT_STARTING_RENT
    assert "fallback" in without_setup.reasons[0].description
    assert all(reason.type != "dataQuality" for reason in without_setup.reasons)


@pytest.mark.parametrize("starting_rent", [0.0, -5.0, float("nan")])
def test_invalid_starting_rent_uses_default_with_data_quality_reason(starting_rent: float) -> None:
    resolution = resolve_baseline(
        unit("S0-1", "S0"),
        standard_config(),
        context({"S0": 0.95}, starting_rents={"S0": starting_rent}),
    )

    assert resolution.baseline == DEFAULT_STARTING_RENT
    assert resolution.source == SOURCE_STARTING_RENT
    quality = [reason for reason in resolution.reasons if reason.type == "dataQuality"]
    assert len(quality) == 1
    assert "starting rent for S0" in quality[0].description
    assert quality[0].applied is True
