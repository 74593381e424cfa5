# This module defines where pricing inputs come from and how they become a MarketContext.
# Providers expose units, box score metrics, leads/apps, carry-forward baselines, and starting rents.
# The static provider serves tests; the frame provider reads normalized pandas frames or CSV files.
# Context assembly fills default bands and the community target from the active policy.

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from datetime import date
from pathlib import Path
from typing import Any, Protocol

import pandas as pd

from src.rent_pricing.box_score import (
    box_scores_by_floorplan,
    build_community_metrics,
    build_floorplan_trends,
    compute_box_score,
)
from src.rent_pricing.carry_forward_store import CarryForwardStore
from src.rent_pricing.models import (
    CarryForwardBaseline,
    CommunityMetrics,
    FloorplanTrend,
    LeadsApps,
    MarketContext,
    UnitState,
    is_finite_number,
    positive_or_none,
)
from src.rent_pricing.pricing_config import PricingConfig

LOGGER = logging.getLogger("pricing.data")

PROVIDER_TYPES = {"real", "simulator", "test"}

REQUIRED_UNIT_COLUMNS = ["unit_id", "floorplan_code", "status", "current_rent"]
OPTIONAL_UNIT_COLUMNS = [
    "vacant_days",
    "lease_end_date",
    "prelease_start_date",
    "move_in_date",
    "amenity_adj",
    "floorplan_label",
]
REQUIRED_FLOORPLAN_COLUMNS = ["code", "bedrooms"]
OPTIONAL_FLOORPLAN_COLUMNS = ["name", "band_low", "band_high", "starting_rent", "leads", "apps"]


class PricingDataProvider(Protocol):
    provider_type: str

    def get_units(self) -> list[UnitState]: ...

    def get_box_score(self) -> tuple[dict[str, FloorplanTrend], CommunityMetrics]: ...

    def get_leads_apps(self, floorplan_code: str, days: int) -> LeadsApps | None: ...

    def get_carry_forward_baselines(self) -> dict[str, CarryForwardBaseline]: ...

    def get_starting_rents(self) -> dict[str, float]: ...

    def get_floorplan_setup(self) -> dict[str, dict[str, Any]]: ...

    def get_current_date(self) -> date: ...

    def is_ready(self) -> bool: ...


class StaticDataProvider:
    """In-memory provider whose answers are fixed at construction."""

    def __init__(
        self,
        *,
        units: Iterable[UnitState],
        floorplan_trends: Mapping[str, FloorplanTrend],
        community: CommunityMetrics,
        today: date,
        leads_apps: Mapping[str, LeadsApps | None] | None = None,
        carry_forward_baselines: Mapping[str, CarryForwardBaseline] | None = None,
        starting_rents: Mapping[str, float] | None = None,
        floorplan_setup: Mapping[str, Mapping[str, Any]] | None = None,
        provider_type: str = "test",
    ) -> None:
        if provider_type not in PROVIDER_TYPES:
            raise ValueError(f"provider_type must be one of {sorted(PROVIDER_TYPES)}")
        self.provider_type = provider_type
        self._units = list(units)
        self._floorplan_trends = dict(floorplan_trends)
        self._community = community
        self._today = today
        self._leads_apps = dict(leads_apps or {})
        self._carry_forward = dict(carry_forward_baselines or {})
        self._starting_rents = dict(starting_rents or {})
        self._floorplan_setup = {code: dict(setup) for code, setup in (floorplan_setup or {}).items()}

    def get_units(self) -> list[UnitState]:
        return list(self._units)

    def get_box_score(self) -> tuple[dict[str, FloorplanTrend], CommunityMetrics]:
        return dict(self._floorplan_trends), self._community

    def get_leads_apps(self, floorplan_code: str, days: int) -> LeadsApps | None:
        return self._leads_apps.get(floorplan_code)

    def get_carry_forward_baselines(self) -> dict[str, CarryForwardBaseline]:
        return dict(self._carry_forward)

    def get_starting_rents(self) -> dict[str, float]:
        return dict(self._starting_rents)

    def get_floorplan_setup(self) -> dict[str, dict[str, Any]]:
        return {code: dict(setup) for code, setup in self._floorplan_setup.items()}

    def get_current_date(self) -> date:
        return self._today

    def is_ready(self) -> bool:
        return bool(self._units)


def _validate_columns(frame: pd.DataFrame, required: list[str], *, label: str) -> None:
    missing = [column for column in required if column not in frame.columns]
    if missing:
        raise ValueError(f"{label} frame is missing required columns: {missing}")


def _optional_date(value: Any) -> date | None:
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _optional_float(value: Any) -> float | None:
    return float(value) if is_finite_number(value) else None


def _optional_text(value: Any) -> str | None:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


class FrameDataProvider:
    """Provider over normalized unit and floorplan frames; box scores are computed here."""

    provider_type = "real"

    def __init__(
        self,
        *,
        units_frame: pd.DataFrame,
        floorplans_frame: pd.DataFrame,
        today: date,
        property_id: str = "default",
        carry_forward_store: CarryForwardStore | None = None,
    ) -> None:
        _validate_columns(units_frame, REQUIRED_UNIT_COLUMNS, label="units")
        _validate_columns(floorplans_frame, REQUIRED_FLOORPLAN_COLUMNS, label="floorplans")

        self.units_frame = units_frame.copy()
        for column in OPTIONAL_UNIT_COLUMNS:
            if column not in self.units_frame.columns:
                self.units_frame[column] = None
        self.floorplans_frame = floorplans_frame.copy()
        for column in OPTIONAL_FLOORPLAN_COLUMNS:
            if column not in self.floorplans_frame.columns:
                self.floorplans_frame[column] = None
        self.floorplans_frame["code"] = self.floorplans_frame["code"].astype(str)

        self.today = today
        self.property_id = property_id
        self.carry_forward_store = carry_forward_store
        self._units: list[UnitState] | None = None

    @classmethod
    def from_csv(
        cls,
        *,
        units_csv: str | Path,
        floorplans_csv: str | Path,
        today: date,
        property_id: str = "default",
        carry_forward_store: CarryForwardStore | None = None,
    ) -> FrameDataProvider:
        units_frame = pd.read_csv(units_csv, dtype={"unit_id": str, "floorplan_code": str})
        floorplans_frame = pd.read_csv(floorplans_csv, dtype={"code": str})
        LOGGER.info("Loaded units=%d floorplans=%d from CSV", len(units_frame), len(floorplans_frame))
        return cls(
            units_frame=units_frame,
            floorplans_frame=floorplans_frame,
            today=today,
            property_id=property_id,
            carry_forward_store=carry_forward_store,
        )

    def _floorplan_rows(self) -> dict[str, dict[str, Any]]:
        return {str(row["code"]): row for row in self.floorplans_frame.to_dict(orient="records")}

    def get_units(self) -> list[UnitState]:
        if self._units is not None:
            return list(self._units)

        labels = {code: _optional_text(row.get("name")) for code, row in self._floorplan_rows().items()}
        units: list[UnitState] = []
        for row in self.units_frame.to_dict(orient="records"):
            code = str(row["floorplan_code"])
            units.append(
                UnitState(
                    unit_id=str(row["unit_id"]),
                    floorplan_code=code,
                    status=str(row["status"] or ""),
                    current_rent=_optional_float(row["current_rent"]) or 0.0,
                    vacant_days=_optional_float(row["vacant_days"]) or 0.0,
                    lease_end_date=_optional_date(row["lease_end_date"]),
                    prelease_start_date=_optional_date(row["prelease_start_date"]),
                    move_in_date=_optional_date(row["move_in_date"]),
                    amenity_adj=_optional_float(row["amenity_adj"]) or 0.0,
                    floorplan_label=_optional_text(row["floorplan_label"]) or labels.get(code),
                )
            )
        self._units = units
        return list(units)

    def get_box_score(self) -> tuple[dict[str, FloorplanTrend], CommunityMetrics]:
        units = self.get_units()
        trends = build_floorplan_trends(
            box_scores=box_scores_by_floorplan(units, self.today),
            floorplan_setup=self.get_floorplan_setup(),
            default_band_low=float("nan"),
            default_band_high=float("nan"),
        )
        community = build_community_metrics(compute_box_score(units, self.today), target=float("nan"))
        return trends, community

    def get_leads_apps(self, floorplan_code: str, days: int) -> LeadsApps | None:
        row = self._floorplan_rows().get(floorplan_code)
        if row is None:
            return None
        leads = _optional_float(row.get("leads"))
        apps = _optional_float(row.get("apps"))
        if leads is None or apps is None:
            return None
        return LeadsApps(leads=leads, apps=apps, days_tracked=days)

    def get_carry_forward_baselines(self) -> dict[str, CarryForwardBaseline]:
        if self.carry_forward_store is None:
            return {}
        snapshot = self.carry_forward_store.load(self.property_id)
        if snapshot is None:
            return {}
        return dict(snapshot.units)

    def get_starting_rents(self) -> dict[str, float]:
        rents: dict[str, float] = {}
        for code, row in self._floorplan_rows().items():
            rent = positive_or_none(row.get("starting_rent"))
            if rent is not None:
                rents[code] = rent
        return rents

    def get_floorplan_setup(self) -> dict[str, dict[str, Any]]:
        return {
            code: {
                "bedrooms": row.get("bedrooms"),
                "band_low": _optional_float(row.get("band_low")),
                "band_high": _optional_float(row.get("band_high")),
            }
            for code, row in self._floorplan_rows().items()
        }

    def get_current_date(self) -> date:
        return self.today

    def is_ready(self) -> bool:
        return not self.units_frame.empty


def select_provider(
    real: PricingDataProvider,
    simulated: PricingDataProvider | None = None,
    *,
    enable_simulation: bool,
) -> PricingDataProvider:
    if enable_simulation and simulated is not None:
        LOGGER.info("Using simulated data provider type=%s", simulated.provider_type)
        return simulated
    if enable_simulation:
        LOGGER.warning("Simulation enabled but no simulated provider supplied; using real provider")
    return real


def _with_default_band(trend: FloorplanTrend, config: PricingConfig) -> FloorplanTrend:
    band_low = trend.band_low if is_finite_number(trend.band_low) else config.band_low
    band_high = trend.band_high if is_finite_number(trend.band_high) else config.band_high
    if band_low == trend.band_low and band_high == trend.band_high:
        return trend
    return dataclasses.replace(trend, band_low=band_low, band_high=band_high)


def build_market_context(provider: PricingDataProvider, config: PricingConfig) -> MarketContext:
    if not provider.is_ready():
        LOGGER.warning("Data provider type=%s reports not ready; pricing with empty inputs", provider.provider_type)

    trends, community = provider.get_box_score()
    trends = {code: _with_default_band(trend, config) for code, trend in trends.items()}
    if not is_finite_number(community.target):
        community = dataclasses.replace(community, target=config.comfort_target)

    leads_apps: dict[str, LeadsApps | None] = {}
    for code in trends:
        leads_apps[code] = provider.get_leads_apps(code, config.leads_apps_window_days)

    carry_forward = provider.get_carry_forward_baselines() if config.enable_carry_forward else {}
    return MarketContext(
        floorplan_trends=trends,
        community=community,
        today=provider.get_current_date(),
        leads_apps=leads_apps,
        carry_forward_baselines=carry_forward,
        starting_rents=provider.get_starting_rents(),
    )
