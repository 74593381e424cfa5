# This file implements the service behind the rent pricing endpoints.
# It exists so routers stay transport-focused while request shaping and engine calls live in one layer.
# Quotes are priced with the loaded policy plus per-request overrides; invalid overrides become 400 errors.
# The carry-forward store is only touched when a request asks for it.

from __future__ import annotations

import logging
from typing import Any

from src.api.error_handlers import APIError
from src.api.schemas.pricing_schemas import PricingQuoteRequest
from src.rent_pricing.carry_forward_store import CarryForwardStore, snapshot_from_result
from src.rent_pricing.data_provider import StaticDataProvider, build_market_context
from src.rent_pricing.models import (
    CarryForwardBaseline,
    CommunityMetrics,
    FloorplanTrend,
    LeadsApps,
    UnitState,
)
from src.rent_pricing.pricing_config import PricingConfig
from src.rent_pricing.pricing_engine import PricingEngineResult, price_all_units
from src.rent_pricing.reason_codes import primary_reason, reason_summary

LOGGER = logging.getLogger("pricing.api")


def _merge_overrides(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


class PricingService:
    """Request shaping and engine calls for pricing API routes."""

    def __init__(self, *, base_config: PricingConfig, store: CarryForwardStore) -> None:
        self.base_config = base_config
        self.store = store

    def resolve_config(self, overrides: dict[str, Any]) -> PricingConfig:
        if not overrides:
            return self.base_config
        try:
            return PricingConfig.from_mapping(_merge_overrides(self.base_config.to_dict(), overrides))
        except (TypeError, ValueError) as exc:
            raise APIError(
                status_code=400,
                error_code="INVALID_POLICY",
                message=str(exc),
                details={"policy_overrides": sorted(overrides)},
            ) from exc

    def _carry_forward(self, request: PricingQuoteRequest) -> dict[str, CarryForwardBaseline]:
        baselines: dict[str, CarryForwardBaseline] = {}
        if request.use_stored_carry_forward and request.property_id:
            snapshot = self.store.load(request.property_id)
            if snapshot is not None:
                baselines.update(snapshot.units)
        for row in request.carry_forward_baselines:
            baselines[row.unit_id] = CarryForwardBaseline(**row.model_dump())
        return baselines

    def _provider(self, request: PricingQuoteRequest) -> StaticDataProvider:
        nan = float("nan")
        return StaticDataProvider(
            units=[
                UnitState(
                    **{
                        **unit.model_dump(),
                        "current_rent": unit.current_rent if unit.current_rent is not None else 0.0,
                        "vacant_days": unit.vacant_days if unit.vacant_days is not None else 0.0,
                    }
                )
                for unit in request.units
            ],
            floorplan_trends={
                trend.code: FloorplanTrend(
                    code=trend.code,
                    trending=trend.trending,
                    current=trend.current,
                    band_low=trend.band_low if trend.band_low is not None else nan,
                    band_high=trend.band_high if trend.band_high is not None else nan,
                    bedrooms=trend.bedrooms,
                )
                for trend in request.floorplan_trends
            },
            community=CommunityMetrics(
                trending_occupancy=request.community.trending_occupancy,
                current_occupancy=request.community.current_occupancy,
                target=request.community.target if request.community.target is not None else nan,
            ),
            today=request.today,
            leads_apps={
                code: LeadsApps(**value.model_dump()) if value is not None else None
                for code, value in request.leads_apps.items()
            },
            carry_forward_baselines=self._carry_forward(request),
            starting_rents=dict(request.starting_rents),
            provider_type="real",
        )

    def quote(self, request: PricingQuoteRequest) -> dict[str, Any]:
        config = self.resolve_config(request.policy_overrides)
        provider = self._provider(request)
        context = build_market_context(provider, config)
        result = price_all_units(provider.get_units(), config, context)
        LOGGER.info(
            "Quoted units=%d floorplans=%d policy=%s",
            len(result.unit_pricing),
            len(result.floorplan_pricing),
            config.pricing_policy_version,
        )

        saved = False
        if request.save_carry_forward:
            if not request.property_id:
                raise APIError(
                    status_code=400,
                    error_code="PROPERTY_ID_REQUIRED",
                    message="property_id is required when save_carry_forward is true.",
                )
            self.store.save(request.property_id, snapshot_from_result(result, property_id=request.property_id, today=request.today))
            saved = True

        return self._shape_result(result, config=config, saved=saved)

    @staticmethod
    def _shape_result(result: PricingEngineResult, *, config: PricingConfig, saved: bool) -> dict[str, Any]:
        unit_rows: list[dict[str, Any]] = []
        for unit_result in result.unit_pricing.values():
            row = unit_result.to_dict()
            row["primary_reason"] = primary_reason(unit_result.reasons)
            row["reason_summary"] = reason_summary(unit_result.reasons)
            unit_rows.append(row)

        return {
            "pricing_policy_version": config.pricing_policy_version,
            "calculated_at": result.calculated_at.isoformat(),
            "unit_pricing": unit_rows,
            "floorplan_pricing": [fp.to_dict() for fp in result.floorplan_pricing.values()],
            "config_snapshot": result.config_snapshot,
            "saved_carry_forward": saved,
        }

    def get_carry_forward(self, property_id: str) -> dict[str, Any]:
        snapshot = self.store.load(property_id)
        if snapshot is None:
            raise APIError(
                status_code=404,
                error_code="CARRY_FORWARD_NOT_FOUND",
                message=f"No carry-forward baselines stored for property {property_id!r}.",
            )
        return snapshot.to_dict()
