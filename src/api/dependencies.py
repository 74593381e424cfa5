# This file provides dependency factories for FastAPI routes.
# It exists so the pricing service and carry-forward store are created once and shared.
# The setup keeps routers thin and makes endpoint tests easy to override.

from __future__ import annotations

from functools import lru_cache

from src.api.api_config import ApiConfig, get_api_config
from src.api.services.pricing_service import PricingService
from src.common.db import get_engine
from src.rent_pricing.carry_forward_store import (
    CarryForwardStore,
    InMemoryCarryForwardStore,
    SqlCarryForwardStore,
)
from src.rent_pricing.pricing_config import load_pricing_config


@lru_cache(maxsize=1)
def get_carry_forward_store() -> CarryForwardStore:
    config = get_api_config()
    if config.carry_forward_store == "memory":
        return InMemoryCarryForwardStore()
    return SqlCarryForwardStore(
        engine=get_engine(),
        unit_table_name=config.carry_forward_table_name,
        floorplan_table_name=config.carry_forward_floorplan_table_name,
    )


@lru_cache(maxsize=1)
def get_pricing_service() -> PricingService:
    config = get_api_config()
    return PricingService(
        base_config=load_pricing_config(config_path=config.policy_config_path),
        store=get_carry_forward_store(),
    )


def get_config() -> ApiConfig:
    return get_api_config()
