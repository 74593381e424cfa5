# This file provides shared helpers for API endpoint tests.
# It exists so tests can override service dependencies without touching a real database.
# The helpers build consistent config objects, in-memory pricing services, and scoped TestClient contexts.

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi.testclient import TestClient

from src.api.api_config import ApiConfig
from src.api.app import create_app
from src.api.dependencies import get_config, get_pricing_service
from src.api.services.pricing_service import PricingService
from src.rent_pricing.carry_forward_store import InMemoryCarryForwardStore
from tests.rent_pricing.support import standard_config


def build_test_config() -> ApiConfig:
    """Create deterministic API config for tests."""

    return ApiConfig(
        api_name="Test Rent Pricing API",
        api_version_path="/api/v1",
        schema_version="1.0.0",
        host="0.0.0.0",
        port=8000,
        environment="test",
        database_url="sqlite+pysqlite:///:memory:",
        allowed_origins=[],
        carry_forward_store="memory",
        app_version="0.1.0",
    )


def build_test_service(**config_overrides: object) -> PricingService:
    return PricingService(base_config=standard_config(**config_overrides), store=InMemoryCarryForwardStore())


@contextmanager
def api_test_client(
    *,
    config: ApiConfig | None = None,
    pricing_service: Any | None = None,
) -> Iterator[TestClient]:
    """Yield a TestClient with scoped dependency overrides."""

    resolved_config = config or build_test_config()
    resolved_service = pricing_service or build_test_service()

    app = create_app()
    app.dependency_overrides[get_config] = lambda: resolved_config
    app.dependency_overrides[get_pricing_service] = lambda: resolved_service

    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
