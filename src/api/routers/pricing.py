# This file defines rent pricing endpoints under the versioned API path.
# It exists so clients can request multi-term quotes and inspect stored carry-forward baselines.
# Responses carry version metadata and request ids through the shared envelope.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.api.api_config import ApiConfig
from src.api.dependencies import get_config, get_pricing_service
from src.api.response_envelope import build_object_envelope
from src.api.schemas.pricing_schemas import (
    CarryForwardResponseV1,
    PricingQuoteRequest,
    PricingQuoteResponseV1,
)
from src.api.services.pricing_service import PricingService

router = APIRouter(prefix="/pricing", tags=["pricing"])
PricingServiceDep = Annotated[PricingService, Depends(get_pricing_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/quote", response_model=PricingQuoteResponseV1)
def pricing_quote(
    request: Request,
    body: PricingQuoteRequest,
    service: PricingServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    data = service.quote(body)
    warnings = None
    if not data["unit_pricing"]:
        warnings = ["No units supplied; nothing was priced."]
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=data,
        warnings=warnings,
    )


@router.get("/carry-forward/{property_id}", response_model=CarryForwardResponseV1)
def carry_forward(
    request: Request,
    property_id: str,
    service: PricingServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    return build_object_envelope(
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        request_id=request.state.request_id,
        data=service.get_carry_forward(property_id),
    )
