"""
Pricing API Endpoints.

Pricing is versioned: an update publishes a new version and retires the
old one. Booked parcels keep the fare of the version they were booked with.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.dependencies import get_current_actor, actor_name
from courier_backend.app.db.session import get_db
from courier_backend.app.domain.pricing.engine import present_fare
from courier_backend.app.schemas.pricing import (
    PricingConfigUpdate, PricingConfigResponse, PricingHistoryResponse,
    FareQuoteRequest, FareQuoteResponse
)
from courier_backend.app.services import pricing as pricing_service

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.get("/active", response_model=PricingConfigResponse)
async def get_active_pricing(db: AsyncSession = Depends(get_db)):
    return PricingConfigResponse.model_validate(await pricing_service.get_active_pricing(db))


@router.get("/versions", response_model=PricingHistoryResponse)
async def list_pricing_versions(db: AsyncSession = Depends(get_db)):
    versions = await pricing_service.list_pricing_versions(db)
    return PricingHistoryResponse(versions=[PricingConfigResponse.model_validate(v) for v in versions])


@router.put("", response_model=PricingConfigResponse)
async def update_pricing(
    config_data: PricingConfigUpdate,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    config = await pricing_service.update_pricing(db, config_data, actor_name(actor))
    return PricingConfigResponse.model_validate(config)


@router.post("/quote", response_model=FareQuoteResponse)
async def quote_fare(request: FareQuoteRequest, db: AsyncSession = Depends(get_db)):
    """Fare estimate for the booking form; nothing is stored."""
    fare, version = await pricing_service.quote_fare(db, request)
    return FareQuoteResponse(fare=round(fare, 2), display_fare=present_fare(fare), pricing_version=version)
