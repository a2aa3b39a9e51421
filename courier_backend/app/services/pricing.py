"""
Pricing service.

Publishes pricing versions and quotes fares against the active one.
"""

import logging
from typing import Optional, List, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.domain.pricing.engine import FareAttributes, quote
from courier_backend.app.domain.pricing.resolver import PricingResolver
from courier_backend.app.models.pricing_config import PricingConfig
from courier_backend.app.schemas.pricing import PricingConfigUpdate, FareQuoteRequest
from courier_backend.app.services.audit import audited, AuditAction

logger = logging.getLogger(__name__)


async def get_active_pricing(db: AsyncSession) -> PricingConfig:
    config = await PricingResolver.find_active_config(db)
    if config is None:
        config = await PricingResolver.resolve_active_config(db)
        await db.commit()
    return config


async def list_pricing_versions(db: AsyncSession) -> List[PricingConfig]:
    result = await db.execute(select(PricingConfig).order_by(PricingConfig.id.desc()))
    return list(result.scalars().all())


async def update_pricing(db: AsyncSession, data: PricingConfigUpdate, actor: Optional[str] = None) -> PricingConfig:
    """
    Publish a new pricing version.

    The previous version is deactivated, never edited, so parcels keep the
    fare snapshot they were booked with.
    """
    async with audited(db, AuditAction.PRICING_UPDATED, "pricing", None, actor) as scope:
        previous = await PricingResolver.find_active_config(db)
        await db.execute(
            update(PricingConfig).where(PricingConfig.is_active == True).values(is_active=False)
        )

        config = PricingConfig(created_by=actor, is_active=True, **data.model_dump())
        db.add(config)
        await db.flush()
        await db.refresh(config)

        scope.entity_id = str(config.id)
        scope.metadata.update({
            "previous_version": previous.id if previous else None,
            **data.model_dump(),
        })

    logger.info("Pricing version %s published by %s", config.id, actor)
    return config


def attributes_of(source) -> FareAttributes:
    """Build FareAttributes from a quote request or a parcel."""
    return FareAttributes(
        weight_kg=source.weight_kg,
        distance_km=source.distance_km,
        cod_amount=source.cod_amount,
        service_type=source.service_type,
    )


async def quote_fare(db: AsyncSession, request: FareQuoteRequest) -> Tuple[float, int]:
    """
    Quote a fare with the active pricing version.

    Returns:
        (fare in full precision, pricing version id)
    """
    config = await get_active_pricing(db)
    return quote(attributes_of(request), config), config.id
