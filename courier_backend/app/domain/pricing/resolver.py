"""
Pricing Config Resolver.

Responsible for determining the pricing version a quote or booking uses.
Follows priority:
1. The single active PricingConfig row
2. Default rates, persisted as version 1 when the table is empty
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from courier_backend.app.models.pricing_config import PricingConfig


DEFAULT_RATES = {
    "base_fare": 60.0,
    "per_kg": 15.0,
    "per_km": 2.0,
    "cod_pct": 1.0,
    "service_area_surcharge": 20.0,
    "express_multiplier": 1.4,
}


class PricingResolver:

    @staticmethod
    async def find_active_config(db: AsyncSession) -> Optional[PricingConfig]:
        query = select(PricingConfig).where(
            PricingConfig.is_active == True
        ).order_by(PricingConfig.id.desc()).limit(1)

        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def resolve_active_config(db: AsyncSession) -> PricingConfig:
        """
        Find the currently active pricing version.

        Seeds DEFAULT_RATES (flushed, not committed) when no version exists
        yet, so the caller's transaction decides whether it sticks.
        """
        config = await PricingResolver.find_active_config(db)
        if config is not None:
            return config

        config = PricingConfig(created_by="system", is_active=True, **DEFAULT_RATES)
        db.add(config)
        await db.flush()
        return config
