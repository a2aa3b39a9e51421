"""
Overview service for the admin dashboard.

Read-only aggregates, cached in Redis for a short TTL and invalidated on
parcel and dispute changes.
"""

import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.config import settings
from courier_backend.app.models.dispute import Dispute
from courier_backend.app.models.hub import Hub
from courier_backend.app.models.parcel import Parcel
from courier_backend.app.models.rider import Rider
from courier_backend.app.models.entity_enums import HubStatus, RiderStatus
from courier_backend.app.models.parcel_enums import ParcelStatus, DisputeStatus
from courier_backend.app.schemas.overview import OverviewStats
from courier_backend.app.services.cache import CacheService, OVERVIEW_KEY

logger = logging.getLogger(__name__)


class OverviewService:

    @staticmethod
    async def compute(db: AsyncSession) -> OverviewStats:
        by_status = await db.execute(
            select(Parcel.status, func.count(Parcel.id)).group_by(Parcel.status)
        )
        counts = {status.value: 0 for status in ParcelStatus}
        for status, count in by_status.all():
            counts[status.value] = count

        open_disputes = (await db.execute(
            select(func.count(Dispute.id)).where(Dispute.status == DisputeStatus.OPEN)
        )).scalar() or 0

        available_riders = (await db.execute(
            select(func.count(Rider.id)).where(Rider.status == RiderStatus.AVAILABLE)
        )).scalar() or 0

        active_hubs = (await db.execute(
            select(func.count(Hub.id)).where(Hub.status == HubStatus.ACTIVE)
        )).scalar() or 0

        revenue = (await db.execute(
            select(func.sum(Parcel.fare)).where(Parcel.status == ParcelStatus.DELIVERED)
        )).scalar() or 0.0

        return OverviewStats(
            parcels_by_status=counts,
            total_parcels=sum(counts.values()),
            open_disputes=open_disputes,
            available_riders=available_riders,
            active_hubs=active_hubs,
            delivered_revenue=round(float(revenue), 2),
        )

    @staticmethod
    async def get(db: AsyncSession) -> OverviewStats:
        cached = await CacheService.get(OVERVIEW_KEY)
        if cached is not None:
            return OverviewStats(**cached)

        stats = await OverviewService.compute(db)
        await CacheService.set(OVERVIEW_KEY, stats.model_dump(), ttl_seconds=settings.overview_cache_ttl_seconds)
        return stats
