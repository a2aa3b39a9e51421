"""
Entity store service for hubs, riders and merchants.

Upserts, listings and deletes with referential-integrity checks. Every
mutating function is one audited unit of work.
"""

import logging
from typing import Optional, List, Tuple, Sequence

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.exceptions import (
    NotFoundError, ValidationError, ReferentialIntegrityError
)
from courier_backend.app.domain.parcel.state_machine import TERMINAL_STATUSES
from courier_backend.app.models.hub import Hub
from courier_backend.app.models.rider import Rider
from courier_backend.app.models.merchant import Merchant
from courier_backend.app.models.parcel import Parcel
from courier_backend.app.models.parcel_event import ParcelEvent
from courier_backend.app.models.entity_enums import HubType, HubStatus, RiderStatus, MerchantStatus
from courier_backend.app.schemas.hub import HubUpsert
from courier_backend.app.schemas.rider import RiderUpsert
from courier_backend.app.schemas.merchant import MerchantUpsert
from courier_backend.app.services.audit import audited, AuditAction
from courier_backend.app.services.locking import entity_locks, rider_key

logger = logging.getLogger(__name__)


async def paginate(db: AsyncSession, query, page: int, page_size: int) -> Tuple[list, int]:
    """Run a select with offset/limit and return (items, total)."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.offset(offset).limit(page_size))
    return list(result.scalars().all()), total


def _not_terminal():
    return Parcel.status.not_in(list(TERMINAL_STATUSES))


# ---------------------------------------------------------------------------
# Hubs
# ---------------------------------------------------------------------------

async def get_hub(db: AsyncSession, hub_id: str) -> Hub:
    hub = await db.get(Hub, hub_id)
    if not hub:
        raise NotFoundError("Hub", hub_id)
    return hub


async def list_hubs(
    db: AsyncSession,
    hub_type: Optional[HubType] = None,
    status: Optional[HubStatus] = None,
    parent_hub_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Hub], int]:
    query = select(Hub)
    if hub_type:
        query = query.where(Hub.hub_type == hub_type)
    if status:
        query = query.where(Hub.status == status)
    if parent_hub_id:
        query = query.where(Hub.parent_hub_id == parent_hub_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Hub.id.ilike(pattern), Hub.name.ilike(pattern)))
    return await paginate(db, query.order_by(Hub.id), page, page_size)


async def _validate_hub_tree(db: AsyncSession, hub_id: str, data: HubUpsert, existing: Optional[Hub]):
    if data.hub_type == HubType.DISTRICT:
        if data.parent_hub_id:
            raise ValidationError(
                "A district hub cannot have a parent hub",
                details={"hub_id": hub_id, "parent_hub_id": data.parent_hub_id}
            )
        return

    if not data.parent_hub_id:
        raise ValidationError("An area hub needs a parent district hub", details={"hub_id": hub_id})
    if data.parent_hub_id == hub_id:
        raise ValidationError("A hub cannot be its own parent", details={"hub_id": hub_id})

    parent = await db.get(Hub, data.parent_hub_id)
    if not parent:
        raise ReferentialIntegrityError(
            f"Parent hub {data.parent_hub_id} does not exist",
            details={"hub_id": hub_id, "parent_hub_id": data.parent_hub_id}
        )
    if parent.hub_type != HubType.DISTRICT:
        raise ValidationError(
            f"Parent hub {parent.id} is not a district hub",
            details={"hub_id": hub_id, "parent_hub_id": parent.id}
        )

    # District -> area would push its children to a third level
    if existing is not None and existing.hub_type == HubType.DISTRICT:
        children = (await db.execute(
            select(func.count(Hub.id)).where(Hub.parent_hub_id == hub_id)
        )).scalar()
        if children:
            raise ReferentialIntegrityError(
                f"Hub {hub_id} still has {children} area hub(s) and cannot become an area hub",
                details={"hub_id": hub_id, "children": children}
            )


async def upsert_hub(db: AsyncSession, hub_id: str, data: HubUpsert, actor: Optional[str] = None) -> Hub:
    """
    Create or replace a hub.

    Raises:
        ValidationError: Broken district/area shape
        ReferentialIntegrityError: Missing parent, or children would be orphaned
    """
    async with audited(db, AuditAction.HUB_UPSERTED, "hub", hub_id, actor) as scope:
        existing = await db.get(Hub, hub_id)
        await _validate_hub_tree(db, hub_id, data, existing)

        values = data.model_dump()
        if existing is None:
            hub = Hub(id=hub_id, **values)
            db.add(hub)
            scope.metadata["created"] = True
        else:
            hub = existing
            for field, value in values.items():
                setattr(hub, field, value)
            scope.metadata["created"] = False

        scope.metadata.update({"hub_type": data.hub_type.value, "parent_hub_id": data.parent_hub_id})
        await db.flush()
        await db.refresh(hub)

    logger.info("Hub %s upserted by %s", hub_id, actor)
    return hub


async def deactivate_hub(db: AsyncSession, hub_id: str, actor: Optional[str] = None) -> Hub:
    """Soft delete: the hub stays referenced but takes no new parcels."""
    async with audited(db, AuditAction.HUB_DEACTIVATED, "hub", hub_id, actor):
        hub = await get_hub(db, hub_id)
        hub.status = HubStatus.INACTIVE
        await db.flush()
        await db.refresh(hub)
    return hub


async def delete_hub(db: AsyncSession, hub_id: str, actor: Optional[str] = None) -> None:
    """
    Hard delete a hub.

    Refused while any parcel, journey event, area hub or rider points at it.
    """
    async with audited(db, AuditAction.HUB_DELETED, "hub", hub_id, actor) as scope:
        hub = await get_hub(db, hub_id)

        hub_refs = or_(
            Parcel.origin_hub_id == hub_id,
            Parcel.destination_hub_id == hub_id,
            Parcel.current_hub_id == hub_id,
            Parcel.next_hop_hub_id == hub_id,
        )
        in_flight = (await db.execute(
            select(func.count(Parcel.id)).where(hub_refs, _not_terminal())
        )).scalar()
        if in_flight:
            raise ReferentialIntegrityError(
                f"Hub {hub_id} is referenced by {in_flight} in-flight parcel(s); deactivate it instead",
                details={"hub_id": hub_id, "in_flight_parcels": in_flight}
            )

        historic = (await db.execute(select(func.count(Parcel.id)).where(hub_refs))).scalar()
        events = (await db.execute(
            select(func.count(ParcelEvent.id)).where(ParcelEvent.hub_id == hub_id)
        )).scalar()
        children = (await db.execute(
            select(func.count(Hub.id)).where(Hub.parent_hub_id == hub_id)
        )).scalar()
        riders = (await db.execute(
            select(func.count(Rider.id)).where(Rider.hub_id == hub_id)
        )).scalar()

        if historic or events or children or riders:
            raise ReferentialIntegrityError(
                f"Hub {hub_id} is still referenced; deactivate it instead",
                details={
                    "hub_id": hub_id,
                    "parcels": historic,
                    "journey_events": events,
                    "area_hubs": children,
                    "riders": riders,
                }
            )

        scope.metadata["name"] = hub.name
        await db.delete(hub)


# ---------------------------------------------------------------------------
# Riders
# ---------------------------------------------------------------------------

async def get_rider(db: AsyncSession, rider_id: str) -> Rider:
    rider = await db.get(Rider, rider_id)
    if not rider:
        raise NotFoundError("Rider", rider_id)
    return rider


async def count_active_parcels(db: AsyncSession, rider_id: str) -> int:
    """Parcels assigned to the rider that are not yet terminal."""
    result = await db.execute(
        select(func.count(Parcel.id)).where(
            Parcel.assigned_rider_id == rider_id,
            _not_terminal(),
        )
    )
    return result.scalar()


async def list_riders(
    db: AsyncSession,
    hub_id: Optional[str] = None,
    status: Optional[RiderStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Rider], int]:
    query = select(Rider)
    if hub_id:
        query = query.where(Rider.hub_id == hub_id)
    if status:
        query = query.where(Rider.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Rider.id.ilike(pattern), Rider.name.ilike(pattern)))
    return await paginate(db, query.order_by(Rider.id), page, page_size)


async def upsert_rider(db: AsyncSession, rider_id: str, data: RiderUpsert, actor: Optional[str] = None) -> Rider:
    """
    Create or replace a rider.

    Raises:
        ReferentialIntegrityError: Unknown home hub, or moving a rider
            between hubs while it still carries parcels
    """
    async with entity_locks.hold(rider_key(rider_id)):
        async with audited(db, AuditAction.RIDER_UPSERTED, "rider", rider_id, actor) as scope:
            if not await db.get(Hub, data.hub_id):
                raise ReferentialIntegrityError(
                    f"Hub {data.hub_id} does not exist",
                    details={"rider_id": rider_id, "hub_id": data.hub_id}
                )

            rider = await db.get(Rider, rider_id)
            if rider is None:
                rider = Rider(id=rider_id, **data.model_dump())
                db.add(rider)
                scope.metadata["created"] = True
            else:
                if rider.hub_id != data.hub_id:
                    active = await count_active_parcels(db, rider_id)
                    if active:
                        raise ReferentialIntegrityError(
                            f"Rider {rider_id} carries {active} active parcel(s) and cannot change hub",
                            details={"rider_id": rider_id, "active_parcels": active}
                        )
                for field, value in data.model_dump().items():
                    setattr(rider, field, value)
                scope.metadata["created"] = False

            scope.metadata["hub_id"] = data.hub_id
            await db.flush()
            await db.refresh(rider)
    return rider


async def set_rider_status(db: AsyncSession, rider_id: str, status: RiderStatus, actor: Optional[str] = None) -> Rider:
    async with entity_locks.hold(rider_key(rider_id)):
        async with audited(db, AuditAction.RIDER_STATUS_CHANGED, "rider", rider_id, actor) as scope:
            rider = await get_rider(db, rider_id)
            scope.metadata.update({"from_status": rider.status.value, "to_status": status.value})
            rider.status = status
            await db.flush()
            await db.refresh(rider)
    return rider


async def bulk_set_rider_status(
    db: AsyncSession, rider_ids: Sequence[str], status: RiderStatus, actor: Optional[str] = None
) -> List[str]:
    """Bulk suspend / reinstate; all ids must exist or nothing changes."""
    ids = list(dict.fromkeys(rider_ids))
    async with entity_locks.hold(*[rider_key(r) for r in ids]):
        async with audited(db, AuditAction.RIDER_STATUS_CHANGED, "rider", None, actor,
                           metadata={"bulk": True, "ids": ids, "to_status": status.value}):
            riders = (await db.execute(select(Rider).where(Rider.id.in_(ids)))).scalars().all()
            missing = set(ids) - {r.id for r in riders}
            if missing:
                raise NotFoundError("Rider", sorted(missing)[0])
            for rider in riders:
                rider.status = status
            await db.flush()
    return ids


async def delete_rider(db: AsyncSession, rider_id: str, actor: Optional[str] = None) -> None:
    async with entity_locks.hold(rider_key(rider_id)):
        async with audited(db, AuditAction.RIDER_DELETED, "rider", rider_id, actor):
            rider = await get_rider(db, rider_id)
            referenced = (await db.execute(
                select(func.count(Parcel.id)).where(Parcel.assigned_rider_id == rider_id)
            )).scalar()
            if referenced:
                raise ReferentialIntegrityError(
                    f"Rider {rider_id} is referenced by {referenced} parcel(s); suspend instead",
                    details={"rider_id": rider_id, "parcels": referenced}
                )
            await db.delete(rider)


# ---------------------------------------------------------------------------
# Merchants
# ---------------------------------------------------------------------------

async def get_merchant(db: AsyncSession, merchant_id: str) -> Merchant:
    merchant = await db.get(Merchant, merchant_id)
    if not merchant:
        raise NotFoundError("Merchant", merchant_id)
    return merchant


async def list_merchants(
    db: AsyncSession,
    status: Optional[MerchantStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Merchant], int]:
    query = select(Merchant)
    if status:
        query = query.where(Merchant.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            Merchant.id.ilike(pattern), Merchant.name.ilike(pattern), Merchant.shop_name.ilike(pattern)
        ))
    return await paginate(db, query.order_by(Merchant.id), page, page_size)


async def upsert_merchant(db: AsyncSession, merchant_id: str, data: MerchantUpsert, actor: Optional[str] = None) -> Merchant:
    async with audited(db, AuditAction.MERCHANT_UPSERTED, "merchant", merchant_id, actor) as scope:
        merchant = await db.get(Merchant, merchant_id)
        if merchant is None:
            merchant = Merchant(id=merchant_id, **data.model_dump())
            db.add(merchant)
            scope.metadata["created"] = True
        else:
            for field, value in data.model_dump().items():
                setattr(merchant, field, value)
            scope.metadata["created"] = False
        scope.metadata["status"] = data.status.value
        await db.flush()
        await db.refresh(merchant)
    return merchant


async def set_merchant_status(
    db: AsyncSession, merchant_id: str, status: MerchantStatus, actor: Optional[str] = None
) -> Merchant:
    async with audited(db, AuditAction.MERCHANT_STATUS_CHANGED, "merchant", merchant_id, actor) as scope:
        merchant = await get_merchant(db, merchant_id)
        scope.metadata.update({"from_status": merchant.status.value, "to_status": status.value})
        merchant.status = status
        await db.flush()
        await db.refresh(merchant)
    return merchant


async def bulk_set_merchant_status(
    db: AsyncSession, merchant_ids: Sequence[str], status: MerchantStatus, actor: Optional[str] = None
) -> List[str]:
    """
    Bulk approve / suspend merchants.

    All ids must exist; otherwise nothing is changed.
    """
    ids = list(dict.fromkeys(merchant_ids))
    async with audited(db, AuditAction.MERCHANT_STATUS_CHANGED, "merchant", None, actor,
                       metadata={"bulk": True, "ids": ids, "to_status": status.value}):
        merchants = (await db.execute(select(Merchant).where(Merchant.id.in_(ids)))).scalars().all()
        missing = set(ids) - {m.id for m in merchants}
        if missing:
            raise NotFoundError("Merchant", sorted(missing)[0])
        for merchant in merchants:
            merchant.status = status
        await db.flush()
    return ids


async def delete_merchant(db: AsyncSession, merchant_id: str, actor: Optional[str] = None) -> None:
    async with audited(db, AuditAction.MERCHANT_DELETED, "merchant", merchant_id, actor):
        merchant = await get_merchant(db, merchant_id)
        referenced = (await db.execute(
            select(func.count(Parcel.id)).where(Parcel.merchant_id == merchant_id)
        )).scalar()
        if referenced:
            raise ReferentialIntegrityError(
                f"Merchant {merchant_id} is referenced by {referenced} parcel(s); suspend instead",
                details={"merchant_id": merchant_id, "parcels": referenced}
            )
        await db.delete(merchant)
