"""
Dispute service.

Opening a dispute parks the parcel in Disputed and remembers where it was;
resolving it puts the parcel back there. At most one dispute per parcel is
open at any time.
"""

import logging
from typing import Optional, List, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.exceptions import (
    NotFoundError, DuplicateOpenDisputeError, DisputeAlreadyResolvedError
)
from courier_backend.app.core.ids import new_id, DISPUTE_PREFIX
from courier_backend.app.domain.parcel.state_machine import is_terminal
from courier_backend.app.models.dispute import Dispute
from courier_backend.app.models.parcel_enums import DisputeStatus, ParcelStatus
from courier_backend.app.services.audit import audited, AuditAction, utcnow
from courier_backend.app.services.cache import invalidate_overview
from courier_backend.app.services.entities import paginate
from courier_backend.app.services.journey import load_parcel, append_event
from courier_backend.app.services.locking import entity_locks, parcel_key

logger = logging.getLogger(__name__)


async def get_dispute(db: AsyncSession, dispute_id: str) -> Dispute:
    dispute = await db.get(Dispute, dispute_id, populate_existing=True)
    if not dispute:
        raise NotFoundError("Dispute", dispute_id)
    return dispute


async def find_open_dispute(db: AsyncSession, parcel_id: str) -> Optional[Dispute]:
    result = await db.execute(
        select(Dispute).where(
            Dispute.parcel_id == parcel_id,
            Dispute.status == DisputeStatus.OPEN,
        )
    )
    return result.scalar_one_or_none()


async def list_disputes(
    db: AsyncSession,
    status: Optional[DisputeStatus] = None,
    parcel_id: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Dispute], int]:
    query = select(Dispute)
    if status:
        query = query.where(Dispute.status == status)
    if parcel_id:
        query = query.where(Dispute.parcel_id == parcel_id)
    return await paginate(db, query.order_by(Dispute.opened_at.desc(), Dispute.id), page, page_size)


async def open_dispute(db: AsyncSession, parcel_id: str, issue: str, actor: Optional[str] = None) -> Dispute:
    """
    Open a dispute against a parcel.

    A parcel that already finished (Delivered / Returned) keeps its status;
    the dispute is recorded for the money side only.
    """
    dispute_id = new_id(DISPUTE_PREFIX)

    async with entity_locks.hold(parcel_key(parcel_id)):
        async with audited(
            db, AuditAction.DISPUTE_OPENED, "dispute", dispute_id, actor,
            metadata={"parcel_id": parcel_id},
        ) as scope:
            parcel = await load_parcel(db, parcel_id)

            existing = await find_open_dispute(db, parcel.id)
            if existing:
                raise DuplicateOpenDisputeError(parcel.id, existing.id)

            dispute = Dispute(
                id=dispute_id,
                parcel_id=parcel.id,
                status=DisputeStatus.OPEN,
                issue=issue,
                opened_by=actor,
                opened_at=utcnow(),
            )

            if not is_terminal(parcel.status):
                dispute.prior_status = parcel.status
                parcel.status = ParcelStatus.DISPUTED
                await append_event(
                    db, parcel, ParcelStatus.DISPUTED.value, actor,
                    note=issue, hub_id=parcel.current_hub_id,
                )
                scope.metadata["prior_status"] = dispute.prior_status.value

            db.add(dispute)
            try:
                await db.flush()
            except IntegrityError as e:
                # Another process opened one between our check and insert
                raise DuplicateOpenDisputeError(parcel.id) from e

    await invalidate_overview()
    logger.info("Dispute %s opened on parcel %s", dispute_id, parcel_id)
    return dispute


async def resolve_dispute(db: AsyncSession, dispute_id: str, resolution: str, actor: Optional[str] = None) -> Dispute:
    """
    Resolve an open dispute and return the parcel to its prior status.
    """
    peeked = await db.get(Dispute, dispute_id)
    parcel_id = peeked.parcel_id if peeked else None

    async with entity_locks.hold(parcel_key(parcel_id)):
        async with audited(
            db, AuditAction.DISPUTE_RESOLVED, "dispute", dispute_id, actor,
            metadata={"parcel_id": parcel_id},
        ) as scope:
            dispute = await get_dispute(db, dispute_id)
            if dispute.status == DisputeStatus.RESOLVED:
                raise DisputeAlreadyResolvedError(dispute.id)

            dispute.status = DisputeStatus.RESOLVED
            dispute.resolution = resolution
            dispute.resolved_by = actor
            dispute.resolved_at = utcnow()

            parcel = await load_parcel(db, parcel_id)
            if dispute.prior_status is not None and parcel.status == ParcelStatus.DISPUTED:
                parcel.status = dispute.prior_status
                await append_event(
                    db, parcel, dispute.prior_status.value, actor,
                    note=f"Dispute resolved: {resolution}", hub_id=parcel.current_hub_id,
                )
                scope.metadata["restored_status"] = dispute.prior_status.value
            await db.flush()

    await invalidate_overview()
    logger.info("Dispute %s resolved by %s", dispute_id, actor)
    return dispute
