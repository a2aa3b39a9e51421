"""
Parcel journey helpers.

Loading parcels for a command and appending journey events. Kept apart
from the parcel service so routing and disputes can share them.
"""

from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.exceptions import NotFoundError, ConflictError
from courier_backend.app.models.parcel import Parcel
from courier_backend.app.models.parcel_event import ParcelEvent
from courier_backend.app.services.audit import utcnow


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def load_parcel(db: AsyncSession, parcel_id: str) -> Parcel:
    """
    Load a parcel with fresh column values.

    populate_existing makes sure a command never decides on a copy cached
    in the session identity map before another writer committed.
    """
    parcel = await db.get(Parcel, parcel_id, populate_existing=True)
    if not parcel:
        raise NotFoundError("Parcel", parcel_id)
    return parcel


async def peek_assigned_rider(db: AsyncSession, parcel_id: str) -> Optional[str]:
    result = await db.execute(select(Parcel.assigned_rider_id).where(Parcel.id == parcel_id))
    return result.scalar_one_or_none()


def check_version(parcel: Parcel, expected_version: Optional[int]):
    """Optimistic-lock check for clients that send the version they last read."""
    if expected_version is not None and parcel.version != expected_version:
        raise ConflictError(
            f"Parcel {parcel.id} is at version {parcel.version}, expected {expected_version}",
            details={"parcel_id": parcel.id, "version": parcel.version, "expected_version": expected_version}
        )


async def latest_event(db: AsyncSession, parcel_id: str) -> Optional[ParcelEvent]:
    result = await db.execute(
        select(ParcelEvent).where(ParcelEvent.parcel_id == parcel_id)
        .order_by(ParcelEvent.sequence.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def get_journey(db: AsyncSession, parcel_id: str) -> List[ParcelEvent]:
    result = await db.execute(
        select(ParcelEvent).where(ParcelEvent.parcel_id == parcel_id)
        .order_by(ParcelEvent.sequence)
    )
    return list(result.scalars().all())


async def append_event(
    db: AsyncSession,
    parcel: Parcel,
    label: str,
    actor: Optional[str] = None,
    note: Optional[str] = None,
    hub_id: Optional[str] = None,
) -> ParcelEvent:
    """
    Append the next journey event for a parcel.

    Timestamps never go backwards: if the clock reads earlier than the
    previous event, the previous timestamp is reused.
    """
    previous = await latest_event(db, parcel.id)

    timestamp = utcnow()
    sequence = 1
    if previous is not None:
        sequence = previous.sequence + 1
        previous_at = as_utc(previous.timestamp)
        if previous_at > timestamp:
            timestamp = previous_at

    event = ParcelEvent(
        parcel_id=parcel.id,
        sequence=sequence,
        timestamp=timestamp,
        hub_id=hub_id,
        label=label,
        note=note,
        actor=actor,
    )
    db.add(event)
    await db.flush()
    return event
