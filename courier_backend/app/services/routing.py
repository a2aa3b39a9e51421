"""
Routing and rider assignment service.

Resolves destination hubs and next hops through the hub tree, assigns and
unassigns riders, and derives the hub-manager queues.
"""

import logging
from typing import Optional, Dict, List, Sequence

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.config import settings
from courier_backend.app.core.exceptions import (
    NoRouteError, TerminalStateError, AlreadyAssignedError, RiderUnavailableError,
    HubMismatchError, RiderRequiredError, ValidationError, NotFoundError
)
from courier_backend.app.domain.parcel.state_machine import is_terminal, HUB_STATUSES
from courier_backend.app.models.hub import Hub
from courier_backend.app.models.rider import Rider
from courier_backend.app.models.parcel import Parcel
from courier_backend.app.models.entity_enums import HubType, HubStatus, RiderStatus
from courier_backend.app.models.parcel_enums import ParcelStatus
from courier_backend.app.services.audit import audited, AuditAction
from courier_backend.app.services.entities import get_hub, count_active_parcels
from courier_backend.app.services.journey import load_parcel, check_version, peek_assigned_rider
from courier_backend.app.services.locking import entity_locks, parcel_key, rider_key

logger = logging.getLogger(__name__)


# A rider can only be taken off a parcel that is not physically with them
UNASSIGNABLE_STATUSES = frozenset({
    ParcelStatus.REQUESTED,
    ParcelStatus.AT_AREA_HUB,
    ParcelStatus.AT_DISTRICT_HUB,
})

INCOMING_STATUSES = (ParcelStatus.REQUESTED, ParcelStatus.PICKING_UP, ParcelStatus.PICKED_UP)
OUTGOING_STATUSES = (ParcelStatus.IN_TRANSIT, ParcelStatus.OUT_FOR_DELIVERY)


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

async def resolve_destination_hub(db: AsyncSession, area: str) -> Hub:
    """
    Find the active hub whose coverage includes the area.

    Area hubs win over district hubs so a parcel is routed to the most
    specific hub available.
    """
    result = await db.execute(
        select(Hub).where(Hub.status == HubStatus.ACTIVE).order_by(Hub.id)
    )
    hubs = list(result.scalars().all())

    for hub_type in (HubType.AREA, HubType.DISTRICT):
        for hub in hubs:
            if hub.hub_type == hub_type and hub.covers(area):
                return hub

    raise NoRouteError(
        f"No active hub covers area '{area}'",
        details={"destination_area": area}
    )


async def _covering_child(db: AsyncSession, district: Hub, area: Optional[str]) -> Optional[Hub]:
    if not area:
        return None
    result = await db.execute(
        select(Hub).where(
            Hub.parent_hub_id == district.id,
            Hub.status == HubStatus.ACTIVE,
        ).order_by(Hub.id)
    )
    for hub in result.scalars().all():
        if hub.covers(area):
            return hub
    return None


async def resolve_next_hop(db: AsyncSession, parcel: Parcel) -> str:
    """
    Next hub on the way from the parcel's current hub to its destination.

    - At the destination: the destination itself, or the area hub below a
      district destination that covers the destination area.
    - Area hub: itself when it covers the destination area, otherwise its
      parent district hub.
    - District hub: the destination area hub when it sits in this district,
      otherwise the destination's district hub.
    """
    current = await db.get(Hub, parcel.current_hub_id)
    destination = await db.get(Hub, parcel.destination_hub_id)
    if current is None or destination is None:
        raise NoRouteError(
            f"Parcel {parcel.id} references a hub that no longer exists",
            details={"current_hub_id": parcel.current_hub_id, "destination_hub_id": parcel.destination_hub_id}
        )

    if current.id == destination.id:
        if current.hub_type == HubType.DISTRICT:
            child = await _covering_child(db, current, parcel.destination_area)
            if child:
                return child.id
        return destination.id

    if current.hub_type == HubType.AREA:
        if parcel.destination_area and current.covers(parcel.destination_area):
            return current.id
        if current.parent_hub_id is None:
            raise NoRouteError(
                f"Area hub {current.id} has no district hub",
                details={"hub_id": current.id}
            )
        return current.parent_hub_id

    destination_district = destination.id if destination.hub_type == HubType.DISTRICT else destination.parent_hub_id
    if destination_district is None:
        raise NoRouteError(
            f"Destination hub {destination.id} is not attached to a district",
            details={"destination_hub_id": destination.id}
        )

    if destination_district != current.id:
        return destination_district
    return destination.id


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------

async def release_rider_if_idle(db: AsyncSession, rider_id: Optional[str]) -> Optional[Rider]:
    """
    Flip a rider back to Available once no active parcel is left on them.

    Callers flush their parcel changes first so the count sees them.
    """
    if rider_id is None:
        return None
    rider = await db.get(Rider, rider_id, populate_existing=True)
    if rider is None or rider.status != RiderStatus.ON_DELIVERY:
        return rider
    if await count_active_parcels(db, rider_id) == 0:
        rider.status = RiderStatus.AVAILABLE
        await db.flush()
        logger.info("Rider %s is available again", rider_id)
    return rider


def is_pickup(parcel: Parcel) -> bool:
    return parcel.status == ParcelStatus.REQUESTED


async def _check_rider_can_take(db: AsyncSession, rider: Rider, parcels: List[Parcel]):
    """
    Raise unless the rider can take all the given parcels on top of the ones
    already carried.

    A batch containing a pickup is held to the pickup limit.
    """
    if rider.status == RiderStatus.SUSPENDED:
        raise RiderUnavailableError(rider.id, "rider is suspended")

    for parcel in parcels:
        if rider.hub_id != parcel.current_hub_id:
            raise HubMismatchError(rider.id, rider.hub_id, parcel.current_hub_id)

    pickup = any(is_pickup(p) for p in parcels)
    if pickup and rider.status != RiderStatus.AVAILABLE:
        raise RiderUnavailableError(rider.id, f"rider is {rider.status.value}")

    capacity = settings.pickup_rider_capacity if pickup else settings.transit_rider_capacity
    active = await count_active_parcels(db, rider.id)
    if active + len(parcels) > capacity:
        raise RiderUnavailableError(
            rider.id, f"rider already carries {active} parcel(s), limit is {capacity}"
        )


async def assign_rider(
    db: AsyncSession,
    parcel_id: str,
    rider_id: str,
    actor: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Parcel:
    """
    Put a rider on a parcel.

    Both entities are locked for the whole command, so of two concurrent
    assignments the second always sees the first one's rider and fails with
    AlreadyAssignedError. Re-assigning the rider already on the parcel is a
    no-op.
    """
    async with entity_locks.hold(parcel_key(parcel_id), rider_key(rider_id)):
        async with audited(
            db, AuditAction.RIDER_ASSIGNED, "parcel", parcel_id, actor,
            metadata={"rider_id": rider_id},
        ) as scope:
            parcel = await load_parcel(db, parcel_id)
            if is_terminal(parcel.status):
                raise TerminalStateError(parcel.id, parcel.status.value)

            if parcel.assigned_rider_id == rider_id:
                scope.metadata["idempotent"] = True
            elif parcel.assigned_rider_id is not None:
                raise AlreadyAssignedError(parcel.id, parcel.assigned_rider_id)
            else:
                check_version(parcel, expected_version)

                rider = await db.get(Rider, rider_id, populate_existing=True)
                if rider is None:
                    raise NotFoundError("Rider", rider_id)
                await _check_rider_can_take(db, rider, [parcel])

                # Only a pickup puts the rider on the road
                if is_pickup(parcel) and rider.status == RiderStatus.AVAILABLE:
                    rider.status = RiderStatus.ON_DELIVERY
                parcel.assigned_rider_id = rider.id
                await db.flush()
                await db.refresh(parcel)
                scope.metadata["parcel_status"] = parcel.status.value

    logger.info("Rider %s assigned to parcel %s", rider_id, parcel_id)
    return parcel


async def bulk_assign_rider(
    db: AsyncSession,
    parcel_ids: Sequence[str],
    rider_id: str,
    actor: Optional[str] = None,
) -> List[Parcel]:
    """
    Put one rider on a batch of parcels at the rider's hub, all or nothing.

    The whole batch counts against the rider's capacity. Parcels already on
    this rider are kept; a parcel on another rider rejects the batch.
    """
    ids = list(dict.fromkeys(parcel_ids))

    async with entity_locks.hold(rider_key(rider_id), *[parcel_key(p) for p in ids]):
        async with audited(
            db, AuditAction.RIDER_ASSIGNED, "parcel", None, actor,
            metadata={"bulk": True, "ids": ids, "rider_id": rider_id},
        ) as scope:
            rider = await db.get(Rider, rider_id, populate_existing=True)
            if rider is None:
                raise NotFoundError("Rider", rider_id)

            parcels = [await load_parcel(db, parcel_id) for parcel_id in ids]
            pending = []
            for parcel in parcels:
                if is_terminal(parcel.status):
                    raise TerminalStateError(parcel.id, parcel.status.value)
                if parcel.assigned_rider_id == rider.id:
                    continue
                if parcel.assigned_rider_id is not None:
                    raise AlreadyAssignedError(parcel.id, parcel.assigned_rider_id)
                pending.append(parcel)

            if pending:
                await _check_rider_can_take(db, rider, pending)
                if any(is_pickup(p) for p in pending) and rider.status == RiderStatus.AVAILABLE:
                    rider.status = RiderStatus.ON_DELIVERY
                for parcel in pending:
                    parcel.assigned_rider_id = rider.id
                await db.flush()
                for parcel in parcels:
                    await db.refresh(parcel)
            scope.metadata["assigned"] = [p.id for p in pending]

    logger.info("Rider %s assigned to %d parcel(s)", rider_id, len(pending))
    return parcels


async def unassign_rider(
    db: AsyncSession,
    parcel_id: str,
    actor: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Parcel:
    """
    Take the rider off a parcel that is waiting for pickup or sitting at a hub.
    """
    async with entity_locks.hold(parcel_key(parcel_id)):
        rider_id = await peek_assigned_rider(db, parcel_id)
        async with entity_locks.hold(rider_key(rider_id)):
            async with audited(db, AuditAction.RIDER_UNASSIGNED, "parcel", parcel_id, actor) as scope:
                parcel = await load_parcel(db, parcel_id)
                if is_terminal(parcel.status):
                    raise TerminalStateError(parcel.id, parcel.status.value)
                if parcel.assigned_rider_id is None:
                    raise ValidationError(
                        f"Parcel {parcel.id} has no rider assigned",
                        details={"parcel_id": parcel.id}
                    )
                if parcel.status not in UNASSIGNABLE_STATUSES:
                    raise RiderRequiredError(parcel.id, parcel.status.value)
                check_version(parcel, expected_version)

                previous = parcel.assigned_rider_id
                scope.metadata["rider_id"] = previous
                parcel.assigned_rider_id = None
                await db.flush()
                await release_rider_if_idle(db, previous)
                await db.refresh(parcel)

    return parcel


# ---------------------------------------------------------------------------
# Hub-manager views
# ---------------------------------------------------------------------------

async def hub_queues(db: AsyncSession, hub_id: str) -> Dict[str, List[Parcel]]:
    """
    Incoming / inventory / outgoing parcels for one hub.

    These are derived from status and hub references, not stored:
    - incoming: booked or being picked up for this hub, or in transit to it
    - inventory: physically at this hub
    - outgoing: left this hub and not yet at the next one
    """
    await get_hub(db, hub_id)

    incoming = or_(
        and_(Parcel.current_hub_id == hub_id, Parcel.status.in_(INCOMING_STATUSES)),
        and_(Parcel.next_hop_hub_id == hub_id, Parcel.status == ParcelStatus.IN_TRANSIT),
    )
    inventory = and_(Parcel.current_hub_id == hub_id, Parcel.status.in_(list(HUB_STATUSES)))
    outgoing = and_(Parcel.current_hub_id == hub_id, Parcel.status.in_(OUTGOING_STATUSES))

    queues = {}
    for name, condition in (("incoming", incoming), ("inventory", inventory), ("outgoing", outgoing)):
        result = await db.execute(select(Parcel).where(condition).order_by(Parcel.created_at, Parcel.id))
        queues[name] = list(result.scalars().all())
    return queues
