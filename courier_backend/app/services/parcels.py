"""
Parcel service.

Books parcels, lists and tracks them, and drives them through the state
machine. Every status change appends exactly one journey event in the same
transaction as the status write.
"""

import logging
from typing import Optional, List, Sequence, Tuple

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.exceptions import (
    ValidationError, MerchantNotVerifiedError, IllegalTransitionError,
    TerminalStateError, RiderRequiredError, NoRouteError
)
from courier_backend.app.core.ids import new_id, PARCEL_PREFIX
from courier_backend.app.domain.parcel.state_machine import (
    is_terminal, is_legal, is_forward_move, allowed_targets,
    DISPUTE_CONTROLLED, RIDER_REQUIRED_STATUSES, RIDER_BOUND_STATUSES, HUB_STATUSES
)
from courier_backend.app.domain.pricing.engine import quote
from courier_backend.app.domain.pricing.resolver import PricingResolver
from courier_backend.app.models.entity_enums import HubType, HubStatus, MerchantStatus
from courier_backend.app.models.hub import Hub
from courier_backend.app.models.parcel import Parcel
from courier_backend.app.models.parcel_event import ParcelEvent
from courier_backend.app.models.parcel_enums import ParcelStatus
from courier_backend.app.schemas.parcel import ParcelCreate
from courier_backend.app.services.audit import audited, AuditAction
from courier_backend.app.services.cache import invalidate_overview
from courier_backend.app.services.entities import get_hub, get_merchant, paginate
from courier_backend.app.services.journey import (
    load_parcel, latest_event, append_event, check_version, peek_assigned_rider
)
from courier_backend.app.services.locking import entity_locks, parcel_key, rider_key
from courier_backend.app.services.pricing import attributes_of
from courier_backend.app.services.routing import (
    resolve_destination_hub, resolve_next_hop, release_rider_if_idle
)

logger = logging.getLogger(__name__)


async def create_parcel(db: AsyncSession, data: ParcelCreate, actor: Optional[str] = None) -> Parcel:
    """
    Book a parcel for a verified merchant.

    The fare is quoted once here with the active pricing version and stored
    on the parcel together with that version id.
    """
    parcel_id = new_id(PARCEL_PREFIX)

    async with audited(
        db, AuditAction.PARCEL_CREATED, "parcel", parcel_id, actor,
        metadata={"merchant_id": data.merchant_id},
    ) as scope:
        merchant = await get_merchant(db, data.merchant_id)
        if merchant.status != MerchantStatus.VERIFIED:
            raise MerchantNotVerifiedError(merchant.id, merchant.status.value)

        origin = await get_hub(db, data.origin_hub_id)
        if origin.status != HubStatus.ACTIVE:
            raise ValidationError(
                f"Origin hub {origin.id} is inactive",
                details={"origin_hub_id": origin.id}
            )

        if data.destination_hub_id:
            destination = await get_hub(db, data.destination_hub_id)
            if destination.status != HubStatus.ACTIVE:
                raise ValidationError(
                    f"Destination hub {destination.id} is inactive",
                    details={"destination_hub_id": destination.id}
                )
        else:
            destination = await resolve_destination_hub(db, data.destination_area)

        config = await PricingResolver.resolve_active_config(db)
        fare = quote(attributes_of(data), config)

        parcel = Parcel(
            id=parcel_id,
            merchant_id=merchant.id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            origin_hub_id=origin.id,
            destination_hub_id=destination.id,
            destination_area=data.destination_area,
            current_hub_id=origin.id,
            weight_kg=data.weight_kg,
            distance_km=data.distance_km,
            cod_amount=data.cod_amount,
            service_type=data.service_type,
            fare=fare,
            pricing_version=config.id,
            status=ParcelStatus.REQUESTED,
        )
        db.add(parcel)
        await db.flush()

        await append_event(
            db, parcel, ParcelStatus.REQUESTED.value, actor,
            note="Parcel booked by merchant", hub_id=origin.id,
        )
        await db.refresh(parcel)

        scope.metadata.update({
            "destination_hub_id": destination.id,
            "fare": fare,
            "pricing_version": config.id,
        })

    await invalidate_overview()
    logger.info("Parcel %s booked by merchant %s, fare %.2f (v%s)", parcel_id, merchant.id, fare, config.id)
    return parcel


async def get_parcel(db: AsyncSession, parcel_id: str) -> Parcel:
    return await load_parcel(db, parcel_id)


async def list_parcels(
    db: AsyncSession,
    status: Optional[ParcelStatus] = None,
    merchant_id: Optional[str] = None,
    hub_id: Optional[str] = None,
    rider_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Parcel], int]:
    query = select(Parcel)
    if status:
        query = query.where(Parcel.status == status)
    if merchant_id:
        query = query.where(Parcel.merchant_id == merchant_id)
    if hub_id:
        query = query.where(Parcel.current_hub_id == hub_id)
    if rider_id:
        query = query.where(Parcel.assigned_rider_id == rider_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            Parcel.id.ilike(pattern),
            Parcel.customer_name.ilike(pattern),
            Parcel.customer_phone.ilike(pattern),
        ))
    return await paginate(db, query.order_by(Parcel.created_at.desc(), Parcel.id), page, page_size)


def _check_transition(parcel: Parcel, target: ParcelStatus):
    current = parcel.status

    leaving_dispute = current in DISPUTE_CONTROLLED and target != ParcelStatus.RETURNED
    if target in DISPUTE_CONTROLLED or leaving_dispute:
        raise IllegalTransitionError(
            parcel.id, current.value, target.value,
            reason="disputes are opened and resolved through the dispute endpoints"
        )

    if not is_legal(current, target, parcel.resume_status):
        allowed = sorted(s.value for s in allowed_targets(current, parcel.resume_status))
        raise IllegalTransitionError(
            parcel.id, current.value, target.value,
            reason=f"allowed next statuses: {', '.join(allowed) or 'none'}"
        )

    forward = is_forward_move(current, target)
    resuming = current == ParcelStatus.ON_HOLD and target in RIDER_BOUND_STATUSES
    if ((forward and target in RIDER_REQUIRED_STATUSES) or resuming) and not parcel.assigned_rider_id:
        raise RiderRequiredError(parcel.id, target.value)


# Hub tier a parcel must be at for each hub status
ARRIVAL_HUB_TYPES = {
    ParcelStatus.AT_AREA_HUB: HubType.AREA,
    ParcelStatus.AT_DISTRICT_HUB: HubType.DISTRICT,
}


def _require_hub_type(hub: Hub, hub_type: HubType, status: ParcelStatus):
    if hub.hub_type != hub_type:
        raise ValidationError(
            f"{status.value} needs a {hub_type.value} hub, {hub.id} is a {hub.hub_type.value} hub",
            details={"hub_id": hub.id, "hub_type": hub.hub_type.value, "status": status.value}
        )


async def _arrival_hub(db: AsyncSession, parcel: Parcel, target: ParcelStatus, hub_id: Optional[str]) -> Hub:
    """
    Hub a parcel arrives at on entering a hub status.

    A dispatched parcel can only arrive where it was sent. Otherwise the
    explicit hub is used, or the origin hub for the first arrival.
    """
    expected = parcel.next_hop_hub_id
    if hub_id and expected and hub_id != expected:
        raise ValidationError(
            f"Parcel {parcel.id} was dispatched to {expected}, not {hub_id}",
            details={"hub_id": hub_id, "next_hop_hub_id": expected}
        )

    arrival_id = hub_id or expected
    if arrival_id is None:
        if target == ParcelStatus.AT_AREA_HUB:
            arrival_id = parcel.origin_hub_id
        else:
            arrival_id = await resolve_next_hop(db, parcel)

    hub = await get_hub(db, arrival_id)
    _require_hub_type(hub, ARRIVAL_HUB_TYPES[target], target)
    return hub


async def _dispatch_hop(db: AsyncSession, parcel: Parcel, hub_id: Optional[str]) -> str:
    """
    District hub an outgoing parcel is sent to.

    The line haul always ends at a district hub: the explicit one, else the
    routed next hop, else the parent of the current area hub when that area
    already covers the destination.
    """
    if hub_id:
        hub = await get_hub(db, hub_id)
    else:
        hub = await get_hub(db, await resolve_next_hop(db, parcel))
        if hub.hub_type != HubType.DISTRICT:
            current = await get_hub(db, parcel.current_hub_id)
            if current.parent_hub_id is None:
                raise NoRouteError(
                    f"Area hub {current.id} has no district hub",
                    details={"hub_id": current.id}
                )
            hub = await get_hub(db, current.parent_hub_id)

    _require_hub_type(hub, HubType.DISTRICT, ParcelStatus.IN_TRANSIT)
    return hub.id


async def _apply_transition(
    db: AsyncSession,
    parcel: Parcel,
    target: ParcelStatus,
    actor: Optional[str],
    note: Optional[str],
    hub_id: Optional[str],
) -> Tuple[ParcelEvent, Optional[str]]:
    """
    Write the new status, its journey event and the hub/rider side effects.

    Returns:
        (appended event, rider released from the parcel or None)
    """
    current = parcel.status
    previous_rider = parcel.assigned_rider_id
    forward = is_forward_move(current, target)

    if target == ParcelStatus.ON_HOLD:
        parcel.resume_status = current
    elif current == ParcelStatus.ON_HOLD:
        parcel.resume_status = None

    if forward and target in HUB_STATUSES:
        arrival_hub = await _arrival_hub(db, parcel, target, hub_id)
        parcel.current_hub_id = arrival_hub.id
        parcel.next_hop_hub_id = None
        # Hand-off: the hub takes the parcel over from the rider
        parcel.assigned_rider_id = None
    elif forward and target == ParcelStatus.IN_TRANSIT:
        parcel.next_hop_hub_id = await _dispatch_hop(db, parcel, hub_id)

    parcel.status = target
    event_hub = None if target == ParcelStatus.IN_TRANSIT else parcel.current_hub_id
    event = await append_event(db, parcel, target.value, actor, note=note, hub_id=event_hub)

    released = None
    if previous_rider and (parcel.assigned_rider_id is None or is_terminal(target)):
        await release_rider_if_idle(db, previous_rider)
        released = previous_rider
    return event, released


async def _move(
    db: AsyncSession,
    parcel: Parcel,
    target: ParcelStatus,
    actor: Optional[str],
    note: Optional[str],
    hub_id: Optional[str],
    expected_version: Optional[int] = None,
) -> Tuple[ParcelEvent, Optional[str]]:
    if is_terminal(parcel.status):
        raise TerminalStateError(parcel.id, parcel.status.value)
    check_version(parcel, expected_version)
    _check_transition(parcel, target)
    return await _apply_transition(db, parcel, target, actor, note, hub_id)


async def advance(
    db: AsyncSession,
    parcel_id: str,
    target_status: ParcelStatus,
    actor: Optional[str] = None,
    note: Optional[str] = None,
    hub_id: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> ParcelEvent:
    """
    Move a parcel to target_status.

    Asking for the status the parcel is already in is a successful no-op
    that returns the latest journey event, so retried commands are safe.

    Raises:
        NotFoundError, TerminalStateError, IllegalTransitionError,
        RiderRequiredError, NoRouteError, ConflictError
    """
    target = ParcelStatus(target_status)

    async with entity_locks.hold(parcel_key(parcel_id)):
        rider_id = await peek_assigned_rider(db, parcel_id)
        async with entity_locks.hold(rider_key(rider_id)):
            async with audited(
                db, AuditAction.PARCEL_ADVANCED, "parcel", parcel_id, actor,
                metadata={"target_status": target.value},
            ) as scope:
                parcel = await load_parcel(db, parcel_id)
                scope.metadata["from_status"] = parcel.status.value

                if parcel.status == target:
                    scope.metadata["idempotent"] = True
                    event = await latest_event(db, parcel.id)
                else:
                    event, released = await _move(db, parcel, target, actor, note, hub_id, expected_version)
                    if released:
                        scope.metadata["released_rider_id"] = released
                    if parcel.next_hop_hub_id:
                        scope.metadata["next_hop_hub_id"] = parcel.next_hop_hub_id

    if not scope.metadata.get("idempotent"):
        await invalidate_overview()
        logger.info("Parcel %s moved to %s by %s", parcel_id, target.value, actor)
    return event


async def bulk_advance(
    db: AsyncSession,
    parcel_ids: Sequence[str],
    target_status: ParcelStatus,
    actor: Optional[str] = None,
    note: Optional[str] = None,
    hub_id: Optional[str] = None,
) -> List[ParcelEvent]:
    """
    Move a batch of parcels to the same status, all or nothing.

    Hub managers dispatch and receive parcels in batches. Parcels already in
    target_status are left untouched; any rejected parcel rolls back the
    whole batch.

    Returns:
        Latest journey event per parcel, in request order
    """
    target = ParcelStatus(target_status)
    ids = list(dict.fromkeys(parcel_ids))

    async with entity_locks.hold(*[parcel_key(p) for p in ids]):
        rider_ids = [await peek_assigned_rider(db, p) for p in ids]
        async with entity_locks.hold(*[rider_key(r) for r in rider_ids]):
            async with audited(
                db, AuditAction.PARCEL_ADVANCED, "parcel", None, actor,
                metadata={"bulk": True, "ids": ids, "target_status": target.value},
            ) as scope:
                events = []
                moved = []
                for parcel_id in ids:
                    parcel = await load_parcel(db, parcel_id)
                    if parcel.status == target:
                        events.append(await latest_event(db, parcel.id))
                        continue
                    event, _ = await _move(db, parcel, target, actor, note, hub_id)
                    events.append(event)
                    moved.append(parcel.id)
                scope.metadata["moved"] = moved

    if moved:
        await invalidate_overview()
        logger.info("%d parcel(s) moved to %s by %s", len(moved), target.value, actor)
    return events


async def next_hop(db: AsyncSession, parcel_id: str) -> Tuple[Parcel, str]:
    """Current routing suggestion for a parcel, without changing it."""
    parcel = await load_parcel(db, parcel_id)
    if is_terminal(parcel.status):
        raise TerminalStateError(parcel.id, parcel.status.value)
    if parcel.next_hop_hub_id:
        return parcel, parcel.next_hop_hub_id
    return parcel, await resolve_next_hop(db, parcel)
