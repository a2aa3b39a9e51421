"""
Rider assignment, availability and hub routing tests.
"""

import asyncio
from types import SimpleNamespace

import pytest

from courier_backend.app.core.exceptions import (
    HubMismatchError, AlreadyAssignedError, RiderUnavailableError,
    RiderRequiredError, TerminalStateError, NoRouteError
)
from courier_backend.app.core.config import settings
from courier_backend.app.models.entity_enums import RiderStatus
from courier_backend.app.models.parcel_enums import ParcelStatus as S
from courier_backend.app.models.rider import Rider
from courier_backend.app.services import entities
from courier_backend.app.services.journey import get_journey
from courier_backend.app.services.parcels import advance, bulk_advance, get_parcel, list_parcels, next_hop
from courier_backend.app.services.routing import (
    assign_rider, bulk_assign_rider, unassign_rider, resolve_destination_hub, resolve_next_hop, hub_queues
)
from courier_backend.tests.helpers import ADMIN, bring_to_area_hub


@pytest.mark.asyncio
async def test_rider_from_another_hub_is_rejected(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    with pytest.raises(HubMismatchError):
        await assign_rider(db_session, parcel_id, "RD3", ADMIN)

    reloaded = await get_parcel(db_session, parcel_id)
    assert reloaded.assigned_rider_id is None


@pytest.mark.asyncio
async def test_second_assignment_fails(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await assign_rider(db_session, parcel_id, "RD1", ADMIN)

    with pytest.raises(AlreadyAssignedError):
        await assign_rider(db_session, parcel_id, "RD2", ADMIN)

    # Same rider again is a no-op
    again = await assign_rider(db_session, parcel_id, "RD1", ADMIN)
    assert again.assigned_rider_id == "RD1"


@pytest.mark.asyncio
async def test_concurrent_assignment_is_exclusive(session_factory, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    async def attempt(rider_id):
        async with session_factory() as session:
            return await assign_rider(session, parcel_id, rider_id, ADMIN)

    results = await asyncio.gather(attempt("RD1"), attempt("RD2"), return_exceptions=True)

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], AlreadyAssignedError)

    async with session_factory() as session:
        stored = await get_parcel(session, parcel_id)
        assert stored.assigned_rider_id == winners[0].assigned_rider_id


@pytest.mark.asyncio
async def test_suspended_rider_unavailable(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await entities.set_rider_status(db_session, "RD1", RiderStatus.SUSPENDED, ADMIN)

    with pytest.raises(RiderUnavailableError):
        await assign_rider(db_session, parcel_id, "RD1", ADMIN)


@pytest.mark.asyncio
async def test_busy_rider_cannot_take_second_pickup(db_session, book_parcel):
    first = await book_parcel()
    second = await book_parcel()
    first_id, second_id = first.id, second.id

    await assign_rider(db_session, first_id, "RD1", ADMIN)
    with pytest.raises(RiderUnavailableError):
        await assign_rider(db_session, second_id, "RD1", ADMIN)

    await assign_rider(db_session, second_id, "RD2", ADMIN)


@pytest.mark.asyncio
async def test_assignment_on_terminal_parcel(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await advance(db_session, parcel_id, S.RETURNED, ADMIN)

    with pytest.raises(TerminalStateError):
        await assign_rider(db_session, parcel_id, "RD1", ADMIN)


@pytest.mark.asyncio
async def test_returned_parcel_frees_rider(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await assign_rider(db_session, parcel_id, "RD1", ADMIN)
    await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)

    await advance(db_session, parcel_id, S.RETURNED, ADMIN)

    rider = await db_session.get(Rider, "RD1", populate_existing=True)
    assert rider.status == RiderStatus.AVAILABLE


@pytest.mark.asyncio
async def test_unassign_before_pickup(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await assign_rider(db_session, parcel_id, "RD1", ADMIN)

    unassigned = await unassign_rider(db_session, parcel_id, ADMIN)
    assert unassigned.assigned_rider_id is None
    rider = await db_session.get(Rider, "RD1", populate_existing=True)
    assert rider.status == RiderStatus.AVAILABLE


@pytest.mark.asyncio
async def test_unassign_refused_while_rider_carries_parcel(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await assign_rider(db_session, parcel_id, "RD1", ADMIN)
    await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)

    with pytest.raises(RiderRequiredError):
        await unassign_rider(db_session, parcel_id, ADMIN)


@pytest.mark.asyncio
async def test_destination_lookup_prefers_area_hubs(db_session, network):
    assert (await resolve_destination_hub(db_session, "banani")).id == "HA1"
    assert (await resolve_destination_hub(db_session, "Chattogram")).id == "HD2"
    with pytest.raises(NoRouteError):
        await resolve_destination_hub(db_session, "Rajshahi")


@pytest.mark.asyncio
async def test_next_hop_through_hub_tree(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    # Area hub outside destination coverage goes up to its district
    _, hop = await next_hop(db_session, parcel_id)
    assert hop == "HD1"

    def at(hub_id, destination="HA3", area="Agrabad"):
        return SimpleNamespace(id=parcel_id, current_hub_id=hub_id, destination_hub_id=destination, destination_area=area)

    # District hub of another district routes to the destination district
    assert await resolve_next_hop(db_session, at("HD1")) == "HD2"
    # Destination district routes down to the destination area hub
    assert await resolve_next_hop(db_session, at("HD2")) == "HA3"
    assert await resolve_next_hop(db_session, at("HA3")) == "HA3"
    # Same-district delivery skips the district hop
    assert await resolve_next_hop(db_session, at("HD1", destination="HA2", area="Dhanmondi")) == "HA2"
    # District destination resolved down to the covering area hub
    assert await resolve_next_hop(db_session, at("HD2", destination="HD2", area="Agrabad")) == "HA3"


@pytest.mark.asyncio
async def test_hub_queues(db_session, book_parcel):
    waiting = await book_parcel()
    moving = await book_parcel()
    waiting_id, moving_id = waiting.id, moving.id

    await assign_rider(db_session, moving_id, "RD1", ADMIN)
    for status in (S.PICKING_UP, S.PICKED_UP, S.AT_AREA_HUB):
        await advance(db_session, moving_id, status, ADMIN)

    queues = await hub_queues(db_session, "HA1")
    assert [p.id for p in queues["incoming"]] == [waiting_id]
    assert [p.id for p in queues["inventory"]] == [moving_id]
    assert queues["outgoing"] == []

    await assign_rider(db_session, moving_id, "RD2", ADMIN)
    await advance(db_session, moving_id, S.IN_TRANSIT, ADMIN)

    origin = await hub_queues(db_session, "HA1")
    assert [p.id for p in origin["outgoing"]] == [moving_id]
    assert origin["inventory"] == []

    district = await hub_queues(db_session, "HD1")
    assert [p.id for p in district["incoming"]] == [moving_id]


@pytest.mark.asyncio
async def test_hub_assignment_keeps_rider_available(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await bring_to_area_hub(db_session, parcel_id)

    assigned = await assign_rider(db_session, parcel_id, "RD2", ADMIN)
    assert assigned.assigned_rider_id == "RD2"
    rider = await db_session.get(Rider, "RD2", populate_existing=True)
    assert rider.status == RiderStatus.AVAILABLE


async def parcels_at_origin_hub(book_parcel, db, count):
    ids = []
    for _ in range(count):
        parcel = await book_parcel()
        ids.append(parcel.id)
        await bring_to_area_hub(db, parcel.id)
    return ids


@pytest.mark.asyncio
async def test_bulk_assign_then_dispatch_and_receive(db_session, book_parcel):
    ids = await parcels_at_origin_hub(book_parcel, db_session, 3)

    assigned = await bulk_assign_rider(db_session, ids, "RD2", ADMIN)
    assert [p.id for p in assigned] == ids
    assert {p.assigned_rider_id for p in assigned} == {"RD2"}

    events = await bulk_advance(db_session, ids, S.IN_TRANSIT, ADMIN, hub_id="HD2")
    assert [e.label for e in events] == ["In Transit"] * 3
    for parcel_id in ids:
        assert (await get_parcel(db_session, parcel_id)).next_hop_hub_id == "HD2"

    await bulk_advance(db_session, ids, S.AT_DISTRICT_HUB, ADMIN)
    for parcel_id in ids:
        received = await get_parcel(db_session, parcel_id)
        assert received.current_hub_id == "HD2"
        assert received.assigned_rider_id is None

    # Receiving again changes nothing
    again = await bulk_advance(db_session, ids, S.AT_DISTRICT_HUB, ADMIN)
    assert [e.label for e in again] == ["At District Hub"] * 3
    assert len(await get_journey(db_session, ids[0])) == 6


@pytest.mark.asyncio
async def test_bulk_assign_is_all_or_nothing(db_session, book_parcel):
    ids = await parcels_at_origin_hub(book_parcel, db_session, 2)
    booked = await book_parcel()
    taken_id = booked.id
    await assign_rider(db_session, taken_id, "RD1", ADMIN)

    with pytest.raises(AlreadyAssignedError):
        await bulk_assign_rider(db_session, ids + [taken_id], "RD2", ADMIN)

    for parcel_id in ids:
        assert (await get_parcel(db_session, parcel_id)).assigned_rider_id is None


@pytest.mark.asyncio
async def test_bulk_assign_respects_transit_capacity(db_session, book_parcel, monkeypatch):
    monkeypatch.setattr(settings, "transit_rider_capacity", 2)
    ids = await parcels_at_origin_hub(book_parcel, db_session, 3)

    with pytest.raises(RiderUnavailableError):
        await bulk_assign_rider(db_session, ids, "RD2", ADMIN)
    _, total = await list_parcels(db_session, rider_id="RD2")
    assert total == 0

    await bulk_assign_rider(db_session, ids[:2], "RD2", ADMIN)
    with pytest.raises(RiderUnavailableError):
        await assign_rider(db_session, ids[2], "RD2", ADMIN)


@pytest.mark.asyncio
async def test_bulk_dispatch_rolls_back_when_one_parcel_has_no_rider(db_session, book_parcel):
    ids = await parcels_at_origin_hub(book_parcel, db_session, 2)
    await assign_rider(db_session, ids[0], "RD2", ADMIN)

    with pytest.raises(RiderRequiredError):
        await bulk_advance(db_session, ids, S.IN_TRANSIT, ADMIN)

    for parcel_id in ids:
        parcel = await get_parcel(db_session, parcel_id)
        assert parcel.status == S.AT_AREA_HUB
        assert parcel.next_hop_hub_id is None
    assert [e.label for e in await get_journey(db_session, ids[0])][-1] == "At Area Hub"
