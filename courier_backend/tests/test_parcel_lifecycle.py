"""
Parcel lifecycle tests: booking, status transitions and the journey.
"""

import pytest

from courier_backend.app.core.exceptions import (
    IllegalTransitionError, TerminalStateError, RiderRequiredError,
    MerchantNotVerifiedError, NoRouteError, NotFoundError, ConflictError, ValidationError
)
from courier_backend.app.models.entity_enums import RiderStatus
from courier_backend.app.models.rider import Rider
from courier_backend.app.models.parcel_enums import ParcelStatus as S
from courier_backend.app.schemas.rider import RiderUpsert
from courier_backend.app.services import entities
from courier_backend.app.services.audit import get_audit_trail, AuditAction
from courier_backend.app.services.journey import get_journey
from courier_backend.app.services.parcels import advance, get_parcel, create_parcel, list_parcels
from courier_backend.app.services.routing import assign_rider
from courier_backend.tests.helpers import ADMIN, parcel_data, bring_to_area_hub


async def assert_journey_matches(db, parcel_id):
    parcel = await get_parcel(db, parcel_id)
    journey = await get_journey(db, parcel_id)
    assert journey[-1].label == parcel.status.value
    assert [e.sequence for e in journey] == list(range(1, len(journey) + 1))
    timestamps = [e.timestamp for e in journey]
    assert timestamps == sorted(timestamps)
    return parcel, journey


@pytest.mark.asyncio
async def test_booking_snapshots_fare_and_resolves_destination(db_session, book_parcel):
    parcel = await book_parcel()

    assert parcel.id.startswith("PCL-")
    assert parcel.status == S.REQUESTED
    assert parcel.fare == pytest.approx(626.5)
    assert parcel.pricing_version == 1
    assert parcel.destination_hub_id == "HA3"
    assert parcel.current_hub_id == "HA1"

    _, journey = await assert_journey_matches(db_session, parcel.id)
    assert len(journey) == 1
    assert journey[0].hub_id == "HA1"


@pytest.mark.asyncio
async def test_express_booking(book_parcel):
    parcel = await book_parcel(service_type="Express")
    assert parcel.fare == pytest.approx(877.1)


@pytest.mark.asyncio
async def test_unverified_merchant_cannot_book(db_session, network):
    with pytest.raises(MerchantNotVerifiedError):
        await create_parcel(db_session, parcel_data(merchant_id=network.pending_merchant), ADMIN)

    parcels, total = await list_parcels(db_session)
    assert total == 0


@pytest.mark.asyncio
async def test_unknown_destination_area(db_session, network):
    with pytest.raises(NoRouteError):
        await create_parcel(db_session, parcel_data(destination_area="Sylhet"), ADMIN)


@pytest.mark.asyncio
async def test_inactive_origin_rejected(db_session, network):
    await entities.deactivate_hub(db_session, "HA2", ADMIN)
    with pytest.raises(ValidationError):
        await create_parcel(db_session, parcel_data(origin_hub_id="HA2"), ADMIN)


@pytest.mark.asyncio
async def test_skipping_to_delivered_is_illegal(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    with pytest.raises(IllegalTransitionError):
        await advance(db_session, parcel_id, S.DELIVERED, ADMIN)

    reloaded, journey = await assert_journey_matches(db_session, parcel_id)
    assert reloaded.status == S.REQUESTED
    assert len(journey) == 1


@pytest.mark.asyncio
async def test_pickup_requires_rider(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    with pytest.raises(RiderRequiredError):
        await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)


@pytest.mark.asyncio
async def test_full_journey_to_delivery(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    await assign_rider(db_session, parcel_id, "RD1", ADMIN)
    assert (await entities.get_rider(db_session, "RD1")).status == RiderStatus.ON_DELIVERY

    await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)
    await advance(db_session, parcel_id, S.PICKED_UP, ADMIN)
    await assert_journey_matches(db_session, parcel_id)

    # Arrival at the origin hub hands the parcel over and frees the rider
    await advance(db_session, parcel_id, S.AT_AREA_HUB, ADMIN)
    at_hub, _ = await assert_journey_matches(db_session, parcel_id)
    assert at_hub.current_hub_id == "HA1"
    assert at_hub.assigned_rider_id is None
    rider = await db_session.get(Rider, "RD1", populate_existing=True)
    assert rider.status == RiderStatus.AVAILABLE

    # Dispatch needs a rider for the line haul
    with pytest.raises(RiderRequiredError):
        await advance(db_session, parcel_id, S.IN_TRANSIT, ADMIN)
    await assign_rider(db_session, parcel_id, "RD2", ADMIN)

    await advance(db_session, parcel_id, S.IN_TRANSIT, ADMIN, hub_id="HD2")
    in_transit, journey = await assert_journey_matches(db_session, parcel_id)
    assert in_transit.next_hop_hub_id == "HD2"
    assert in_transit.assigned_rider_id == "RD2"
    assert journey[-1].hub_id is None

    await advance(db_session, parcel_id, S.AT_DISTRICT_HUB, ADMIN)
    at_district, journey = await assert_journey_matches(db_session, parcel_id)
    assert at_district.current_hub_id == "HD2"
    assert at_district.next_hop_hub_id is None
    assert at_district.assigned_rider_id is None
    assert journey[-1].hub_id == "HD2"

    await assign_rider(db_session, parcel_id, "RD4", ADMIN)
    await advance(db_session, parcel_id, S.OUT_FOR_DELIVERY, ADMIN)
    event = await advance(db_session, parcel_id, S.DELIVERED, ADMIN, note="Received by customer")

    delivered, journey = await assert_journey_matches(db_session, parcel_id)
    assert delivered.status == S.DELIVERED
    assert event.note == "Received by customer"
    assert [e.label for e in journey] == [
        "Requested", "Picking Up", "Picked Up", "At Area Hub", "In Transit",
        "At District Hub", "Out for Delivery", "Delivered",
    ]
    rider = await db_session.get(Rider, "RD4", populate_existing=True)
    assert rider.status == RiderStatus.AVAILABLE


@pytest.mark.asyncio
async def test_dispatch_defaults_to_routed_district(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await bring_to_area_hub(db_session, parcel_id)
    await assign_rider(db_session, parcel_id, "RD2", ADMIN)

    await advance(db_session, parcel_id, S.IN_TRANSIT, ADMIN)
    assert (await get_parcel(db_session, parcel_id)).next_hop_hub_id == "HD1"


@pytest.mark.asyncio
async def test_local_parcel_is_dispatched_to_parent_district(db_session, book_parcel):
    # HA1 covers Banani itself, the line haul still ends at a district hub
    parcel = await book_parcel(destination_area="Banani")
    parcel_id = parcel.id
    await bring_to_area_hub(db_session, parcel_id)
    await assign_rider(db_session, parcel_id, "RD2", ADMIN)

    await advance(db_session, parcel_id, S.IN_TRANSIT, ADMIN)
    assert (await get_parcel(db_session, parcel_id)).next_hop_hub_id == "HD1"


@pytest.mark.asyncio
async def test_dispatch_to_area_hub_is_rejected(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await bring_to_area_hub(db_session, parcel_id)
    await assign_rider(db_session, parcel_id, "RD2", ADMIN)

    with pytest.raises(ValidationError):
        await advance(db_session, parcel_id, S.IN_TRANSIT, ADMIN, hub_id="HA3")

    reloaded = await get_parcel(db_session, parcel_id)
    assert reloaded.status == S.AT_AREA_HUB
    assert reloaded.next_hop_hub_id is None


@pytest.mark.asyncio
async def test_arrival_must_match_dispatch_hub(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await bring_to_area_hub(db_session, parcel_id)
    await assign_rider(db_session, parcel_id, "RD2", ADMIN)
    await advance(db_session, parcel_id, S.IN_TRANSIT, ADMIN)

    with pytest.raises(ValidationError):
        await advance(db_session, parcel_id, S.AT_DISTRICT_HUB, ADMIN, hub_id="HD2")
    with pytest.raises(ValidationError):
        await advance(db_session, parcel_id, S.AT_DISTRICT_HUB, ADMIN, hub_id="HA2")

    reloaded, journey = await assert_journey_matches(db_session, parcel_id)
    assert reloaded.status == S.IN_TRANSIT
    assert reloaded.current_hub_id == "HA1"

    await advance(db_session, parcel_id, S.AT_DISTRICT_HUB, ADMIN, hub_id="HD1")
    assert (await get_parcel(db_session, parcel_id)).current_hub_id == "HD1"


@pytest.mark.asyncio
async def test_area_hub_arrival_needs_area_hub(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await assign_rider(db_session, parcel_id, "RD1", ADMIN)
    await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)
    await advance(db_session, parcel_id, S.PICKED_UP, ADMIN)

    with pytest.raises(ValidationError) as exc_info:
        await advance(db_session, parcel_id, S.AT_AREA_HUB, ADMIN, hub_id="HD1")
    assert exc_info.value.details["hub_type"] == "district"

    reloaded = await get_parcel(db_session, parcel_id)
    assert reloaded.status == S.PICKED_UP
    assert reloaded.assigned_rider_id == "RD1"


@pytest.mark.asyncio
async def test_repeated_delivery_returns_the_same_event(db_session, book_parcel):
    parcel = await book_parcel(destination_area="Gulshan")
    parcel_id = parcel.id
    await bring_to_area_hub(db_session, parcel_id)
    await assign_rider(db_session, parcel_id, "RD2", ADMIN)
    await advance(db_session, parcel_id, S.IN_TRANSIT, ADMIN)
    await advance(db_session, parcel_id, S.AT_DISTRICT_HUB, ADMIN)

    await entities.upsert_rider(
        db_session, "RD5", RiderUpsert(name="Rider RD5", hub_id="HD1"), ADMIN
    )
    await assign_rider(db_session, parcel_id, "RD5", ADMIN)
    await advance(db_session, parcel_id, S.OUT_FOR_DELIVERY, ADMIN)

    first = await advance(db_session, parcel_id, S.DELIVERED, ADMIN)
    rider_after_first = (await db_session.get(Rider, "RD5", populate_existing=True)).status
    journey_after_first = await get_journey(db_session, parcel_id)

    second = await advance(db_session, parcel_id, S.DELIVERED, ADMIN)

    assert second.id == first.id
    assert second.sequence == first.sequence
    assert (await db_session.get(Rider, "RD5", populate_existing=True)).status == rider_after_first
    journey = await get_journey(db_session, parcel_id)
    assert len(journey) == len(journey_after_first)
    assert journey[-1].label == "Delivered"
    assert [e.label for e in journey].count("Delivered") == 1


@pytest.mark.asyncio
async def test_repeated_advance_is_idempotent(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await advance(db_session, parcel_id, S.RETURNED, ADMIN)

    first = await advance(db_session, parcel_id, S.RETURNED, ADMIN)
    second = await advance(db_session, parcel_id, S.RETURNED, ADMIN)

    assert first.id == second.id
    journey = await get_journey(db_session, parcel_id)
    assert [e.label for e in journey] == ["Requested", "Returned"]


@pytest.mark.asyncio
async def test_terminal_parcel_cannot_move(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await advance(db_session, parcel_id, S.RETURNED, ADMIN)

    with pytest.raises(TerminalStateError):
        await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)


@pytest.mark.asyncio
async def test_on_hold_resumes_previous_status(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    await advance(db_session, parcel_id, S.ON_HOLD, ADMIN, note="Customer unreachable")
    held = await get_parcel(db_session, parcel_id)
    assert held.resume_status == S.REQUESTED

    with pytest.raises(IllegalTransitionError):
        await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)

    await advance(db_session, parcel_id, S.REQUESTED, ADMIN)
    resumed, journey = await assert_journey_matches(db_session, parcel_id)
    assert resumed.status == S.REQUESTED
    assert resumed.resume_status is None
    assert [e.label for e in journey] == ["Requested", "On Hold", "Requested"]


@pytest.mark.asyncio
async def test_disputed_only_through_dispute_service(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    with pytest.raises(IllegalTransitionError):
        await advance(db_session, parcel_id, S.DISPUTED, ADMIN)


@pytest.mark.asyncio
async def test_stale_expected_version_conflicts(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id, version = parcel.id, parcel.version

    await advance(db_session, parcel_id, S.ON_HOLD, ADMIN, expected_version=version)

    with pytest.raises(ConflictError) as exc_info:
        await advance(db_session, parcel_id, S.REQUESTED, ADMIN, expected_version=version)
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_unknown_parcel(db_session, network):
    with pytest.raises(NotFoundError):
        await advance(db_session, "PCL-MISSING", S.PICKING_UP, ADMIN)


@pytest.mark.asyncio
async def test_rejected_transition_is_audited(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id

    with pytest.raises(IllegalTransitionError):
        await advance(db_session, parcel_id, S.DELIVERED, "ops@courier")

    failures, total = await get_audit_trail(db_session, entity_id=parcel_id, outcome="failure")
    assert total == 1
    entry = failures[0]
    assert entry.action == AuditAction.PARCEL_ADVANCED
    assert entry.error_code == "ERR_STATE_001"
    assert entry.level == "warn"
    assert entry.actor == "ops@courier"

    successes, _ = await get_audit_trail(db_session, entity_id=parcel_id, outcome="success")
    assert [e.action for e in successes] == [AuditAction.PARCEL_CREATED]


@pytest.mark.asyncio
async def test_list_parcels_filters(db_session, book_parcel):
    first = await book_parcel()
    await book_parcel(customer_name="Tanvir Ahmed", destination_area="Dhanmondi")
    first_id = first.id
    await advance(db_session, first_id, S.ON_HOLD, ADMIN)

    held, total = await list_parcels(db_session, status=S.ON_HOLD)
    assert total == 1 and held[0].id == first_id

    found, total = await list_parcels(db_session, search="tanvir")
    assert total == 1
    assert found[0].destination_hub_id == "HA2"

    _, total = await list_parcels(db_session, merchant_id="M1", hub_id="HA1")
    assert total == 2
