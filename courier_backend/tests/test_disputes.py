"""
Dispute tests.
"""

import pytest

from courier_backend.app.core.exceptions import (
    DuplicateOpenDisputeError, DisputeAlreadyResolvedError, NotFoundError, IllegalTransitionError
)
from courier_backend.app.models.entity_enums import RiderStatus
from courier_backend.app.models.parcel_enums import ParcelStatus as S, DisputeStatus
from courier_backend.app.models.rider import Rider
from courier_backend.app.services.disputes import open_dispute, resolve_dispute, list_disputes
from courier_backend.app.services.journey import get_journey
from courier_backend.app.services.parcels import advance, get_parcel
from courier_backend.app.services.routing import assign_rider
from courier_backend.tests.helpers import ADMIN


@pytest.mark.asyncio
async def test_open_and_resolve_restores_prior_status(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await assign_rider(db_session, parcel_id, "RD1", ADMIN)
    await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)

    dispute = await open_dispute(db_session, parcel_id, "Merchant claims wrong COD amount", ADMIN)
    assert dispute.id.startswith("DSP-")
    assert dispute.status == DisputeStatus.OPEN
    assert dispute.prior_status == S.PICKING_UP
    assert (await get_parcel(db_session, parcel_id)).status == S.DISPUTED

    with pytest.raises(IllegalTransitionError):
        await advance(db_session, parcel_id, S.PICKED_UP, ADMIN)

    resolved = await resolve_dispute(db_session, dispute.id, "COD corrected", ADMIN)
    assert resolved.status == DisputeStatus.RESOLVED
    assert resolved.resolved_by == ADMIN

    restored = await get_parcel(db_session, parcel_id)
    assert restored.status == S.PICKING_UP
    assert restored.assigned_rider_id == "RD1"

    journey = await get_journey(db_session, parcel_id)
    assert [e.label for e in journey] == ["Requested", "Picking Up", "Disputed", "Picking Up"]


@pytest.mark.asyncio
async def test_only_one_open_dispute_per_parcel(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    first = await open_dispute(db_session, parcel_id, "Damaged packaging", ADMIN)

    with pytest.raises(DuplicateOpenDisputeError):
        await open_dispute(db_session, parcel_id, "Late delivery", ADMIN)

    await resolve_dispute(db_session, first.id, "Refund issued", ADMIN)
    second = await open_dispute(db_session, parcel_id, "Late delivery", ADMIN)
    assert second.status == DisputeStatus.OPEN

    disputes, total = await list_disputes(db_session, parcel_id=parcel_id)
    assert total == 2


@pytest.mark.asyncio
async def test_resolving_twice_fails(db_session, book_parcel):
    parcel = await book_parcel()
    dispute = await open_dispute(db_session, parcel.id, "Wrong address", ADMIN)
    dispute_id = dispute.id
    await resolve_dispute(db_session, dispute_id, "Address fixed", ADMIN)

    with pytest.raises(DisputeAlreadyResolvedError):
        await resolve_dispute(db_session, dispute_id, "Again", ADMIN)


@pytest.mark.asyncio
async def test_dispute_on_delivered_parcel_keeps_status(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await advance(db_session, parcel_id, S.RETURNED, ADMIN)

    dispute = await open_dispute(db_session, parcel_id, "Return fee charged twice", ADMIN)
    assert dispute.prior_status is None
    assert (await get_parcel(db_session, parcel_id)).status == S.RETURNED

    await resolve_dispute(db_session, dispute.id, "Fee reversed", ADMIN)
    journey = await get_journey(db_session, parcel_id)
    assert [e.label for e in journey] == ["Requested", "Returned"]


@pytest.mark.asyncio
async def test_unknown_targets(db_session, network):
    with pytest.raises(NotFoundError):
        await open_dispute(db_session, "PCL-MISSING", "?", ADMIN)
    with pytest.raises(NotFoundError):
        await resolve_dispute(db_session, "DSP-MISSING", "?", ADMIN)


@pytest.mark.asyncio
async def test_disputed_parcel_can_be_returned(db_session, book_parcel):
    parcel = await book_parcel()
    parcel_id = parcel.id
    await assign_rider(db_session, parcel_id, "RD1", ADMIN)
    await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)
    dispute = await open_dispute(db_session, parcel_id, "Customer refused", ADMIN)
    dispute_id = dispute.id

    with pytest.raises(IllegalTransitionError):
        await advance(db_session, parcel_id, S.PICKING_UP, ADMIN)

    await advance(db_session, parcel_id, S.RETURNED, ADMIN, note="Sent back to merchant")

    returned = await get_parcel(db_session, parcel_id)
    assert returned.status == S.RETURNED
    rider = await db_session.get(Rider, "RD1", populate_existing=True)
    assert rider.status == RiderStatus.AVAILABLE

    # The dispute stays open for the money side
    open_disputes, total = await list_disputes(db_session, status=DisputeStatus.OPEN)
    assert total == 1 and open_disputes[0].id == dispute_id

    await resolve_dispute(db_session, dispute_id, "Return fee waived", ADMIN)
    assert (await get_parcel(db_session, parcel_id)).status == S.RETURNED
    journey = await get_journey(db_session, parcel_id)
    assert [e.label for e in journey] == ["Requested", "Picking Up", "Disputed", "Returned"]
