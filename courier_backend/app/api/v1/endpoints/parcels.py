"""
Parcel API Endpoints.

Booking, tracking, status transitions and rider assignment.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.dependencies import get_current_actor, actor_name
from courier_backend.app.db.session import get_db
from courier_backend.app.models.parcel_enums import ParcelStatus
from courier_backend.app.schemas.parcel import (
    ParcelCreate, ParcelResponse, ParcelListResponse, ParcelEventResponse,
    ParcelDetailResponse, AdvanceRequest, AssignRiderRequest, NextHopResponse,
    BulkAdvanceRequest, BulkAssignRiderRequest
)
from courier_backend.app.services import parcels as parcel_service
from courier_backend.app.services import routing
from courier_backend.app.services.journey import get_journey

router = APIRouter(prefix="/parcels", tags=["Parcels"])


@router.post("", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Book a parcel.

    The merchant must be Verified. The fare is quoted once, with the pricing
    version active right now, and never changes afterwards.
    """
    parcel = await parcel_service.create_parcel(db, parcel_data, actor_name(actor))
    return ParcelResponse.model_validate(parcel)


@router.get("", response_model=ParcelListResponse)
async def list_parcels(
    parcel_status: Optional[ParcelStatus] = Query(None, alias="status"),
    merchant_id: Optional[str] = Query(None),
    hub_id: Optional[str] = Query(None, description="Current hub"),
    rider_id: Optional[str] = Query(None, description="Assigned rider"),
    search: Optional[str] = Query(None, description="Match on id, customer name or phone"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    parcels, total = await parcel_service.list_parcels(
        db, status=parcel_status, merchant_id=merchant_id, hub_id=hub_id, rider_id=rider_id,
        search=search, page=page, page_size=page_size,
    )
    return ParcelListResponse(
        parcels=[ParcelResponse.model_validate(p) for p in parcels],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/bulk-advance", response_model=list[ParcelEventResponse])
async def bulk_advance_parcels(
    request: BulkAdvanceRequest,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Dispatch or receive a batch of parcels.

    Either every parcel moves or none does.
    """
    events = await parcel_service.bulk_advance(
        db, request.parcel_ids, request.target_status, actor_name(actor),
        note=request.note, hub_id=request.hub_id,
    )
    return [ParcelEventResponse.model_validate(e) for e in events]


@router.post("/bulk-assign-rider", response_model=list[ParcelResponse])
async def bulk_assign_rider(
    request: BulkAssignRiderRequest,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    parcels = await routing.bulk_assign_rider(db, request.parcel_ids, request.rider_id, actor_name(actor))
    return [ParcelResponse.model_validate(p) for p in parcels]


@router.get("/{parcel_id}", response_model=ParcelDetailResponse)
async def get_parcel(parcel_id: str, db: AsyncSession = Depends(get_db)):
    parcel = await parcel_service.get_parcel(db, parcel_id)
    journey = await get_journey(db, parcel_id)
    return ParcelDetailResponse(
        parcel=ParcelResponse.model_validate(parcel),
        journey=[ParcelEventResponse.model_validate(e) for e in journey],
    )


@router.get("/{parcel_id}/journey", response_model=list[ParcelEventResponse])
async def get_parcel_journey(parcel_id: str, db: AsyncSession = Depends(get_db)):
    await parcel_service.get_parcel(db, parcel_id)
    return [ParcelEventResponse.model_validate(e) for e in await get_journey(db, parcel_id)]


@router.post("/{parcel_id}/advance", response_model=ParcelEventResponse)
async def advance_parcel(
    parcel_id: str,
    request: AdvanceRequest,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Move a parcel to its next status.

    Repeating a command for the status the parcel is already in returns the
    existing journey event instead of failing.
    """
    event = await parcel_service.advance(
        db, parcel_id, request.target_status, actor_name(actor),
        note=request.note, hub_id=request.hub_id, expected_version=request.expected_version,
    )
    return ParcelEventResponse.model_validate(event)


@router.post("/{parcel_id}/assign-rider", response_model=ParcelResponse)
async def assign_rider(
    parcel_id: str,
    request: AssignRiderRequest,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    parcel = await routing.assign_rider(
        db, parcel_id, request.rider_id, actor_name(actor), expected_version=request.expected_version
    )
    return ParcelResponse.model_validate(parcel)


@router.post("/{parcel_id}/unassign-rider", response_model=ParcelResponse)
async def unassign_rider(
    parcel_id: str,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    parcel = await routing.unassign_rider(db, parcel_id, actor_name(actor))
    return ParcelResponse.model_validate(parcel)


@router.get("/{parcel_id}/next-hop", response_model=NextHopResponse)
async def get_next_hop(parcel_id: str, db: AsyncSession = Depends(get_db)):
    parcel, hop = await parcel_service.next_hop(db, parcel_id)
    return NextHopResponse(
        parcel_id=parcel.id,
        current_hub_id=parcel.current_hub_id,
        next_hop_hub_id=hop,
        destination_hub_id=parcel.destination_hub_id,
    )
