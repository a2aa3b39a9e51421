"""
Rider API Endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.dependencies import get_current_actor, actor_name
from courier_backend.app.db.session import get_db
from courier_backend.app.models.entity_enums import RiderStatus
from courier_backend.app.schemas.merchant import BulkStatusResult
from courier_backend.app.schemas.rider import (
    RiderUpsert, RiderStatusUpdate, BulkRiderStatusUpdate, RiderResponse, RiderListResponse
)
from courier_backend.app.services import entities

router = APIRouter(prefix="/riders", tags=["Riders"])


@router.get("", response_model=RiderListResponse)
async def list_riders(
    hub_id: Optional[str] = Query(None),
    rider_status: Optional[RiderStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Match on id or name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    riders, total = await entities.list_riders(
        db, hub_id=hub_id, status=rider_status, search=search, page=page, page_size=page_size
    )
    return RiderListResponse(
        riders=[RiderResponse.model_validate(r) for r in riders],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{rider_id}", response_model=RiderResponse)
async def get_rider(rider_id: str, db: AsyncSession = Depends(get_db)):
    return RiderResponse.model_validate(await entities.get_rider(db, rider_id))


@router.put("/{rider_id}", response_model=RiderResponse)
async def upsert_rider(
    rider_id: str,
    rider_data: RiderUpsert,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    rider = await entities.upsert_rider(db, rider_id, rider_data, actor_name(actor))
    return RiderResponse.model_validate(rider)


@router.post("/bulk-status", response_model=BulkStatusResult)
async def bulk_set_rider_status(
    request: BulkRiderStatusUpdate,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    ids = await entities.bulk_set_rider_status(db, request.rider_ids, request.status, actor_name(actor))
    return BulkStatusResult(updated_ids=ids, status=request.status.value)


@router.post("/{rider_id}/status", response_model=RiderResponse)
async def set_rider_status(
    rider_id: str,
    request: RiderStatusUpdate,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Suspend, reinstate or manually flip a rider's availability."""
    rider = await entities.set_rider_status(db, rider_id, request.status, actor_name(actor))
    return RiderResponse.model_validate(rider)


@router.delete("/{rider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rider(
    rider_id: str,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    await entities.delete_rider(db, rider_id, actor_name(actor))
