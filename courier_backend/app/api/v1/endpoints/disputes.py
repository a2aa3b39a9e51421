"""
Dispute API Endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.dependencies import get_current_actor, actor_name
from courier_backend.app.db.session import get_db
from courier_backend.app.models.parcel_enums import DisputeStatus
from courier_backend.app.schemas.dispute import (
    DisputeOpen, DisputeResolve, DisputeResponse, DisputeListResponse
)
from courier_backend.app.services import disputes as dispute_service

router = APIRouter(prefix="/disputes", tags=["Disputes"])


@router.post("", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
async def open_dispute(
    request: DisputeOpen,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Open a dispute; the parcel is parked in Disputed until it is resolved."""
    dispute = await dispute_service.open_dispute(db, request.parcel_id, request.issue, actor_name(actor))
    return DisputeResponse.model_validate(dispute)


@router.post("/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    dispute_id: str,
    request: DisputeResolve,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    dispute = await dispute_service.resolve_dispute(db, dispute_id, request.resolution, actor_name(actor))
    return DisputeResponse.model_validate(dispute)


@router.get("", response_model=DisputeListResponse)
async def list_disputes(
    dispute_status: Optional[DisputeStatus] = Query(None, alias="status"),
    parcel_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    disputes, total = await dispute_service.list_disputes(
        db, status=dispute_status, parcel_id=parcel_id, page=page, page_size=page_size
    )
    return DisputeListResponse(
        disputes=[DisputeResponse.model_validate(d) for d in disputes],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{dispute_id}", response_model=DisputeResponse)
async def get_dispute(dispute_id: str, db: AsyncSession = Depends(get_db)):
    return DisputeResponse.model_validate(await dispute_service.get_dispute(db, dispute_id))
