"""
Merchant API Endpoints.

Includes the bulk approve / suspend action of the merchant list view.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.dependencies import get_current_actor, actor_name
from courier_backend.app.db.session import get_db
from courier_backend.app.models.entity_enums import MerchantStatus
from courier_backend.app.schemas.merchant import (
    MerchantUpsert, MerchantStatusUpdate, BulkMerchantStatusUpdate, BulkStatusResult,
    MerchantResponse, MerchantListResponse
)
from courier_backend.app.services import entities

router = APIRouter(prefix="/merchants", tags=["Merchants"])


@router.get("", response_model=MerchantListResponse)
async def list_merchants(
    merchant_status: Optional[MerchantStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Match on id, name or shop"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    merchants, total = await entities.list_merchants(
        db, status=merchant_status, search=search, page=page, page_size=page_size
    )
    return MerchantListResponse(
        merchants=[MerchantResponse.model_validate(m) for m in merchants],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{merchant_id}", response_model=MerchantResponse)
async def get_merchant(merchant_id: str, db: AsyncSession = Depends(get_db)):
    return MerchantResponse.model_validate(await entities.get_merchant(db, merchant_id))


@router.put("/{merchant_id}", response_model=MerchantResponse)
async def upsert_merchant(
    merchant_id: str,
    merchant_data: MerchantUpsert,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    merchant = await entities.upsert_merchant(db, merchant_id, merchant_data, actor_name(actor))
    return MerchantResponse.model_validate(merchant)


@router.post("/bulk-status", response_model=BulkStatusResult)
async def bulk_set_merchant_status(
    request: BulkMerchantStatusUpdate,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Approve or suspend several merchants at once; all or nothing."""
    ids = await entities.bulk_set_merchant_status(db, request.merchant_ids, request.status, actor_name(actor))
    return BulkStatusResult(updated_ids=ids, status=request.status.value)


@router.post("/{merchant_id}/status", response_model=MerchantResponse)
async def set_merchant_status(
    merchant_id: str,
    request: MerchantStatusUpdate,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    merchant = await entities.set_merchant_status(db, merchant_id, request.status, actor_name(actor))
    return MerchantResponse.model_validate(merchant)


@router.delete("/{merchant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_merchant(
    merchant_id: str,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    await entities.delete_merchant(db, merchant_id, actor_name(actor))
