"""
Transaction API Endpoints.

Append-only ledger; there is no update or delete route on purpose.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.dependencies import get_current_actor, actor_name
from courier_backend.app.db.session import get_db
from courier_backend.app.models.billing_enums import TransactionType
from courier_backend.app.schemas.transaction import (
    TransactionCreate, TransactionResponse, TransactionListResponse, BalanceResponse
)
from courier_backend.app.services import transactions as transaction_service

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def record_transaction(
    request: TransactionCreate,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    transaction = await transaction_service.record_transaction(db, request, actor_name(actor))
    return TransactionResponse.model_validate(transaction)


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    transaction_type: Optional[TransactionType] = Query(None),
    ref_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    transactions, total = await transaction_service.list_transactions(
        db, transaction_type=transaction_type, ref_id=ref_id, page=page, page_size=page_size
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/balance/{ref_id}", response_model=BalanceResponse)
async def get_balance(ref_id: str, db: AsyncSession = Depends(get_db)):
    return BalanceResponse(**await transaction_service.get_balance(db, ref_id))
