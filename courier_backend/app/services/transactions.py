"""
Transaction service.

Append-only money ledger: wallet top-ups, COD settlements, rider payouts
and commissions. Rows are never updated or deleted.
"""

import logging
from typing import Optional, List, Tuple, Dict

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.ids import new_id, TRANSACTION_PREFIX
from courier_backend.app.models.billing_enums import TransactionType, TransactionDirection
from courier_backend.app.models.transaction import Transaction
from courier_backend.app.schemas.transaction import TransactionCreate
from courier_backend.app.services.audit import audited, AuditAction, utcnow
from courier_backend.app.services.entities import get_merchant, get_rider, paginate
from courier_backend.app.services.journey import load_parcel

logger = logging.getLogger(__name__)


async def _check_reference(db: AsyncSession, transaction_type: TransactionType, ref_id: str):
    """The referenced account must exist; which table depends on the type."""
    if transaction_type == TransactionType.MERCHANT_WALLET:
        await get_merchant(db, ref_id)
    elif transaction_type == TransactionType.RIDER_PAYMENT:
        await get_rider(db, ref_id)
    else:
        await load_parcel(db, ref_id)


async def record_transaction(db: AsyncSession, data: TransactionCreate, actor: Optional[str] = None) -> Transaction:
    transaction_id = new_id(TRANSACTION_PREFIX)

    async with audited(
        db, AuditAction.TRANSACTION_RECORDED, "transaction", transaction_id, actor,
        metadata={
            "transaction_type": data.transaction_type.value,
            "ref_id": data.ref_id,
            "amount": data.amount,
            "direction": data.direction.value,
        },
    ):
        await _check_reference(db, data.transaction_type, data.ref_id)

        transaction = Transaction(
            id=transaction_id,
            transaction_type=data.transaction_type,
            ref_id=data.ref_id,
            amount=data.amount,
            direction=data.direction,
            note=data.note,
            recorded_by=actor,
            timestamp=utcnow(),
        )
        db.add(transaction)
        await db.flush()

    logger.info("Transaction %s recorded: %s %.2f %s", transaction_id,
                data.transaction_type.value, data.amount, data.direction.value)
    return transaction


async def list_transactions(
    db: AsyncSession,
    transaction_type: Optional[TransactionType] = None,
    ref_id: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Transaction], int]:
    query = select(Transaction)
    if transaction_type:
        query = query.where(Transaction.transaction_type == transaction_type)
    if ref_id:
        query = query.where(Transaction.ref_id == ref_id)
    return await paginate(db, query.order_by(Transaction.timestamp.desc(), Transaction.id), page, page_size)


async def get_balance(db: AsyncSession, ref_id: str) -> Dict[str, float]:
    """Credits, debits and net balance for one account."""
    result = await db.execute(
        select(Transaction.direction, func.coalesce(func.sum(Transaction.amount), 0.0))
        .where(Transaction.ref_id == ref_id)
        .group_by(Transaction.direction)
    )
    totals = {direction: float(total) for direction, total in result.all()}
    credits = totals.get(TransactionDirection.CREDIT, 0.0)
    debits = totals.get(TransactionDirection.DEBIT, 0.0)
    return {
        "ref_id": ref_id,
        "credits": round(credits, 2),
        "debits": round(debits, 2),
        "balance": round(credits - debits, 2),
    }
