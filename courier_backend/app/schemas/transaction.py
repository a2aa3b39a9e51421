"""
Transaction Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.billing_enums import TransactionType, TransactionDirection


class TransactionCreate(BaseModel):
    transaction_type: TransactionType
    ref_id: str = Field(..., min_length=1, max_length=32)
    amount: float = Field(..., gt=0)
    direction: TransactionDirection
    note: Optional[str] = Field(None, max_length=255)


class TransactionResponse(BaseModel):
    id: str
    transaction_type: TransactionType
    ref_id: str
    amount: float
    direction: TransactionDirection
    note: Optional[str]
    recorded_by: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True
        frozen = True


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    total: int
    page: int
    page_size: int


class BalanceResponse(BaseModel):
    """Net balance of one account (credits minus debits)."""
    ref_id: str
    credits: float
    debits: float
    balance: float
