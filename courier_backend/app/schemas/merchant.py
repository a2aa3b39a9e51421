"""
Merchant Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.entity_enums import MerchantStatus


class MerchantUpsert(BaseModel):
    """Schema for creating or replacing a merchant."""
    name: str = Field(..., min_length=1, max_length=200)
    shop_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    status: MerchantStatus = MerchantStatus.PENDING


class MerchantStatusUpdate(BaseModel):
    status: MerchantStatus


class BulkMerchantStatusUpdate(BaseModel):
    """Bulk approve / suspend from the admin user-management table."""
    merchant_ids: List[str] = Field(..., min_length=1)
    status: MerchantStatus


class BulkStatusResult(BaseModel):
    updated_ids: List[str]
    status: str


class MerchantResponse(BaseModel):
    """Schema for merchant response."""
    id: str
    name: str
    shop_name: str
    phone: Optional[str]
    status: MerchantStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        frozen = True


class MerchantListResponse(BaseModel):
    """Schema for paginated merchant list."""
    merchants: List[MerchantResponse]
    total: int
    page: int
    page_size: int
