"""
Rider Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.entity_enums import RiderStatus


class RiderUpsert(BaseModel):
    """Schema for creating or replacing a rider."""
    name: str = Field(..., min_length=1, max_length=200)
    hub_id: str = Field(..., min_length=1, max_length=20, description="Home hub")
    area: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    status: RiderStatus = RiderStatus.AVAILABLE


class RiderStatusUpdate(BaseModel):
    status: RiderStatus


class BulkRiderStatusUpdate(BaseModel):
    rider_ids: List[str] = Field(..., min_length=1)
    status: RiderStatus


class RiderResponse(BaseModel):
    """Schema for rider response."""
    id: str
    name: str
    hub_id: str
    area: Optional[str]
    phone: Optional[str]
    status: RiderStatus
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        frozen = True


class RiderListResponse(BaseModel):
    """Schema for paginated rider list."""
    riders: List[RiderResponse]
    total: int
    page: int
    page_size: int
