"""
Dispute Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.parcel_enums import DisputeStatus, ParcelStatus


class DisputeOpen(BaseModel):
    parcel_id: str = Field(..., min_length=1, max_length=32)
    issue: str = Field(..., min_length=1, max_length=1000)


class DisputeResolve(BaseModel):
    resolution: str = Field(..., min_length=1, max_length=1000)


class DisputeResponse(BaseModel):
    """Schema for dispute response."""
    id: str
    parcel_id: str
    status: DisputeStatus
    issue: str
    resolution: Optional[str]
    prior_status: Optional[ParcelStatus]
    opened_by: Optional[str]
    opened_at: datetime
    resolved_by: Optional[str]
    resolved_at: Optional[datetime]

    class Config:
        from_attributes = True
        frozen = True


class DisputeListResponse(BaseModel):
    disputes: List[DisputeResponse]
    total: int
    page: int
    page_size: int
