"""
Hub Pydantic schemas.

Defines request and response models for hub management.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.entity_enums import HubType, HubStatus


class HubUpsert(BaseModel):
    """Schema for creating or replacing a hub."""
    name: str = Field(..., min_length=1, max_length=200, description="Hub name")
    hub_type: HubType = Field(..., description="district or area")
    parent_hub_id: Optional[str] = Field(None, max_length=20, description="Parent district hub (area hubs only)")
    location: Optional[str] = Field(None, max_length=200)
    district: Optional[str] = Field(None, max_length=100)
    capacity: int = Field(..., gt=0, description="Parcel capacity")
    coverage_areas: List[str] = Field(default_factory=list, description="Areas served by this hub")
    status: HubStatus = HubStatus.ACTIVE

    @field_validator("coverage_areas")
    @classmethod
    def dedupe_areas(cls, value: List[str]) -> List[str]:
        seen = {}
        for area in value:
            area = area.strip()
            if area:
                seen.setdefault(area.lower(), area)
        return list(seen.values())


class HubResponse(BaseModel):
    """Schema for hub response."""
    id: str
    name: str
    hub_type: HubType
    parent_hub_id: Optional[str]
    location: Optional[str]
    district: Optional[str]
    capacity: int
    coverage_areas: List[str]
    status: HubStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        frozen = True


class HubListResponse(BaseModel):
    """Schema for paginated hub list."""
    hubs: List[HubResponse]
    total: int
    page: int
    page_size: int
