"""
Parcel Pydantic schemas.

Defines request and response models for booking, tracking and moving
parcels through the state machine.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.parcel_enums import ParcelStatus, ServiceType


class ParcelCreate(BaseModel):
    """
    Schema for booking a new parcel.

    Either destination_hub_id or destination_area must be given; an area
    alone is resolved to a hub through coverage lookup.
    """
    merchant_id: str = Field(..., min_length=1, max_length=20)
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=1, max_length=30)
    origin_hub_id: str = Field(..., min_length=1, max_length=20)
    destination_hub_id: Optional[str] = Field(None, max_length=20)
    destination_area: Optional[str] = Field(None, max_length=100)
    weight_kg: float = Field(..., gt=0, description="Weight in kilograms")
    distance_km: float = Field(..., ge=0, description="Billable distance in kilometers")
    cod_amount: float = Field(default=0.0, ge=0, description="Cash to collect on delivery")
    service_type: ServiceType = ServiceType.REGULAR

    @model_validator(mode="after")
    def require_destination(self):
        if not self.destination_hub_id and not self.destination_area:
            raise ValueError("destination_hub_id or destination_area is required")
        return self


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: str
    merchant_id: str
    customer_name: str
    customer_phone: str
    origin_hub_id: str
    destination_hub_id: str
    destination_area: Optional[str]
    current_hub_id: str
    next_hop_hub_id: Optional[str]
    weight_kg: float
    distance_km: float
    cod_amount: float
    service_type: ServiceType
    fare: float
    pricing_version: int
    status: ParcelStatus
    resume_status: Optional[ParcelStatus]
    assigned_rider_id: Optional[str]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        frozen = True


class ParcelListResponse(BaseModel):
    """Schema for paginated parcel list."""
    parcels: List[ParcelResponse]
    total: int
    page: int
    page_size: int


class ParcelEventResponse(BaseModel):
    """One journey step."""
    sequence: int
    timestamp: datetime
    hub_id: Optional[str]
    label: str
    note: Optional[str]
    actor: Optional[str]

    class Config:
        from_attributes = True
        frozen = True


class ParcelDetailResponse(BaseModel):
    """Parcel together with its full journey."""
    parcel: ParcelResponse
    journey: List[ParcelEventResponse]


class AdvanceRequest(BaseModel):
    """Schema for a status transition command."""
    target_status: ParcelStatus
    note: Optional[str] = Field(None, max_length=500)
    hub_id: Optional[str] = Field(None, max_length=20, description="Hub for hub-arrival statuses")
    expected_version: Optional[int] = Field(None, ge=1, description="Optimistic-lock check")


class AssignRiderRequest(BaseModel):
    rider_id: str = Field(..., min_length=1, max_length=20)
    expected_version: Optional[int] = Field(None, ge=1)


class BulkAdvanceRequest(BaseModel):
    """Dispatch or receive a batch of parcels from the hub-manager tables."""
    parcel_ids: List[str] = Field(..., min_length=1)
    target_status: ParcelStatus
    note: Optional[str] = Field(None, max_length=500)
    hub_id: Optional[str] = Field(None, max_length=20)


class BulkAssignRiderRequest(BaseModel):
    parcel_ids: List[str] = Field(..., min_length=1)
    rider_id: str = Field(..., min_length=1, max_length=20)


class NextHopResponse(BaseModel):
    parcel_id: str
    current_hub_id: str
    next_hop_hub_id: str
    destination_hub_id: str


class HubQueuesResponse(BaseModel):
    """
    Hub-manager view of one hub.

    incoming: on the way to this hub (pickups heading in, line-haul whose
    next hop is this hub); inventory: sitting at this hub; outgoing: left
    this hub and not yet arrived anywhere else.
    """
    hub_id: str
    incoming: List[ParcelResponse]
    inventory: List[ParcelResponse]
    outgoing: List[ParcelResponse]
