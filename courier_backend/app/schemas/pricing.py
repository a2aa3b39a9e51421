"""
Pricing Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.parcel_enums import ServiceType


class PricingConfigUpdate(BaseModel):
    """Schema for publishing a new pricing version."""
    base_fare: float = Field(..., ge=0)
    per_kg: float = Field(..., ge=0)
    per_km: float = Field(..., ge=0)
    cod_pct: float = Field(..., ge=0, description="Percent of COD amount")
    service_area_surcharge: float = Field(..., ge=0)
    express_multiplier: float = Field(..., ge=1)


class PricingConfigResponse(BaseModel):
    """Schema for a pricing version."""
    id: int
    base_fare: float
    per_kg: float
    per_km: float
    cod_pct: float
    service_area_surcharge: float
    express_multiplier: float
    is_active: bool
    created_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
        frozen = True


class PricingHistoryResponse(BaseModel):
    versions: List[PricingConfigResponse]


class FareQuoteRequest(BaseModel):
    """Parcel attributes that drive the fare."""
    weight_kg: float = Field(..., gt=0)
    distance_km: float = Field(..., ge=0)
    cod_amount: float = Field(default=0.0, ge=0)
    service_type: ServiceType = ServiceType.REGULAR


class FareQuoteResponse(BaseModel):
    fare: float
    display_fare: int
    pricing_version: int
