"""
Overview Schemas.
"""

from pydantic import BaseModel
from typing import Dict


class OverviewStats(BaseModel):
    """Admin dashboard headline numbers."""
    parcels_by_status: Dict[str, int]
    total_parcels: int
    open_disputes: int
    available_riders: int
    active_hubs: int
    delivered_revenue: float
