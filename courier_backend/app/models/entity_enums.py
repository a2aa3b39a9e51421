"""
Hub, Rider and Merchant enumerations.
"""

import enum


class HubType(str, enum.Enum):
    """Hub tier. Hubs form a two-level tree: district -> area."""
    DISTRICT = "district"
    AREA = "area"


class HubStatus(str, enum.Enum):
    """Hub status (Inactive is the soft-delete state)."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class RiderStatus(str, enum.Enum):
    """Rider availability."""
    AVAILABLE = "Available"
    ON_DELIVERY = "On Delivery"
    SUSPENDED = "Suspended"


class MerchantStatus(str, enum.Enum):
    """
    Merchant verification status.

    Only VERIFIED merchants may book parcels.
    """
    PENDING = "Pending"
    VERIFIED = "Verified"
    SUSPENDED = "Suspended"
