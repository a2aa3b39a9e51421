"""
Parcel and Dispute enumerations.
"""

import enum


class ParcelStatus(str, enum.Enum):
    """
    Parcel status enumeration.

    Happy path:
        Requested -> Picking Up -> Picked Up -> At Area Hub -> In Transit
        -> At District Hub -> Out for Delivery -> Delivered
    Any non-terminal status can branch to On Hold, Disputed or Returned.
    """
    REQUESTED = "Requested"
    PICKING_UP = "Picking Up"
    PICKED_UP = "Picked Up"
    AT_AREA_HUB = "At Area Hub"
    IN_TRANSIT = "In Transit"
    AT_DISTRICT_HUB = "At District Hub"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    ON_HOLD = "On Hold"
    DISPUTED = "Disputed"
    RETURNED = "Returned"


class ServiceType(str, enum.Enum):
    """Delivery service level."""
    REGULAR = "Regular"
    EXPRESS = "Express"


class DisputeStatus(str, enum.Enum):
    """Dispute status enumeration."""
    OPEN = "Open"
    RESOLVED = "Resolved"
