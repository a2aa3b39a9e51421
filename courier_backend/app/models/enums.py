"""
Actor roles enumeration.

Defines the role types carried in the identity provider's tokens.
"""

import enum


class ActorRole(str, enum.Enum):
    """
    Actor role enumeration.

    Roles:
        ADMIN: Full access to every dashboard operation
        HUB_MANAGER: Operates one hub (scoped by the hub_id claim)
        MERCHANT: Books parcels for one merchant (scoped by merchant_id)
        RIDER: Moves parcels assigned to them (scoped by rider_id)
    """
    ADMIN = "ADMIN"
    HUB_MANAGER = "HUB_MANAGER"
    MERCHANT = "MERCHANT"
    RIDER = "RIDER"
