"""
Identifier generation for records the backend creates itself.

Hubs, riders and merchants keep the ids chosen by admins (H001, RD002, ...).
Parcels, disputes and transactions get prefixed random ids.
"""

import uuid


PARCEL_PREFIX = "PCL"
DISPUTE_PREFIX = "DSP"
TRANSACTION_PREFIX = "TX"


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
