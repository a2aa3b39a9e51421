"""
Parcel State Machine.

Single source of truth for parcel status transitions. Everything here is
pure; the parcel service applies the result to the database.
"""

from typing import Optional, FrozenSet

from courier_backend.app.models.parcel_enums import ParcelStatus


HAPPY_PATH = (
    ParcelStatus.REQUESTED,
    ParcelStatus.PICKING_UP,
    ParcelStatus.PICKED_UP,
    ParcelStatus.AT_AREA_HUB,
    ParcelStatus.IN_TRANSIT,
    ParcelStatus.AT_DISTRICT_HUB,
    ParcelStatus.OUT_FOR_DELIVERY,
    ParcelStatus.DELIVERED,
)

TERMINAL_STATUSES: FrozenSet[ParcelStatus] = frozenset({
    ParcelStatus.DELIVERED,
    ParcelStatus.RETURNED,
})

# Reachable from any non-terminal status
BRANCH_STATUSES: FrozenSet[ParcelStatus] = frozenset({
    ParcelStatus.ON_HOLD,
    ParcelStatus.DISPUTED,
    ParcelStatus.RETURNED,
})

# Statuses whose exit target depends on where the parcel branched from
SUSPENDED_STATUSES: FrozenSet[ParcelStatus] = frozenset({
    ParcelStatus.ON_HOLD,
    ParcelStatus.DISPUTED,
})

# Forward moves into these need a rider on the parcel
RIDER_REQUIRED_STATUSES: FrozenSet[ParcelStatus] = frozenset({
    ParcelStatus.PICKING_UP,
    ParcelStatus.IN_TRANSIT,
    ParcelStatus.OUT_FOR_DELIVERY,
})

# While in these the parcel is physically with a rider
RIDER_BOUND_STATUSES: FrozenSet[ParcelStatus] = frozenset({
    ParcelStatus.PICKING_UP,
    ParcelStatus.PICKED_UP,
    ParcelStatus.IN_TRANSIT,
    ParcelStatus.OUT_FOR_DELIVERY,
})

# Arriving here hands the parcel over from the rider to the hub
HUB_STATUSES: FrozenSet[ParcelStatus] = frozenset({
    ParcelStatus.AT_AREA_HUB,
    ParcelStatus.AT_DISTRICT_HUB,
})

# Entered and resolved through the dispute service only; Returned is the one
# exit open to a regular advance
DISPUTE_CONTROLLED: FrozenSet[ParcelStatus] = frozenset({ParcelStatus.DISPUTED})


def is_terminal(status: ParcelStatus) -> bool:
    return status in TERMINAL_STATUSES


def happy_successor(status: ParcelStatus) -> Optional[ParcelStatus]:
    """Next status on the happy path, or None at the end / off the path."""
    if status not in HAPPY_PATH:
        return None
    index = HAPPY_PATH.index(status)
    if index + 1 < len(HAPPY_PATH):
        return HAPPY_PATH[index + 1]
    return None


def allowed_targets(status: ParcelStatus, resume_status: Optional[ParcelStatus] = None) -> FrozenSet[ParcelStatus]:
    """
    All direct successors of a status.

    Args:
        status: Current status
        resume_status: For On Hold / Disputed, the status branched from

    Returns:
        Set of statuses reachable in one step
    """
    if status in TERMINAL_STATUSES:
        return frozenset()

    if status in SUSPENDED_STATUSES:
        targets = {ParcelStatus.RETURNED}
        if resume_status is not None:
            targets.add(resume_status)
        return frozenset(targets)

    targets = set(BRANCH_STATUSES)
    successor = happy_successor(status)
    if successor is not None:
        targets.add(successor)
    return frozenset(targets)


def is_legal(status: ParcelStatus, target: ParcelStatus, resume_status: Optional[ParcelStatus] = None) -> bool:
    return target in allowed_targets(status, resume_status)


def is_forward_move(status: ParcelStatus, target: ParcelStatus) -> bool:
    """True when target is the happy-path successor of status."""
    return happy_successor(status) == target
