"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from courier_backend.app.api.v1.endpoints import (
    hubs, riders, merchants, parcels, pricing,
    disputes, transactions, audit_logs, overview
)

router = APIRouter()

# Entity store
router.include_router(hubs.router)
router.include_router(riders.router)
router.include_router(merchants.router)

# Parcel lifecycle
router.include_router(parcels.router)
router.include_router(disputes.router)

# Money
router.include_router(pricing.router)
router.include_router(transactions.router)

# Dashboards
router.include_router(audit_logs.router)
router.include_router(overview.router)
