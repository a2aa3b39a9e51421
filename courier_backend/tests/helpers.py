"""
Shared test data builders.
"""

from courier_backend.app.core.jwt import create_access_token
from courier_backend.app.models.parcel_enums import ParcelStatus, ServiceType
from courier_backend.app.schemas.parcel import ParcelCreate
from courier_backend.app.services.parcels import advance
from courier_backend.app.services.routing import assign_rider

ADMIN = "admin@courier"


def make_token(sub: str = ADMIN, role: str = "ADMIN") -> str:
    return create_access_token({"sub": sub, "role": role})


def parcel_data(**overrides) -> ParcelCreate:
    """The booking used throughout: 1.2 kg, 260 km, 850 COD, HA1 to Agrabad."""
    values = dict(
        merchant_id="M1",
        customer_name="Nusrat Jahan",
        customer_phone="01711000000",
        origin_hub_id="HA1",
        destination_area="Agrabad",
        weight_kg=1.2,
        distance_km=260,
        cod_amount=850,
        service_type=ServiceType.REGULAR,
    )
    values.update(overrides)
    return ParcelCreate(**values)


async def bring_to_area_hub(db, parcel_id: str, rider_id: str = "RD1"):
    """Pick a parcel up and drop it at its origin area hub."""
    await assign_rider(db, parcel_id, rider_id, ADMIN)
    for status in (ParcelStatus.PICKING_UP, ParcelStatus.PICKED_UP, ParcelStatus.AT_AREA_HUB):
        await advance(db, parcel_id, status, ADMIN)
