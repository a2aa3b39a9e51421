"""
Fare Engine.

Pure fare computation over a pricing configuration. No I/O, no rounding:
full float precision is kept internally and only present_fare rounds.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from courier_backend.app.models.parcel_enums import ServiceType


@dataclass(frozen=True)
class FareAttributes:
    """The parcel attributes that drive the fare."""
    weight_kg: float
    distance_km: float
    cod_amount: float = 0.0
    service_type: ServiceType = ServiceType.REGULAR


def quote(attrs: FareAttributes, config) -> float:
    """
    Compute the fare for a parcel.

    subtotal = base + weight*perKg + distance*perKm + cod*codPct/100 + surcharge
    Express fares are subtotal * express_multiplier.

    Args:
        attrs: Parcel attributes
        config: Any object exposing the PricingConfig rate fields

    Returns:
        Fare in full precision
    """
    cod_charge = 0.0
    if attrs.cod_amount > 0:
        cod_charge = attrs.cod_amount * config.cod_pct / 100

    subtotal = (
        config.base_fare
        + attrs.weight_kg * config.per_kg
        + attrs.distance_km * config.per_km
        + cod_charge
        + config.service_area_surcharge
    )

    if ServiceType(attrs.service_type) == ServiceType.EXPRESS:
        return subtotal * config.express_multiplier
    return subtotal


def present_fare(fare: float) -> int:
    """Round to the nearest whole currency unit (half up) for display."""
    return int(Decimal(str(fare)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
