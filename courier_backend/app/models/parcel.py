"""
Parcel database model.

Parcels are booked by verified merchants and only mutated through the
parcel state machine and the assignment service.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base
from courier_backend.app.models.parcel_enums import ParcelStatus, ServiceType


class Parcel(Base):
    """
    Parcel model for the courier network.

    Hubs, riders and merchants are referenced by id, never embedded.
    fare/pricing_version are the snapshot taken at booking time.
    version is the optimistic-lock counter bumped on every write.
    """
    __tablename__ = "parcels"

    id = Column(String(32), primary_key=True, index=True)

    # Ownership
    merchant_id = Column(String(20), ForeignKey('merchants.id'), nullable=False, index=True)

    # Customer
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(30), nullable=False)

    # Route
    origin_hub_id = Column(String(20), ForeignKey('hubs.id'), nullable=False, index=True)
    destination_hub_id = Column(String(20), ForeignKey('hubs.id'), nullable=False, index=True)
    destination_area = Column(String(100), nullable=True)
    current_hub_id = Column(String(20), ForeignKey('hubs.id'), nullable=False, index=True)
    next_hop_hub_id = Column(String(20), ForeignKey('hubs.id'), nullable=True)

    # Physical / billing attributes
    weight_kg = Column(Float, nullable=False)
    distance_km = Column(Float, nullable=False)
    cod_amount = Column(Float, nullable=False, default=0.0)
    service_type = Column(Enum(ServiceType), nullable=False, default=ServiceType.REGULAR)
    fare = Column(Float, nullable=False)
    pricing_version = Column(Integer, ForeignKey('pricing_configs.id'), nullable=False)

    # Lifecycle
    status = Column(Enum(ParcelStatus), default=ParcelStatus.REQUESTED, nullable=False, index=True)
    resume_status = Column(Enum(ParcelStatus), nullable=True)
    assigned_rider_id = Column(String(20), ForeignKey('riders.id'), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Parcel(id={self.id}, merchant={self.merchant_id}, status='{self.status.value}', rider={self.assigned_rider_id})>"
