"""
Rider database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base
from courier_backend.app.models.entity_enums import RiderStatus


class Rider(Base):
    """
    Rider model.

    A rider works out of one home hub and can only be assigned parcels
    that are currently at that hub. The version column guards the
    availability status against concurrent writers.
    """
    __tablename__ = "riders"

    id = Column(String(20), primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    hub_id = Column(String(20), ForeignKey('hubs.id'), nullable=False, index=True)
    area = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)

    status = Column(Enum(RiderStatus), default=RiderStatus.AVAILABLE, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Rider(id={self.id}, name='{self.name}', hub_id={self.hub_id}, status='{self.status.value}')>"
