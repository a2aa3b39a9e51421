"""
Hub database model.

Hubs form a two-level tree: district hubs at the root, area hubs below them.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base
from courier_backend.app.models.entity_enums import HubType, HubStatus


class Hub(Base):
    """
    Hub model for the courier network.

    An area hub must point at a district hub through parent_hub_id.
    A district hub has no parent. Hubs are soft-deactivated, and a hard
    delete is refused while a non-terminal parcel references the hub.
    """
    __tablename__ = "hubs"

    id = Column(String(20), primary_key=True, index=True)

    # Hub details
    name = Column(String(200), nullable=False)
    hub_type = Column(Enum(HubType), nullable=False, index=True)
    parent_hub_id = Column(String(20), ForeignKey('hubs.id'), nullable=True, index=True)
    location = Column(String(200), nullable=True)
    district = Column(String(100), nullable=True)

    # Operations
    capacity = Column(Integer, nullable=False)
    coverage_areas = Column(JSON, nullable=False, default=list)

    # Status (soft delete)
    status = Column(Enum(HubStatus), default=HubStatus.ACTIVE, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def covers(self, area: str) -> bool:
        """Case-insensitive coverage check."""
        wanted = area.strip().lower()
        return any(a.strip().lower() == wanted for a in (self.coverage_areas or []))

    def __repr__(self):
        return f"<Hub(id={self.id}, name='{self.name}', type='{self.hub_type.value}', parent={self.parent_hub_id})>"
