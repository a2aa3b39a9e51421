"""
Parcel journey event model.

Append-only: rows are inserted by the state machine and never updated.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from courier_backend.app.db.session import Base


class ParcelEvent(Base):
    """
    One step of a parcel's journey.

    sequence is 1-based and gap-free per parcel; label is the status name
    the parcel entered with this event.
    """
    __tablename__ = "parcel_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    parcel_id = Column(String(32), ForeignKey('parcels.id'), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    timestamp = Column(DateTime(timezone=True), nullable=False)
    hub_id = Column(String(20), ForeignKey('hubs.id'), nullable=True)
    label = Column(String(50), nullable=False)
    note = Column(String(500), nullable=True)
    actor = Column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint('parcel_id', 'sequence', name='uq_parcel_events_sequence'),
    )

    def __repr__(self):
        return f"<ParcelEvent(parcel={self.parcel_id}, seq={self.sequence}, label='{self.label}')>"
