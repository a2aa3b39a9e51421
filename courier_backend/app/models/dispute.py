"""
Dispute database model.

At most one OPEN dispute per parcel, enforced through a partial unique index.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Index, text
from courier_backend.app.db.session import Base
from courier_backend.app.models.parcel_enums import DisputeStatus, ParcelStatus


class Dispute(Base):
    """
    Dispute model.

    prior_status remembers where the parcel was when the dispute opened so
    resolution can put it back. It stays NULL for disputes raised against
    parcels that were already terminal.
    """
    __tablename__ = "disputes"

    id = Column(String(32), primary_key=True, index=True)
    parcel_id = Column(String(32), ForeignKey('parcels.id'), nullable=False, index=True)

    status = Column(Enum(DisputeStatus), default=DisputeStatus.OPEN, nullable=False, index=True)
    issue = Column(String(1000), nullable=False)
    resolution = Column(String(1000), nullable=True)
    prior_status = Column(Enum(ParcelStatus), nullable=True)

    opened_by = Column(String(100), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=False)
    resolved_by = Column(String(100), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            'ix_disputes_one_open_per_parcel', 'parcel_id', unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'"),
        ),
    )

    def __repr__(self):
        return f"<Dispute(id={self.id}, parcel={self.parcel_id}, status='{self.status.value}')>"
