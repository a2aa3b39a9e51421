"""
Pricing configuration database model.

Each row is one immutable version; exactly one version is active.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base


class PricingConfig(Base):
    """
    Pricing configuration version.

    Updating pricing inserts a new active row and deactivates the old one,
    so fare snapshots on existing parcels keep pointing at the version
    they were quoted with.
    """
    __tablename__ = "pricing_configs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    base_fare = Column(Float, nullable=False)
    per_kg = Column(Float, nullable=False)
    per_km = Column(Float, nullable=False)
    cod_pct = Column(Float, nullable=False)
    service_area_surcharge = Column(Float, nullable=False)
    express_multiplier = Column(Float, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Audit
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PricingConfig(version={self.id}, base_fare={self.base_fare}, active={self.is_active})>"
