"""
Merchant database model.
"""

from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base
from courier_backend.app.models.entity_enums import MerchantStatus


class Merchant(Base):
    """
    Merchant model.

    Merchants start as PENDING and must be VERIFIED by an admin
    (individually or through bulk approval) before booking parcels.
    """
    __tablename__ = "merchants"

    id = Column(String(20), primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    shop_name = Column(String(200), nullable=False)
    phone = Column(String(30), nullable=True)

    status = Column(Enum(MerchantStatus), default=MerchantStatus.PENDING, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Merchant(id={self.id}, shop='{self.shop_name}', status='{self.status.value}')>"
