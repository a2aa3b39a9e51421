"""
Transaction database model.

Immutable money movements (wallet top-ups, COD settlements, rider payouts,
commissions).
"""

from sqlalchemy import Column, String, Float, DateTime, Enum
from courier_backend.app.db.session import Base
from courier_backend.app.models.billing_enums import TransactionType, TransactionDirection


class Transaction(Base):
    """
    Transaction model.

    NO updates or deletions allowed.
    ref_id is not a foreign key because its target table depends on type;
    the transaction service checks it on write.
    """
    __tablename__ = "transactions"

    id = Column(String(32), primary_key=True, index=True)
    transaction_type = Column(Enum(TransactionType), nullable=False, index=True)
    ref_id = Column(String(32), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    direction = Column(Enum(TransactionDirection), nullable=False)
    note = Column(String(255), nullable=True)
    recorded_by = Column(String(100), nullable=True)

    # Immutable - no updated_at
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<Transaction(id={self.id}, type='{self.transaction_type.value}', amount={self.amount})>"
