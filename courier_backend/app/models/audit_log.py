"""
Audit Log Database Model.

Append-only record of every mutating command, successful or not. This is
the read source for the dashboards' "System Logs" panel.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from courier_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    outcome is "success" or "failure"; failures carry the error code of the
    domain error that rejected the command. level mirrors the dashboard log
    levels (info / warn / error).
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # When
    timestamp = Column(DateTime(timezone=True), nullable=False)

    # Who performed the action
    actor = Column(String(100), nullable=True, index=True)

    # What action was performed, on which entity
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=True)

    # How it ended
    outcome = Column(String(20), nullable=False, index=True)
    error_code = Column(String(50), nullable=True)
    level = Column(String(10), nullable=False, default="info")

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    __table_args__ = (
        Index('ix_audit_logs_timestamp_entity', 'timestamp', 'entity_id'),
    )

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id}, outcome={self.outcome})>"
