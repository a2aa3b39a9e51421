"""
Audit log Pydantic schemas (System Logs view).
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List, Dict, Any


class AuditLogResponse(BaseModel):
    id: int
    timestamp: datetime
    actor: Optional[str]
    action: str
    entity_type: str
    entity_id: Optional[str]
    outcome: str
    error_code: Optional[str]
    level: str
    meta_data: Optional[Dict[str, Any]]

    class Config:
        from_attributes = True
        frozen = True


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
