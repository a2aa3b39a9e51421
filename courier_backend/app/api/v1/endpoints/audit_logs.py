"""
Audit Log API Endpoints (System Logs view).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.db.session import get_db
from courier_backend.app.schemas.audit import AuditLogResponse, AuditLogListResponse
from courier_backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    entity_id: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    outcome: Optional[str] = Query(None, description="success or failure"),
    actor: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """Most recent entries first."""
    logs, total = await get_audit_trail(
        db, entity_id=entity_id, entity_type=entity_type, action=action,
        outcome=outcome, actor=actor, limit=limit,
    )
    return AuditLogListResponse(logs=[AuditLogResponse.model_validate(l) for l in logs], total=total)
