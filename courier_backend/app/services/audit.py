"""
Audit logging service for tracking every mutating command.

Provides centralized logging for the "System Logs" views. Successful
commands are audited inside their own transaction; rejected commands are
rolled back first and then audited with outcome=failure and the error kind.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from courier_backend.app.core.exceptions import AppException, ConflictError
from courier_backend.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    HUB_UPSERTED = "HUB_UPSERTED"
    HUB_DEACTIVATED = "HUB_DEACTIVATED"
    HUB_DELETED = "HUB_DELETED"

    RIDER_UPSERTED = "RIDER_UPSERTED"
    RIDER_STATUS_CHANGED = "RIDER_STATUS_CHANGED"
    RIDER_DELETED = "RIDER_DELETED"

    MERCHANT_UPSERTED = "MERCHANT_UPSERTED"
    MERCHANT_STATUS_CHANGED = "MERCHANT_STATUS_CHANGED"
    MERCHANT_DELETED = "MERCHANT_DELETED"

    PARCEL_CREATED = "PARCEL_CREATED"
    PARCEL_ADVANCED = "PARCEL_ADVANCED"
    RIDER_ASSIGNED = "RIDER_ASSIGNED"
    RIDER_UNASSIGNED = "RIDER_UNASSIGNED"

    DISPUTE_OPENED = "DISPUTE_OPENED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"

    PRICING_UPDATED = "PRICING_UPDATED"
    TRANSACTION_RECORDED = "TRANSACTION_RECORDED"


class AuditOutcome:
    SUCCESS = "success"
    FAILURE = "failure"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def log_event(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    actor: Optional[str] = None,
    outcome: str = AuditOutcome.SUCCESS,
    error_code: Optional[str] = None,
    level: str = "info",
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Stage an audit entry in the current transaction.

    The caller owns the commit, so the entry lands atomically with the
    change it describes.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        entity_type: hub / rider / merchant / parcel / dispute / ...
        entity_id: ID of the entity acted upon
        actor: Who issued the command
        outcome: AuditOutcome.SUCCESS or AuditOutcome.FAILURE
        error_code: Error code when the command was rejected
        level: info / warn / error
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        timestamp=utcnow(),
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        outcome=outcome,
        error_code=error_code,
        level=level,
        meta_data=metadata,
    )
    db.add(audit_log)
    return audit_log


@dataclass
class AuditScope:
    """Mutable context a command fills in while it runs."""
    action: str
    entity_type: str
    entity_id: Optional[str]
    actor: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)


@asynccontextmanager
async def audited(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    actor: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """
    Run one command as a single unit of work with auditing.

    On success the audit entry is added and everything commits together.
    On failure the work is rolled back, a failure entry is committed on its
    own, and the error propagates. Stale optimistic-lock writes surface as
    ConflictError.

    Usage:
        async with audited(db, AuditAction.PARCEL_ADVANCED, "parcel", parcel_id, actor) as scope:
            ...
            scope.metadata["from_status"] = old.value
    """
    scope = AuditScope(action, entity_type, entity_id, actor, dict(metadata or {}))
    try:
        yield scope
        log_event(
            db, scope.action, scope.entity_type, scope.entity_id, scope.actor,
            metadata=scope.metadata or None,
        )
        await db.commit()
    except StaleDataError as exc:
        conflict = ConflictError(
            f"{entity_type.capitalize()} {scope.entity_id} was modified concurrently, retry the command",
            details={"entity_type": entity_type, "entity_id": scope.entity_id}
        )
        await _record_failure(db, scope, conflict)
        raise conflict from exc
    except AppException as exc:
        await _record_failure(db, scope, exc)
        raise
    except Exception as exc:
        await _record_failure(db, scope, exc)
        raise


async def _record_failure(db: AsyncSession, scope: AuditScope, exc: Exception):
    await db.rollback()

    if isinstance(exc, AppException):
        error_code, level = exc.error_code, "warn"
        logger.info("%s on %s %s rejected: %s", scope.action, scope.entity_type, scope.entity_id, exc.message)
    else:
        error_code, level = type(exc).__name__, "error"
        logger.error("%s on %s %s failed: %s", scope.action, scope.entity_type, scope.entity_id, exc)

    log_event(
        db, scope.action, scope.entity_type, scope.entity_id, scope.actor,
        outcome=AuditOutcome.FAILURE,
        error_code=error_code,
        level=level,
        metadata={**scope.metadata, "error": str(exc)},
    )
    await db.commit()


async def get_audit_trail(
    db: AsyncSession,
    entity_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    outcome: Optional[str] = None,
    actor: Optional[str] = None,
    limit: int = 100
) -> tuple[list[AuditLog], int]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        (entries most recent first, total matching count)
    """
    filters = []
    if entity_id:
        filters.append(AuditLog.entity_id == entity_id)
    if entity_type:
        filters.append(AuditLog.entity_type == entity_type)
    if action:
        filters.append(AuditLog.action == action)
    if outcome:
        filters.append(AuditLog.outcome == outcome)
    if actor:
        filters.append(AuditLog.actor == actor)

    total = (await db.execute(select(func.count(AuditLog.id)).where(*filters))).scalar()

    query = select(AuditLog).where(*filters).order_by(
        desc(AuditLog.timestamp), desc(AuditLog.id)
    ).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all()), total
