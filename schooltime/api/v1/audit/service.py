"""
Audit logging for timetabling changes. Call on every status change and entry edit.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.auth.schemas import CurrentUser
from schooltime.core.models import AuditLog


async def log_audit(
    db: AsyncSession,
    institution_id: UUID,
    entity_type: str,
    entity_id: UUID,
    action: str,
    *,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    performed_by: Optional[CurrentUser] = None,
    remarks: Optional[str] = None,
) -> None:
    """Append one audit log entry. Caller must commit."""
    entry = AuditLog(
        institution_id=institution_id,
        entity_type=entity_type,
        entity_id=entity_id,
        from_status=from_status,
        to_status=to_status,
        action=action,
        performed_by=performed_by.id if performed_by else None,
        performed_by_role=performed_by.role if performed_by else None,
        remarks=remarks,
        timestamp=datetime.utcnow(),
    )
    db.add(entry)


async def list_audit_trail(
    db: AsyncSession,
    institution_id: UUID,
    entity_id: UUID,
) -> List[AuditLog]:
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.institution_id == institution_id, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.timestamp)
    )
    return list(result.scalars().all())
