from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.auth.dependencies import get_current_user
from schooltime.auth.rbac import check_permission
from schooltime.auth.schemas import CurrentUser
from schooltime.db.session import get_db

from .schemas import AuditLogResponse
from . import service

router = APIRouter(prefix="/api/v1/audit-logs", tags=["audit"])


@router.get(
    "",
    response_model=List[AuditLogResponse],
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def list_audit_trail(
    entity_id: UUID = Query(..., description="Timetable, entry or time slot id"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    rows = await service.list_audit_trail(db, current_user.institution_id, entity_id)
    return [AuditLogResponse.model_validate(r) for r in rows]
