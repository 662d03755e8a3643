from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.auth.dependencies import get_current_user
from schooltime.auth.rbac import check_permission
from schooltime.auth.schemas import CurrentUser
from schooltime.core.exceptions import ServiceError
from schooltime.db.session import get_db

from .schemas import RoomSchedule, TeacherSchedule
from . import service

router = APIRouter(prefix="/api/v1/schedules", tags=["schedules"])


@router.get(
    "/teachers/{teacher_id}",
    response_model=TeacherSchedule,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_teacher_schedule(
    teacher_id: UUID,
    timetable_id: Optional[UUID] = Query(None, description="Defaults to the published timetable"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.get_teacher_schedule(db, current_user.institution_id, teacher_id, timetable_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/rooms/{room_id}",
    response_model=RoomSchedule,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_room_schedule(
    room_id: UUID,
    timetable_id: Optional[UUID] = Query(None, description="Defaults to the published timetable"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.get_room_schedule(db, current_user.institution_id, room_id, timetable_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
