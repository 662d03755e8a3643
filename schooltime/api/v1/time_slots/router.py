from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.auth.dependencies import get_current_user
from schooltime.auth.rbac import check_permission
from schooltime.auth.schemas import CurrentUser
from schooltime.core.enums import SlotType
from schooltime.core.exceptions import ServiceError
from schooltime.db.session import get_db

from .schemas import TimeSlotCreate, TimeSlotMove, TimeSlotResponse, TimeSlotUpdate, TimeSlotUsage
from . import service

router = APIRouter(prefix="/api/v1/time-slots", tags=["time-slots"])


@router.get(
    "",
    response_model=List[TimeSlotResponse],
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def list_time_slots(
    active_only: bool = Query(False),
    slot_type: Optional[SlotType] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.list_time_slots(db, current_user.institution_id, active_only=active_only, slot_type=slot_type)


@router.post(
    "",
    response_model=TimeSlotResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("timetable", "create"))],
)
async def create_time_slot(
    payload: TimeSlotCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.create_time_slot(db, current_user.institution_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_time_slot(
    slot_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    obj = await service.get_time_slot(db, current_user.institution_id, slot_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time slot not found")
    return obj


@router.put(
    "/{slot_id}",
    response_model=TimeSlotResponse,
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def update_time_slot(
    slot_id: UUID,
    payload: TimeSlotUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        obj = await service.update_time_slot(db, current_user.institution_id, slot_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time slot not found")
    return obj


@router.post(
    "/{slot_id}/move",
    response_model=List[TimeSlotResponse],
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def move_time_slot(
    slot_id: UUID,
    payload: TimeSlotMove,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        slots = await service.move_time_slot(db, current_user.institution_id, slot_id, payload.direction)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if slots is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time slot not found")
    return slots


@router.get(
    "/{slot_id}/usage",
    response_model=TimeSlotUsage,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_time_slot_usage(
    slot_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.get_time_slot_usage(db, current_user.institution_id, slot_id)


@router.delete(
    "/{slot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("timetable", "delete"))],
)
async def delete_time_slot(
    slot_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        deleted = await service.delete_time_slot(db, current_user.institution_id, slot_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time slot not found")
