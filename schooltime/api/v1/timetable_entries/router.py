from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.auth.dependencies import get_current_user
from schooltime.auth.rbac import check_permission
from schooltime.auth.schemas import CurrentUser
from schooltime.core.exceptions import ServiceError
from schooltime.db.session import get_db

from .schemas import (
    ClashCheckRequest,
    ClashResult,
    TimetableEntryCreate,
    TimetableEntryResponse,
    TimetableEntryUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/timetable-entries", tags=["timetable-entries"])


@router.get(
    "",
    response_model=List[TimetableEntryResponse],
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def list_entries(
    timetable_id: UUID,
    class_id: Optional[UUID] = Query(None),
    subject_id: Optional[UUID] = Query(None),
    teacher_id: Optional[UUID] = Query(None),
    room_id: Optional[UUID] = Query(None),
    day_of_week: Optional[int] = Query(None, ge=1, le=7),
    term: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.list_entries(
        db,
        current_user.institution_id,
        timetable_id,
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        room_id=room_id,
        day_of_week=day_of_week,
        term=term,
    )


@router.post(
    "/check-clash",
    response_model=ClashResult,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def check_clash(
    payload: ClashCheckRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Advisory double-booking check for a prospective placement."""
    return await service.check_entry_clash(db, current_user.institution_id, payload)


@router.post(
    "",
    response_model=TimetableEntryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("timetable", "create"))],
)
async def create_entry(
    payload: TimetableEntryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.create_entry(db, current_user.institution_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{entry_id}",
    response_model=TimetableEntryResponse,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    obj = await service.get_entry(db, current_user.institution_id, entry_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable entry not found")
    return obj


@router.put(
    "/{entry_id}",
    response_model=TimetableEntryResponse,
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def update_entry(
    entry_id: UUID,
    payload: TimetableEntryUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        obj = await service.update_entry(db, current_user.institution_id, entry_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable entry not found")
    return obj


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("timetable", "delete"))],
)
async def delete_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        deleted = await service.delete_entry(db, current_user.institution_id, entry_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable entry not found")
