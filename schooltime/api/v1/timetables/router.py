from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.auth.dependencies import get_current_user
from schooltime.auth.rbac import check_permission
from schooltime.auth.schemas import CurrentUser
from schooltime.core.enums import TimetableStatus
from schooltime.core.exceptions import ServiceError
from schooltime.db.session import get_db

from .schemas import TimetableCreate, TimetableGrid, TimetableResponse, TimetableSummary, TimetableUpdate
from . import service

router = APIRouter(prefix="/api/v1/timetables", tags=["timetables"])


@router.get(
    "",
    response_model=List[TimetableResponse],
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def list_timetables(
    status_filter: Optional[TimetableStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.list_timetables(db, current_user.institution_id, status_filter=status_filter)


@router.get(
    "/summary",
    response_model=TimetableSummary,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_timetable_summary(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.get_timetable_summary(db, current_user.institution_id)


@router.post(
    "",
    response_model=TimetableResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("timetable", "create"))],
)
async def create_timetable(
    payload: TimetableCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.create_timetable(db, current_user.institution_id, payload, current_user)


@router.get(
    "/{timetable_id}",
    response_model=TimetableResponse,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_timetable(
    timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    obj = await service.get_timetable(db, current_user.institution_id, timetable_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
    return obj


@router.get(
    "/{timetable_id}/grid",
    response_model=TimetableGrid,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_timetable_grid(
    timetable_id: UUID,
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    grid = await service.get_timetable_grid(db, current_user.institution_id, timetable_id, class_id=class_id)
    if not grid:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
    return grid


@router.put(
    "/{timetable_id}",
    response_model=TimetableResponse,
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def update_timetable(
    timetable_id: UUID,
    payload: TimetableUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        obj = await service.update_timetable(db, current_user.institution_id, timetable_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
    return obj


@router.post(
    "/{timetable_id}/publish",
    response_model=TimetableResponse,
    dependencies=[Depends(check_permission("timetable", "publish"))],
)
async def publish_timetable(
    timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        obj = await service.publish_timetable(db, current_user.institution_id, timetable_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
    return obj


@router.post(
    "/{timetable_id}/archive",
    response_model=TimetableResponse,
    dependencies=[Depends(check_permission("timetable", "publish"))],
)
async def archive_timetable(
    timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        obj = await service.archive_timetable(db, current_user.institution_id, timetable_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
    return obj


@router.delete(
    "/{timetable_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("timetable", "delete"))],
)
async def delete_timetable(
    timetable_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        deleted = await service.delete_timetable(db, current_user.institution_id, timetable_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable not found")
