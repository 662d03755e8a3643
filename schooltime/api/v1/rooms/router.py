from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.auth.dependencies import get_current_user
from schooltime.auth.rbac import check_permission
from schooltime.auth.schemas import CurrentUser
from schooltime.core.exceptions import ServiceError
from schooltime.db.session import get_db

from .schemas import RoomCreate, RoomResponse, RoomUpdate
from . import service

router = APIRouter(prefix="/api/v1/rooms", tags=["rooms"])


@router.get(
    "",
    response_model=List[RoomResponse],
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def list_rooms(
    search: Optional[str] = Query(None, description="Matches room name or building"),
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.list_rooms(db, current_user.institution_id, search=search, active_only=active_only)


@router.post(
    "",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("timetable", "create"))],
)
async def create_room(
    payload: RoomCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.create_room(db, current_user.institution_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get(
    "/{room_id}",
    response_model=RoomResponse,
    dependencies=[Depends(check_permission("timetable", "read"))],
)
async def get_room(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    obj = await service.get_room(db, current_user.institution_id, room_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return obj


@router.put(
    "/{room_id}",
    response_model=RoomResponse,
    dependencies=[Depends(check_permission("timetable", "update"))],
)
async def update_room(
    room_id: UUID,
    payload: RoomUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        obj = await service.update_room(db, current_user.institution_id, room_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return obj


@router.delete(
    "/{room_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("timetable", "delete"))],
)
async def delete_room(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    deleted = await service.delete_room(db, current_user.institution_id, room_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
