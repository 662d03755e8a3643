from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.core.exceptions import ServiceError
from schooltime.core.models import Room

from .schemas import RoomCreate, RoomResponse, RoomUpdate


def _to_response(r: Room) -> RoomResponse:
    return RoomResponse(
        id=r.id,
        institution_id=r.institution_id,
        name=r.name,
        building=r.building,
        room_type=r.room_type,
        capacity=r.capacity,
        is_active=r.is_active,
        created_at=r.created_at,
    )


async def _get_room(db: AsyncSession, institution_id: UUID, room_id: UUID) -> Optional[Room]:
    result = await db.execute(
        select(Room).where(
            Room.id == room_id,
            Room.institution_id == institution_id,
        )
    )
    return result.scalar_one_or_none()


async def list_rooms(
    db: AsyncSession,
    institution_id: UUID,
    search: Optional[str] = None,
    active_only: bool = False,
) -> List[RoomResponse]:
    stmt = select(Room).where(Room.institution_id == institution_id)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Room.name.ilike(pattern), Room.building.ilike(pattern)))
    if active_only:
        stmt = stmt.where(Room.is_active.is_(True))
    stmt = stmt.order_by(Room.name)
    result = await db.execute(stmt)
    return [_to_response(r) for r in result.scalars().all()]


async def get_room(
    db: AsyncSession,
    institution_id: UUID,
    room_id: UUID,
) -> Optional[RoomResponse]:
    obj = await _get_room(db, institution_id, room_id)
    return _to_response(obj) if obj else None


async def create_room(
    db: AsyncSession,
    institution_id: UUID,
    payload: RoomCreate,
) -> RoomResponse:
    try:
        obj = Room(
            institution_id=institution_id,
            name=payload.name.strip(),
            building=payload.building,
            room_type=payload.room_type,
            capacity=payload.capacity,
            is_active=payload.is_active,
        )
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
        return _to_response(obj)
    except IntegrityError:
        await db.rollback()
        raise ServiceError("A room with this name already exists", status.HTTP_409_CONFLICT)


async def update_room(
    db: AsyncSession,
    institution_id: UUID,
    room_id: UUID,
    payload: RoomUpdate,
) -> Optional[RoomResponse]:
    obj = await _get_room(db, institution_id, room_id)
    if not obj:
        return None
    data = payload.model_dump(exclude_unset=True)
    name = data.pop("name", None)
    if name:
        obj.name = name.strip()
    if data.get("is_active") is None:
        data.pop("is_active", None)
    for field, value in data.items():
        setattr(obj, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("A room with this name already exists", status.HTTP_409_CONFLICT)
    await db.refresh(obj)
    return _to_response(obj)


async def delete_room(
    db: AsyncSession,
    institution_id: UUID,
    room_id: UUID,
) -> bool:
    """Delete a room. Entries that used it keep their slot with no room assigned."""
    obj = await _get_room(db, institution_id, room_id)
    if not obj:
        return False
    await db.delete(obj)
    await db.commit()
    return True
