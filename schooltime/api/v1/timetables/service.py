"""Timetable lifecycle (draft -> published -> archived), master grid and dashboard counts."""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.api.v1.audit.service import log_audit
from schooltime.api.v1.time_slots.service import list_time_slots
from schooltime.api.v1.timetable_entries.schemas import TimetableEntryResponse
from schooltime.api.v1.timetable_entries.service import list_entries
from schooltime.auth.schemas import CurrentUser
from schooltime.core.config import settings
from schooltime.core.enums import SlotType, TimetableStatus, can_transition
from schooltime.core.exceptions import InvalidTransitionError, ServiceError
from schooltime.core.logging import get_logger
from schooltime.core.models import Room, TimeSlot, Timetable

from .schemas import (
    GridCell,
    GridRow,
    TimetableCreate,
    TimetableGrid,
    TimetableResponse,
    TimetableSummary,
    TimetableUpdate,
)

logger = get_logger(__name__)


def _to_response(t: Timetable) -> TimetableResponse:
    return TimetableResponse(
        id=t.id,
        institution_id=t.institution_id,
        name=t.name,
        timetable_type=t.timetable_type,
        term=t.term,
        status=t.status,
        effective_from=t.effective_from,
        effective_to=t.effective_to,
        notes=t.notes,
        published_at=t.published_at,
        created_at=t.created_at,
    )


async def _get_timetable(db: AsyncSession, institution_id: UUID, timetable_id: UUID) -> Optional[Timetable]:
    result = await db.execute(
        select(Timetable).where(
            Timetable.id == timetable_id,
            Timetable.institution_id == institution_id,
        )
    )
    return result.scalar_one_or_none()


async def _set_status(
    db: AsyncSession,
    obj: Timetable,
    target: TimetableStatus,
    current_user: Optional[CurrentUser],
    remarks: Optional[str] = None,
) -> None:
    current = TimetableStatus(obj.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)
    obj.status = target.value
    if target == TimetableStatus.PUBLISHED:
        obj.published_at = datetime.now(timezone.utc)
    await log_audit(
        db, obj.institution_id, "timetable", obj.id, target.value.upper(),
        from_status=current.value,
        to_status=target.value,
        performed_by=current_user,
        remarks=remarks,
    )


async def list_timetables(
    db: AsyncSession,
    institution_id: UUID,
    status_filter: Optional[TimetableStatus] = None,
) -> List[TimetableResponse]:
    stmt = select(Timetable).where(Timetable.institution_id == institution_id)
    if status_filter is not None:
        stmt = stmt.where(Timetable.status == status_filter.value)
    stmt = stmt.order_by(Timetable.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(t) for t in result.scalars().all()]


async def get_timetable(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: UUID,
) -> Optional[TimetableResponse]:
    obj = await _get_timetable(db, institution_id, timetable_id)
    return _to_response(obj) if obj else None


async def get_published_timetable(db: AsyncSession, institution_id: UUID) -> Optional[TimetableResponse]:
    result = await db.execute(
        select(Timetable).where(
            Timetable.institution_id == institution_id,
            Timetable.status == TimetableStatus.PUBLISHED.value,
        )
    )
    obj = result.scalar_one_or_none()
    return _to_response(obj) if obj else None


async def create_timetable(
    db: AsyncSession,
    institution_id: UUID,
    payload: TimetableCreate,
    current_user: Optional[CurrentUser] = None,
) -> TimetableResponse:
    obj = Timetable(
        institution_id=institution_id,
        name=payload.name.strip(),
        timetable_type=payload.timetable_type.value,
        term=payload.term,
        status=TimetableStatus.DRAFT.value,
        effective_from=payload.effective_from,
        effective_to=payload.effective_to,
        notes=payload.notes,
    )
    db.add(obj)
    await db.flush()
    await log_audit(
        db, institution_id, "timetable", obj.id, "CREATED",
        to_status=TimetableStatus.DRAFT.value,
        performed_by=current_user,
    )
    await db.commit()
    await db.refresh(obj)
    logger.info("timetable_created", institution_id=str(institution_id), timetable_id=str(obj.id))
    return _to_response(obj)


async def update_timetable(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: UUID,
    payload: TimetableUpdate,
) -> Optional[TimetableResponse]:
    obj = await _get_timetable(db, institution_id, timetable_id)
    if not obj:
        return None
    if obj.status == TimetableStatus.ARCHIVED.value:
        raise ServiceError("Archived timetables are read-only", status.HTTP_409_CONFLICT)
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        obj.name = data["name"].strip()
    if data.get("timetable_type"):
        obj.timetable_type = data["timetable_type"].value
    for field in ("term", "effective_from", "effective_to", "notes"):
        if field in data:
            setattr(obj, field, data[field])
    if obj.effective_from and obj.effective_to and obj.effective_to < obj.effective_from:
        raise ServiceError("effective_to must be on or after effective_from", status.HTTP_400_BAD_REQUEST)
    await db.commit()
    await db.refresh(obj)
    return _to_response(obj)


async def publish_timetable(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: UUID,
    current_user: Optional[CurrentUser] = None,
) -> Optional[TimetableResponse]:
    """Publish a draft. The currently published timetable, if any, is archived in the same transaction."""
    obj = await _get_timetable(db, institution_id, timetable_id)
    if not obj:
        return None
    current = TimetableStatus(obj.status)
    if not can_transition(current, TimetableStatus.PUBLISHED):
        raise InvalidTransitionError(current.value, TimetableStatus.PUBLISHED.value)

    result = await db.execute(
        select(Timetable).where(
            Timetable.institution_id == institution_id,
            Timetable.status == TimetableStatus.PUBLISHED.value,
            Timetable.id != timetable_id,
        )
    )
    superseded = list(result.scalars().all())
    try:
        for previous in superseded:
            await _set_status(db, previous, TimetableStatus.ARCHIVED, current_user, remarks=f"Superseded by {obj.name}")
        # The one-published-per-institution index must see the old row archived first.
        await db.flush()
        await _set_status(db, obj, TimetableStatus.PUBLISHED, current_user)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Another timetable was published at the same time; reload and retry", status.HTTP_409_CONFLICT)
    await db.refresh(obj)
    logger.info(
        "timetable_published",
        institution_id=str(institution_id),
        timetable_id=str(timetable_id),
        superseded=[str(t.id) for t in superseded],
    )
    return _to_response(obj)


async def archive_timetable(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: UUID,
    current_user: Optional[CurrentUser] = None,
) -> Optional[TimetableResponse]:
    obj = await _get_timetable(db, institution_id, timetable_id)
    if not obj:
        return None
    await _set_status(db, obj, TimetableStatus.ARCHIVED, current_user)
    await db.commit()
    await db.refresh(obj)
    logger.info("timetable_archived", institution_id=str(institution_id), timetable_id=str(timetable_id))
    return _to_response(obj)


async def delete_timetable(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: UUID,
    current_user: Optional[CurrentUser] = None,
) -> bool:
    """Delete a timetable and its entries. A published timetable must be archived first."""
    obj = await _get_timetable(db, institution_id, timetable_id)
    if not obj:
        return False
    if obj.status == TimetableStatus.PUBLISHED.value:
        raise ServiceError("Archive the published timetable before deleting it", status.HTTP_409_CONFLICT)
    await db.delete(obj)
    await log_audit(
        db, institution_id, "timetable", timetable_id, "DELETED",
        from_status=obj.status,
        performed_by=current_user,
        remarks=obj.name,
    )
    await db.commit()
    logger.info("timetable_deleted", institution_id=str(institution_id), timetable_id=str(timetable_id))
    return True


async def get_timetable_grid(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: UUID,
    class_id: Optional[UUID] = None,
) -> Optional[TimetableGrid]:
    obj = await _get_timetable(db, institution_id, timetable_id)
    if not obj:
        return None
    slots = await list_time_slots(db, institution_id, active_only=True)
    entries = await list_entries(db, institution_id, timetable_id, class_id=class_id)

    by_cell: Dict[Tuple[int, UUID], List[TimetableEntryResponse]] = {}
    for entry in entries:
        by_cell.setdefault((entry.day_of_week, entry.time_slot_id), []).append(entry)
    days = sorted(set(settings.teaching_days) | {e.day_of_week for e in entries})

    rows = [
        GridRow(
            slot=slot,
            cells=[GridCell(day_of_week=day, entries=by_cell.get((day, slot.id), [])) for day in days],
        )
        for slot in slots
    ]
    return TimetableGrid(timetable=_to_response(obj), days=days, rows=rows)


async def get_timetable_summary(db: AsyncSession, institution_id: UUID) -> TimetableSummary:
    status_counts = await db.execute(
        select(Timetable.status, func.count(Timetable.id))
        .where(Timetable.institution_id == institution_id)
        .group_by(Timetable.status)
    )
    counts = {row[0]: row[1] for row in status_counts.all()}
    active_rooms = await db.scalar(
        select(func.count(Room.id)).where(Room.institution_id == institution_id, Room.is_active.is_(True))
    )
    lesson_slots = await db.scalar(
        select(func.count(TimeSlot.id)).where(
            TimeSlot.institution_id == institution_id,
            TimeSlot.is_active.is_(True),
            TimeSlot.slot_type == SlotType.LESSON.value,
        )
    )
    return TimetableSummary(
        published_timetables=counts.get(TimetableStatus.PUBLISHED.value, 0),
        draft_timetables=counts.get(TimetableStatus.DRAFT.value, 0),
        active_rooms=active_rooms or 0,
        lesson_slots=lesson_slots or 0,
    )
