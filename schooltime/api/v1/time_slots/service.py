"""Period setup: ordered time slots of the school day, usage lookup and guarded deletion."""

from datetime import time
from typing import List, Optional, Sequence
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.api.v1.audit.service import log_audit
from schooltime.auth.schemas import CurrentUser
from schooltime.core.enums import MoveDirection, SlotType
from schooltime.core.exceptions import ServiceError, SlotInUseError
from schooltime.core.logging import get_logger
from schooltime.core.models import TimeSlot, Timetable, TimetableEntry

from .schemas import TimeSlotCreate, TimeSlotResponse, TimeSlotUpdate, TimeSlotUsage

logger = get_logger(__name__)


def _to_response(s: TimeSlot) -> TimeSlotResponse:
    return TimeSlotResponse(
        id=s.id,
        institution_id=s.institution_id,
        name=s.name,
        start_time=s.start_time,
        end_time=s.end_time,
        slot_type=s.slot_type,
        sequence_order=s.sequence_order,
        applies_to=s.applies_to,
        is_active=s.is_active,
        created_at=s.created_at,
    )


async def _load_slots(db: AsyncSession, institution_id: UUID) -> List[TimeSlot]:
    result = await db.execute(
        select(TimeSlot)
        .where(TimeSlot.institution_id == institution_id)
        .order_by(TimeSlot.sequence_order)
    )
    return list(result.scalars().all())


async def _get_slot(db: AsyncSession, institution_id: UUID, slot_id: UUID) -> Optional[TimeSlot]:
    result = await db.execute(
        select(TimeSlot).where(
            TimeSlot.id == slot_id,
            TimeSlot.institution_id == institution_id,
        )
    )
    return result.scalar_one_or_none()


def _check_times(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise ServiceError("end_time must be after start_time", status.HTTP_400_BAD_REQUEST)


def _check_lesson_overlap(
    slots: Sequence[TimeSlot],
    *,
    slot_id: Optional[UUID],
    slot_type: str,
    applies_to: str,
    is_active: bool,
    start_time: time,
    end_time: time,
) -> None:
    """Active lesson slots of one scope may not overlap. Breaks, assemblies etc. may nest anywhere."""
    if slot_type != SlotType.LESSON.value or not is_active:
        return
    for other in slots:
        if other.id == slot_id or not other.is_active:
            continue
        if other.slot_type != SlotType.LESSON.value or other.applies_to != applies_to:
            continue
        if start_time < other.end_time and other.start_time < end_time:
            raise ServiceError(
                f"Lesson time overlaps with '{other.name}' "
                f"({other.start_time.strftime('%H:%M')}-{other.end_time.strftime('%H:%M')})",
                status.HTTP_400_BAD_REQUEST,
            )


def _check_sequence_free(slots: Sequence[TimeSlot], sequence_order: int, slot_id: Optional[UUID] = None) -> None:
    for other in slots:
        if other.id != slot_id and other.sequence_order == sequence_order:
            raise ServiceError(
                f"Sequence order {sequence_order} is already used by '{other.name}'",
                status.HTTP_409_CONFLICT,
            )


async def list_time_slots(
    db: AsyncSession,
    institution_id: UUID,
    active_only: bool = False,
    slot_type: Optional[SlotType] = None,
) -> List[TimeSlotResponse]:
    stmt = select(TimeSlot).where(TimeSlot.institution_id == institution_id)
    if active_only:
        stmt = stmt.where(TimeSlot.is_active.is_(True))
    if slot_type is not None:
        stmt = stmt.where(TimeSlot.slot_type == slot_type.value)
    stmt = stmt.order_by(TimeSlot.sequence_order)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]


async def get_time_slot(
    db: AsyncSession,
    institution_id: UUID,
    slot_id: UUID,
) -> Optional[TimeSlotResponse]:
    obj = await _get_slot(db, institution_id, slot_id)
    return _to_response(obj) if obj else None


async def create_time_slot(
    db: AsyncSession,
    institution_id: UUID,
    payload: TimeSlotCreate,
) -> TimeSlotResponse:
    _check_times(payload.start_time, payload.end_time)
    slots = await _load_slots(db, institution_id)
    if payload.sequence_order is not None:
        sequence_order = payload.sequence_order
        _check_sequence_free(slots, sequence_order)
    else:
        sequence_order = max((s.sequence_order for s in slots), default=0) + 1
    _check_lesson_overlap(
        slots,
        slot_id=None,
        slot_type=payload.slot_type.value,
        applies_to=payload.applies_to,
        is_active=payload.is_active,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )
    try:
        obj = TimeSlot(
            institution_id=institution_id,
            name=payload.name.strip(),
            start_time=payload.start_time,
            end_time=payload.end_time,
            slot_type=payload.slot_type.value,
            sequence_order=sequence_order,
            applies_to=payload.applies_to,
            is_active=payload.is_active,
        )
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Time slot creation failed: sequence order already taken", status.HTTP_409_CONFLICT)
    logger.info("time_slot_created", institution_id=str(institution_id), slot_id=str(obj.id), sequence_order=sequence_order)
    return _to_response(obj)


async def update_time_slot(
    db: AsyncSession,
    institution_id: UUID,
    slot_id: UUID,
    payload: TimeSlotUpdate,
) -> Optional[TimeSlotResponse]:
    slots = await _load_slots(db, institution_id)
    obj = next((s for s in slots if s.id == slot_id), None)
    if not obj:
        return None

    data = payload.model_dump(exclude_unset=True)
    start_time = data.get("start_time") or obj.start_time
    end_time = data.get("end_time") or obj.end_time
    slot_type = data["slot_type"].value if data.get("slot_type") else obj.slot_type
    applies_to = data.get("applies_to") or obj.applies_to
    is_active = data["is_active"] if data.get("is_active") is not None else obj.is_active

    _check_times(start_time, end_time)
    if data.get("sequence_order") is not None:
        _check_sequence_free(slots, data["sequence_order"], slot_id=obj.id)
    _check_lesson_overlap(
        slots,
        slot_id=obj.id,
        slot_type=slot_type,
        applies_to=applies_to,
        is_active=is_active,
        start_time=start_time,
        end_time=end_time,
    )

    if data.get("name"):
        obj.name = data["name"].strip()
    obj.start_time = start_time
    obj.end_time = end_time
    obj.slot_type = slot_type
    obj.applies_to = applies_to
    obj.is_active = is_active
    if data.get("sequence_order") is not None:
        obj.sequence_order = data["sequence_order"]
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Time slot update failed: sequence order already taken", status.HTTP_409_CONFLICT)
    await db.refresh(obj)
    return _to_response(obj)


async def move_time_slot(
    db: AsyncSession,
    institution_id: UUID,
    slot_id: UUID,
    direction: MoveDirection,
) -> Optional[List[TimeSlotResponse]]:
    """Swap sequence_order with the neighbouring slot in a single transaction.

    Returns the full ordered list, or None if the slot does not exist. Moving the
    first slot up or the last slot down leaves the order unchanged.
    """
    slots = await _load_slots(db, institution_id)
    index = next((i for i, s in enumerate(slots) if s.id == slot_id), None)
    if index is None:
        return None
    swap_index = index - 1 if direction == MoveDirection.UP else index + 1
    if swap_index < 0 or swap_index >= len(slots):
        return [_to_response(s) for s in slots]

    slot, neighbour = slots[index], slots[swap_index]
    slot_order, neighbour_order = slot.sequence_order, neighbour.sequence_order
    try:
        # Park the slot on a negative order so (institution_id, sequence_order) stays unique at every flush.
        slot.sequence_order = -slot_order
        await db.flush()
        neighbour.sequence_order = slot_order
        await db.flush()
        slot.sequence_order = neighbour_order
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Failed to reorder time slots", status.HTTP_409_CONFLICT)

    logger.info(
        "time_slot_moved",
        institution_id=str(institution_id),
        slot_id=str(slot_id),
        direction=direction.value,
        sequence_order=neighbour_order,
    )
    slots.sort(key=lambda s: s.sequence_order)
    return [_to_response(s) for s in slots]


async def get_time_slot_usage(
    db: AsyncSession,
    institution_id: UUID,
    slot_id: UUID,
) -> TimeSlotUsage:
    """Entries referencing the slot across every timetable of the institution."""
    count = await db.scalar(
        select(func.count(TimetableEntry.id)).where(
            TimetableEntry.institution_id == institution_id,
            TimetableEntry.time_slot_id == slot_id,
        )
    )
    names_result = await db.execute(
        select(Timetable.name)
        .join(TimetableEntry, TimetableEntry.timetable_id == Timetable.id)
        .where(
            TimetableEntry.institution_id == institution_id,
            TimetableEntry.time_slot_id == slot_id,
        )
        .distinct()
        .order_by(Timetable.name)
    )
    return TimeSlotUsage(count=count or 0, timetables=list(names_result.scalars().all()))


async def delete_time_slot(
    db: AsyncSession,
    institution_id: UUID,
    slot_id: UUID,
    current_user: Optional[CurrentUser] = None,
) -> bool:
    obj = await _get_slot(db, institution_id, slot_id)
    if not obj:
        return False
    usage = await get_time_slot_usage(db, institution_id, slot_id)
    if usage.count > 0:
        logger.warning(
            "time_slot_delete_blocked",
            institution_id=str(institution_id),
            slot_id=str(slot_id),
            usage_count=usage.count,
        )
        raise SlotInUseError(usage.count, usage.timetables)
    try:
        await db.delete(obj)
        await log_audit(
            db, institution_id, "time_slot", slot_id, "DELETED",
            performed_by=current_user,
            remarks=f"{obj.name} (order {obj.sequence_order})",
        )
        await db.commit()
    except IntegrityError:
        # An entry was placed on the slot after the usage check; the foreign key refused the delete.
        await db.rollback()
        usage = await get_time_slot_usage(db, institution_id, slot_id)
        raise SlotInUseError(usage.count, usage.timetables)
    logger.info("time_slot_deleted", institution_id=str(institution_id), slot_id=str(slot_id))
    return True
