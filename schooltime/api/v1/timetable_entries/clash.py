"""Clash detection for timetable placements.

Advisory read over the entries of one timetable. The unique constraints built
from the same booking rules are what finally reject a double booking.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.core.booking import CLASS_RULE, ROOM_RULE, TEACHER_RULE, clashes_on, occupied_cells
from schooltime.core.enums import SlotType
from schooltime.core.models import SchoolClass, Staff, Subject, TimeSlot, TimetableEntry

from .schemas import ClashCheckRequest, ClashResult, ClassClashDetails, RoomClashDetails, TeacherClashDetails


@dataclass(frozen=True)
class Placement:
    """Prospective (or edited) position of an entry. id is the entry being edited, if any."""

    timetable_id: UUID
    day_of_week: int
    time_slot_id: UUID
    teacher_id: Optional[UUID] = None
    room_id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    id: Optional[UUID] = None
    is_double_period: bool = False

    @classmethod
    def from_request(cls, payload: ClashCheckRequest) -> "Placement":
        return cls(
            timetable_id=payload.timetable_id,
            day_of_week=payload.day_of_week,
            time_slot_id=payload.time_slot_id,
            teacher_id=payload.teacher_id,
            room_id=payload.room_id,
            class_id=payload.class_id,
            id=payload.exclude_entry_id,
            is_double_period=payload.is_double_period,
        )


async def slot_neighbours(
    db: AsyncSession,
    institution_id: UUID,
) -> Tuple[Dict[UUID, UUID], Dict[UUID, UUID]]:
    """(next_of, previous_of) over the institution's active lesson slots in sequence order.

    Breaks and other non-lesson slots are skipped, so a double period before a
    break runs on into the lesson after it.
    """
    result = await db.execute(
        select(TimeSlot.id)
        .where(
            TimeSlot.institution_id == institution_id,
            TimeSlot.is_active.is_(True),
            TimeSlot.slot_type == SlotType.LESSON.value,
        )
        .order_by(TimeSlot.sequence_order)
    )
    ordered = list(result.scalars().all())
    next_of = dict(zip(ordered, ordered[1:]))
    previous_of = {following: slot_id for slot_id, following in next_of.items()}
    return next_of, previous_of


async def check_clash(
    db: AsyncSession,
    institution_id: UUID,
    placement: Placement,
) -> ClashResult:
    """Report the first conflicting entry per category at the placement's day/slot.

    A double period also holds the next lesson slot, for the placement and for
    existing entries alike. Finding nothing is a normal result, not an error.
    """
    next_of, previous_of = await slot_neighbours(db, institution_id)

    def cells_of(slot_id: UUID, is_double: bool):
        return occupied_cells(placement.day_of_week, slot_id, next_of.get(slot_id) if is_double else None)

    wanted = cells_of(placement.time_slot_id, placement.is_double_period)
    slot_ids = {slot_id for _, slot_id in wanted}
    # A double period starting one slot earlier reaches into ours.
    slot_ids |= {previous_of[slot_id] for slot_id in list(slot_ids) if slot_id in previous_of}

    stmt = (
        select(TimetableEntry, Subject.name, SchoolClass.name, Staff)
        .join(Subject, Subject.id == TimetableEntry.subject_id)
        .join(SchoolClass, SchoolClass.id == TimetableEntry.class_id)
        .join(Staff, Staff.id == TimetableEntry.teacher_id)
        .where(
            TimetableEntry.institution_id == institution_id,
            TimetableEntry.timetable_id == placement.timetable_id,
            TimetableEntry.day_of_week == placement.day_of_week,
            TimetableEntry.time_slot_id.in_(slot_ids),
        )
        .order_by(TimetableEntry.created_at)
    )
    if placement.id is not None:
        stmt = stmt.where(TimetableEntry.id != placement.id)
    rows = (await db.execute(stmt)).all()

    result = ClashResult()
    for entry, subject_name, class_name, teacher in rows:
        if not wanted & cells_of(entry.time_slot_id, entry.is_double_period):
            continue
        if not result.has_teacher_clash and clashes_on(TEACHER_RULE, placement, entry):
            result.has_teacher_clash = True
            result.teacher_clash_details = TeacherClashDetails(subject_name=subject_name, class_name=class_name)
        if not result.has_room_clash and clashes_on(ROOM_RULE, placement, entry):
            result.has_room_clash = True
            result.room_clash_details = RoomClashDetails(teacher_name=teacher.full_name, class_name=class_name)
        if not result.has_class_clash and clashes_on(CLASS_RULE, placement, entry):
            result.has_class_clash = True
            result.class_clash_details = ClassClashDetails(subject_name=subject_name, teacher_name=teacher.full_name)
    return result
