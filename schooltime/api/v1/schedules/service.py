"""Per-teacher and per-room weekly views over one timetable (the published one by default)."""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.api.v1.timetable_entries.service import list_entries
from schooltime.api.v1.timetables.schemas import TimetableResponse
from schooltime.api.v1.timetables.service import get_published_timetable, get_timetable, list_timetables
from schooltime.core.config import settings
from schooltime.core.enums import SlotType
from schooltime.core.exceptions import NotFoundError
from schooltime.core.models import Room, Staff, TimeSlot

from .schemas import RoomSchedule, TeacherSchedule, TeacherWeeklyStats


async def _resolve_timetable(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: Optional[UUID],
) -> Optional[TimetableResponse]:
    """Requested timetable, else the published one, else the most recently created."""
    if timetable_id is not None:
        tt = await get_timetable(db, institution_id, timetable_id)
        if not tt:
            raise NotFoundError("Timetable not found")
        return tt
    published = await get_published_timetable(db, institution_id)
    if published:
        return published
    timetables = await list_timetables(db, institution_id)
    return timetables[0] if timetables else None


async def get_teacher_schedule(
    db: AsyncSession,
    institution_id: UUID,
    teacher_id: UUID,
    timetable_id: Optional[UUID] = None,
) -> TeacherSchedule:
    teacher = await db.get(Staff, teacher_id)
    if not teacher or teacher.institution_id != institution_id:
        raise NotFoundError("Teacher not found")
    timetable = await _resolve_timetable(db, institution_id, timetable_id)
    if timetable is None:
        return TeacherSchedule(teacher_id=teacher.id, teacher_name=teacher.full_name, stats=TeacherWeeklyStats())

    entries = await list_entries(db, institution_id, timetable.id, teacher_id=teacher_id)
    stats = TeacherWeeklyStats(
        total_lessons=len(entries),
        unique_classes=len({e.class_id for e in entries}),
        unique_subjects=len({e.subject_id for e in entries}),
    )
    return TeacherSchedule(
        teacher_id=teacher.id,
        teacher_name=teacher.full_name,
        timetable=timetable,
        entries=entries,
        stats=stats,
    )


async def get_room_schedule(
    db: AsyncSession,
    institution_id: UUID,
    room_id: UUID,
    timetable_id: Optional[UUID] = None,
) -> RoomSchedule:
    room = await db.get(Room, room_id)
    if not room or room.institution_id != institution_id:
        raise NotFoundError("Room not found")
    timetable = await _resolve_timetable(db, institution_id, timetable_id)
    if timetable is None:
        return RoomSchedule(room_id=room.id, room_name=room.name)

    entries = await list_entries(db, institution_id, timetable.id, room_id=room_id)
    lesson_slots = await db.scalar(
        select(func.count(TimeSlot.id)).where(
            TimeSlot.institution_id == institution_id,
            TimeSlot.is_active.is_(True),
            TimeSlot.slot_type == SlotType.LESSON.value,
        )
    )
    capacity = (lesson_slots or 0) * len(settings.teaching_days)
    utilization = round(len(entries) * 100 / capacity) if capacity else 0
    return RoomSchedule(
        room_id=room.id,
        room_name=room.name,
        timetable=timetable,
        entries=entries,
        utilization=utilization,
    )
