from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.api.v1.audit.service import log_audit
from schooltime.auth.schemas import CurrentUser
from schooltime.core.booking import rule_for_violation
from schooltime.core.enums import SlotType, TimetableStatus
from schooltime.core.exceptions import SchedulingConflictError, ServiceError
from schooltime.core.logging import get_logger
from schooltime.core.models import Room, SchoolClass, Staff, Subject, TimeSlot, Timetable, TimetableEntry

from .clash import Placement, check_clash
from .schemas import ClashCheckRequest, ClashResult, TimetableEntryCreate, TimetableEntryResponse, TimetableEntryUpdate

logger = get_logger(__name__)


def _to_response(
    e: TimetableEntry,
    school_class: Optional[SchoolClass] = None,
    subject: Optional[Subject] = None,
    teacher: Optional[Staff] = None,
    room: Optional[Room] = None,
    slot: Optional[TimeSlot] = None,
) -> TimetableEntryResponse:
    return TimetableEntryResponse(
        id=e.id,
        institution_id=e.institution_id,
        timetable_id=e.timetable_id,
        class_id=e.class_id,
        subject_id=e.subject_id,
        teacher_id=e.teacher_id,
        room_id=e.room_id,
        time_slot_id=e.time_slot_id,
        day_of_week=e.day_of_week,
        is_double_period=e.is_double_period,
        notes=e.notes,
        created_at=e.created_at,
        class_name=school_class.name if school_class else None,
        subject_name=subject.name if subject else None,
        subject_code=subject.code if subject else None,
        teacher_name=teacher.full_name if teacher else None,
        room_name=room.name if room else None,
        slot_name=slot.name if slot else None,
        sequence_order=slot.sequence_order if slot else None,
        start_time=slot.start_time if slot else None,
        end_time=slot.end_time if slot else None,
    )


def _entries_query(institution_id: UUID):
    return (
        select(TimetableEntry, SchoolClass, Subject, Staff, Room, TimeSlot)
        .join(SchoolClass, SchoolClass.id == TimetableEntry.class_id)
        .join(Subject, Subject.id == TimetableEntry.subject_id)
        .join(Staff, Staff.id == TimetableEntry.teacher_id)
        .join(TimeSlot, TimeSlot.id == TimetableEntry.time_slot_id)
        .outerjoin(Room, Room.id == TimetableEntry.room_id)
        .where(TimetableEntry.institution_id == institution_id)
    )


async def _get_editable_timetable(db: AsyncSession, institution_id: UUID, timetable_id: UUID) -> Timetable:
    tt = await db.get(Timetable, timetable_id)
    if not tt or tt.institution_id != institution_id:
        raise ServiceError("Invalid timetable", status.HTTP_400_BAD_REQUEST)
    if tt.status == TimetableStatus.ARCHIVED.value:
        raise ServiceError("Archived timetables are read-only", status.HTTP_409_CONFLICT)
    return tt


async def _check_reference(db: AsyncSession, model, institution_id: UUID, ref_id: UUID, label: str):
    obj = await db.get(model, ref_id)
    if not obj or obj.institution_id != institution_id:
        raise ServiceError(f"Invalid {label}", status.HTTP_400_BAD_REQUEST)
    return obj


async def _check_time_slot(db: AsyncSession, institution_id: UUID, slot_id: UUID) -> TimeSlot:
    slot = await _check_reference(db, TimeSlot, institution_id, slot_id, "time slot")
    if not slot.is_active:
        raise ServiceError("Time slot is inactive", status.HTTP_400_BAD_REQUEST)
    if slot.slot_type != SlotType.LESSON.value:
        raise ServiceError("Entries can only be placed on lesson slots", status.HTTP_400_BAD_REQUEST)
    return slot


def _conflict_from(e: IntegrityError, institution_id: UUID, timetable_id: UUID) -> ServiceError:
    rule = rule_for_violation(str(e.orig))
    if rule is None:
        return ServiceError("Timetable entry could not be saved", status.HTTP_409_CONFLICT)
    logger.warning(
        "timetable_entry_conflict",
        institution_id=str(institution_id),
        timetable_id=str(timetable_id),
        resource=rule.resource,
    )
    return SchedulingConflictError(rule.resource)


async def check_entry_clash(
    db: AsyncSession,
    institution_id: UUID,
    payload: ClashCheckRequest,
) -> ClashResult:
    return await check_clash(db, institution_id, Placement.from_request(payload))


async def list_entries(
    db: AsyncSession,
    institution_id: UUID,
    timetable_id: UUID,
    class_id: Optional[UUID] = None,
    subject_id: Optional[UUID] = None,
    teacher_id: Optional[UUID] = None,
    room_id: Optional[UUID] = None,
    day_of_week: Optional[int] = None,
    term: Optional[str] = None,
) -> List[TimetableEntryResponse]:
    stmt = _entries_query(institution_id).where(TimetableEntry.timetable_id == timetable_id)
    if class_id is not None:
        stmt = stmt.where(TimetableEntry.class_id == class_id)
    if subject_id is not None:
        stmt = stmt.where(TimetableEntry.subject_id == subject_id)
    if teacher_id is not None:
        stmt = stmt.where(TimetableEntry.teacher_id == teacher_id)
    if room_id is not None:
        stmt = stmt.where(TimetableEntry.room_id == room_id)
    if day_of_week is not None:
        stmt = stmt.where(TimetableEntry.day_of_week == day_of_week)
    if term is not None:
        stmt = stmt.join(Timetable, Timetable.id == TimetableEntry.timetable_id).where(Timetable.term == term)
    stmt = stmt.order_by(TimetableEntry.day_of_week, TimeSlot.sequence_order, SchoolClass.name)
    result = await db.execute(stmt)
    return [_to_response(*row) for row in result.all()]


async def get_entry(
    db: AsyncSession,
    institution_id: UUID,
    entry_id: UUID,
) -> Optional[TimetableEntryResponse]:
    result = await db.execute(_entries_query(institution_id).where(TimetableEntry.id == entry_id))
    row = result.first()
    return _to_response(*row) if row else None


async def create_entry(
    db: AsyncSession,
    institution_id: UUID,
    payload: TimetableEntryCreate,
    current_user: Optional[CurrentUser] = None,
) -> TimetableEntryResponse:
    """Insert an entry. The store's unique constraints reject teacher/room double bookings."""
    await _get_editable_timetable(db, institution_id, payload.timetable_id)
    await _check_reference(db, SchoolClass, institution_id, payload.class_id, "class")
    await _check_reference(db, Subject, institution_id, payload.subject_id, "subject")
    await _check_reference(db, Staff, institution_id, payload.teacher_id, "teacher")
    if payload.room_id is not None:
        await _check_reference(db, Room, institution_id, payload.room_id, "room")
    await _check_time_slot(db, institution_id, payload.time_slot_id)

    obj = TimetableEntry(
        institution_id=institution_id,
        timetable_id=payload.timetable_id,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        teacher_id=payload.teacher_id,
        room_id=payload.room_id,
        time_slot_id=payload.time_slot_id,
        day_of_week=payload.day_of_week,
        is_double_period=payload.is_double_period,
        notes=payload.notes,
    )
    try:
        db.add(obj)
        await db.flush()
        await log_audit(db, institution_id, "timetable_entry", obj.id, "CREATED", performed_by=current_user)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise _conflict_from(e, institution_id, payload.timetable_id)
    logger.info(
        "timetable_entry_created",
        institution_id=str(institution_id),
        timetable_id=str(payload.timetable_id),
        entry_id=str(obj.id),
        day_of_week=payload.day_of_week,
    )
    return await get_entry(db, institution_id, obj.id)


async def update_entry(
    db: AsyncSession,
    institution_id: UUID,
    entry_id: UUID,
    payload: TimetableEntryUpdate,
    current_user: Optional[CurrentUser] = None,
) -> Optional[TimetableEntryResponse]:
    result = await db.execute(
        select(TimetableEntry).where(
            TimetableEntry.id == entry_id,
            TimetableEntry.institution_id == institution_id,
        )
    )
    obj = result.scalar_one_or_none()
    if not obj:
        return None
    await _get_editable_timetable(db, institution_id, obj.timetable_id)

    # All lookups run before obj is touched; an autoflush must not push a half-applied update.
    if payload.subject_id is not None:
        await _check_reference(db, Subject, institution_id, payload.subject_id, "subject")
    if payload.teacher_id is not None:
        await _check_reference(db, Staff, institution_id, payload.teacher_id, "teacher")
    if "room_id" in payload.model_fields_set and payload.room_id is not None:
        await _check_reference(db, Room, institution_id, payload.room_id, "room")

    timetable_id = obj.timetable_id
    try:
        if payload.subject_id is not None:
            obj.subject_id = payload.subject_id
        if payload.teacher_id is not None:
            obj.teacher_id = payload.teacher_id
        if "room_id" in payload.model_fields_set:
            obj.room_id = payload.room_id
        if payload.is_double_period is not None:
            obj.is_double_period = payload.is_double_period
        if "notes" in payload.model_fields_set:
            obj.notes = payload.notes
        await log_audit(db, institution_id, "timetable_entry", obj.id, "UPDATED", performed_by=current_user)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise _conflict_from(e, institution_id, timetable_id)
    logger.info("timetable_entry_updated", institution_id=str(institution_id), entry_id=str(entry_id))
    return await get_entry(db, institution_id, entry_id)


async def delete_entry(
    db: AsyncSession,
    institution_id: UUID,
    entry_id: UUID,
    current_user: Optional[CurrentUser] = None,
) -> bool:
    result = await db.execute(
        select(TimetableEntry).where(
            TimetableEntry.id == entry_id,
            TimetableEntry.institution_id == institution_id,
        )
    )
    obj = result.scalar_one_or_none()
    if not obj:
        return False
    await _get_editable_timetable(db, institution_id, obj.timetable_id)
    await db.delete(obj)
    await log_audit(db, institution_id, "timetable_entry", entry_id, "DELETED", performed_by=current_user)
    await db.commit()
    logger.info("timetable_entry_deleted", institution_id=str(institution_id), entry_id=str(entry_id))
    return True
