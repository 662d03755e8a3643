"""One scheduled lesson: class + subject + teacher (+ room) at a day/slot of a timetable."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from schooltime.core.booking import ENTRY_TABLE, entry_unique_constraints
from schooltime.db.session import Base


class TimetableEntry(Base):
    __tablename__ = ENTRY_TABLE
    __table_args__ = (
        *entry_unique_constraints(),
        Index("ix_timetable_entries_cell", "timetable_id", "day_of_week", "time_slot_id"),
        {"schema": "school"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    institution_id = Column(UUID(as_uuid=True), ForeignKey("core.institutions.id", ondelete="CASCADE"), nullable=False)
    timetable_id = Column(UUID(as_uuid=True), ForeignKey("school.timetables.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("school.classes.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("school.subjects.id", ondelete="RESTRICT"), nullable=False)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("school.staff.id", ondelete="RESTRICT"), nullable=False, index=True)
    room_id = Column(UUID(as_uuid=True), ForeignKey("school.rooms.id", ondelete="SET NULL"), nullable=True)
    time_slot_id = Column(UUID(as_uuid=True), ForeignKey("school.time_slots.id", ondelete="RESTRICT"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 1=Monday .. 7=Sunday
    is_double_period = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    timetable = relationship("Timetable", back_populates="entries")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    subject = relationship("Subject", foreign_keys=[subject_id])
    teacher = relationship("Staff", foreign_keys=[teacher_id])
    room = relationship("Room", foreign_keys=[room_id])
    time_slot = relationship("TimeSlot", foreign_keys=[time_slot_id])
