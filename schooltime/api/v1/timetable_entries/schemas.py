from datetime import datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_serializer


class TimetableEntryCreate(BaseModel):
    timetable_id: UUID
    class_id: UUID
    subject_id: UUID
    teacher_id: UUID = Field(..., description="school.staff")
    time_slot_id: UUID
    day_of_week: int = Field(..., ge=1, le=7, description="1=Monday .. 7=Sunday")
    room_id: Optional[UUID] = None
    is_double_period: bool = False
    notes: Optional[str] = None


class TimetableEntryUpdate(BaseModel):
    """Send room_id: null to clear the room."""
    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    room_id: Optional[UUID] = None
    is_double_period: Optional[bool] = None
    notes: Optional[str] = None


class TimetableEntryResponse(BaseModel):
    id: UUID
    institution_id: UUID
    timetable_id: UUID
    class_id: UUID
    subject_id: UUID
    teacher_id: UUID
    room_id: Optional[UUID] = None
    time_slot_id: UUID
    day_of_week: int
    is_double_period: bool
    notes: Optional[str] = None
    created_at: datetime
    class_name: Optional[str] = None
    subject_name: Optional[str] = None
    subject_code: Optional[str] = None
    teacher_name: Optional[str] = None
    room_name: Optional[str] = None
    slot_name: Optional[str] = None
    sequence_order: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: Optional[time]) -> Optional[str]:
        return t.strftime("%H:%M") if t else None


class ClashCheckRequest(BaseModel):
    timetable_id: UUID
    day_of_week: int = Field(..., ge=1, le=7)
    time_slot_id: UUID
    teacher_id: Optional[UUID] = Field(None, description="Skip the teacher check when absent")
    room_id: Optional[UUID] = Field(None, description="Skip the room check when absent")
    class_id: Optional[UUID] = Field(None, description="Skip the class check when absent")
    exclude_entry_id: Optional[UUID] = Field(None, description="Entry being edited; never clashes with itself")
    is_double_period: bool = False


class TeacherClashDetails(BaseModel):
    subject_name: str
    class_name: str


class RoomClashDetails(BaseModel):
    teacher_name: str
    class_name: str


class ClassClashDetails(BaseModel):
    subject_name: str
    teacher_name: str


class ClashResult(BaseModel):
    has_teacher_clash: bool = False
    teacher_clash_details: Optional[TeacherClashDetails] = None
    has_room_clash: bool = False
    room_clash_details: Optional[RoomClashDetails] = None
    # Advisory only: the store does not forbid two lessons for one class in a slot.
    has_class_clash: bool = False
    class_clash_details: Optional[ClassClashDetails] = None

    @computed_field
    @property
    def has_clash(self) -> bool:
        return self.has_teacher_clash or self.has_room_clash
