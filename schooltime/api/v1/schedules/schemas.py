from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schooltime.api.v1.timetable_entries.schemas import TimetableEntryResponse
from schooltime.api.v1.timetables.schemas import TimetableResponse


class TeacherWeeklyStats(BaseModel):
    total_lessons: int = 0
    unique_classes: int = 0
    unique_subjects: int = 0


class TeacherSchedule(BaseModel):
    teacher_id: UUID
    teacher_name: str
    timetable: Optional[TimetableResponse] = Field(None, description="Published timetable unless one was requested")
    entries: List[TimetableEntryResponse] = Field(default_factory=list)
    stats: TeacherWeeklyStats


class RoomSchedule(BaseModel):
    room_id: UUID
    room_name: str
    timetable: Optional[TimetableResponse] = None
    entries: List[TimetableEntryResponse] = Field(default_factory=list)
    utilization: int = Field(0, description="Percent of lesson slots across teaching days that the room is booked")
