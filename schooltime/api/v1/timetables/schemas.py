from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from schooltime.api.v1.time_slots.schemas import TimeSlotResponse
from schooltime.api.v1.timetable_entries.schemas import TimetableEntryResponse
from schooltime.core.enums import TimetableStatus, TimetableType


class TimetableCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="e.g. Term 1 Main Timetable")
    timetable_type: TimetableType = TimetableType.MAIN
    term: Optional[str] = Field(None, max_length=50)
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "TimetableCreate":
        if self.effective_from and self.effective_to and self.effective_to < self.effective_from:
            raise ValueError("effective_to must be on or after effective_from")
        return self


class TimetableUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    timetable_type: Optional[TimetableType] = None
    term: Optional[str] = Field(None, max_length=50)
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    notes: Optional[str] = None


class TimetableResponse(BaseModel):
    id: UUID
    institution_id: UUID
    name: str
    timetable_type: TimetableType
    term: Optional[str] = None
    status: TimetableStatus
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    notes: Optional[str] = None
    published_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class GridCell(BaseModel):
    day_of_week: int
    entries: List[TimetableEntryResponse] = Field(default_factory=list)


class GridRow(BaseModel):
    slot: TimeSlotResponse
    cells: List[GridCell]


class TimetableGrid(BaseModel):
    """Rows are active slots in sequence order, columns the teaching days."""
    timetable: TimetableResponse
    days: List[int]
    rows: List[GridRow]


class TimetableSummary(BaseModel):
    published_timetables: int
    draft_timetables: int
    active_rooms: int
    lesson_slots: int
