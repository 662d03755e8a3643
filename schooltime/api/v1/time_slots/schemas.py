from datetime import datetime, time
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from schooltime.core.enums import MoveDirection, SlotType


def _parse_time_24(v: Union[str, time]) -> time:
    """Parse 24-hour time string (HH:MM or HH:MM:SS) to time."""
    if isinstance(v, time):
        return v
    if isinstance(v, str):
        v = v.strip()
        if len(v) == 5:  # HH:MM
            return datetime.strptime(v, "%H:%M").time()
        return datetime.strptime(v, "%H:%M:%S").time()
    raise ValueError("start_time/end_time must be 24-hour string (e.g. 08:00, 08:40) or time")


class TimeSlotCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:40")
    slot_type: SlotType = SlotType.LESSON
    sequence_order: Optional[int] = Field(None, ge=1, description="Defaults to the next position")
    applies_to: str = Field("all", max_length=50, description="Scope tag: all, a level, etc.")
    is_active: bool = True

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return _parse_time_24(v)


class TimeSlotUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 08:00")
    end_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 08:40")
    slot_type: Optional[SlotType] = None
    sequence_order: Optional[int] = Field(None, ge=1)
    applies_to: Optional[str] = Field(None, max_length=50)
    is_active: Optional[bool] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Optional[Union[str, time]]) -> Optional[time]:
        if v is None:
            return None
        return _parse_time_24(v)


class TimeSlotMove(BaseModel):
    direction: MoveDirection


class TimeSlotResponse(BaseModel):
    id: UUID
    institution_id: UUID
    name: str
    start_time: time
    end_time: time
    slot_type: SlotType
    sequence_order: int
    applies_to: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        """Output as 24-hour string HH:MM (e.g. 08:00, 08:40)."""
        return t.strftime("%H:%M")


class TimeSlotUsage(BaseModel):
    count: int
    timetables: List[str] = Field(default_factory=list, description="Distinct names of timetables using the slot")
