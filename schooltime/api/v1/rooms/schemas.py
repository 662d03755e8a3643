from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    building: Optional[str] = Field(None, max_length=100)
    room_type: Optional[str] = Field(None, max_length=50, description="e.g. classroom, lab, hall")
    capacity: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    building: Optional[str] = Field(None, max_length=100)
    room_type: Optional[str] = Field(None, max_length=50)
    capacity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class RoomResponse(BaseModel):
    id: UUID
    institution_id: UUID
    name: str
    building: Optional[str] = None
    room_type: Optional[str] = None
    capacity: Optional[int] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
