from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    action: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    performed_by: Optional[UUID] = None
    performed_by_role: Optional[str] = None
    timestamp: datetime
    remarks: Optional[str] = None

    class Config:
        from_attributes = True
