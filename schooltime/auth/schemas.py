from typing import Dict
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks.
    institution_id scopes every timetabling query.
    """

    id: UUID
    institution_id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]]
