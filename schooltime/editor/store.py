"""Entry store seam used by the editor; the default implementation runs the service layer on one session."""

from typing import Optional, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from schooltime.api.v1.timetable_entries import service
from schooltime.api.v1.timetable_entries.clash import Placement, check_clash
from schooltime.api.v1.timetable_entries.schemas import (
    ClashResult,
    TimetableEntryCreate,
    TimetableEntryResponse,
    TimetableEntryUpdate,
)
from schooltime.auth.schemas import CurrentUser


class EntryStore(Protocol):
    async def check_clash(self, placement: Placement) -> ClashResult: ...

    async def create_entry(self, payload: TimetableEntryCreate) -> TimetableEntryResponse: ...

    async def update_entry(self, entry_id: UUID, payload: TimetableEntryUpdate) -> Optional[TimetableEntryResponse]: ...

    async def delete_entry(self, entry_id: UUID) -> bool: ...


class SessionEntryStore:
    def __init__(self, db: AsyncSession, institution_id: UUID, current_user: Optional[CurrentUser] = None) -> None:
        self.db = db
        self.institution_id = institution_id
        self.current_user = current_user

    async def check_clash(self, placement: Placement) -> ClashResult:
        return await check_clash(self.db, self.institution_id, placement)

    async def create_entry(self, payload: TimetableEntryCreate) -> TimetableEntryResponse:
        return await service.create_entry(self.db, self.institution_id, payload, self.current_user)

    async def update_entry(self, entry_id: UUID, payload: TimetableEntryUpdate) -> Optional[TimetableEntryResponse]:
        return await service.update_entry(self.db, self.institution_id, entry_id, payload, self.current_user)

    async def delete_entry(self, entry_id: UUID) -> bool:
        return await service.delete_entry(self.db, self.institution_id, entry_id, self.current_user)
