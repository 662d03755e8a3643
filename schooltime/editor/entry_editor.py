"""Editing session for a single timetable entry.

Runs the advisory clash check as the form changes and commits through an
EntryStore. The store's unique constraints have the final word: a conflict
raised at commit fails the attempt and is never retried here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from schooltime.api.v1.timetable_entries.clash import Placement
from schooltime.api.v1.timetable_entries.schemas import (
    ClashResult,
    TimetableEntryCreate,
    TimetableEntryResponse,
    TimetableEntryUpdate,
)
from schooltime.core.exceptions import SchedulingConflictError
from schooltime.core.logging import get_logger

from .store import EntryStore

logger = get_logger(__name__)

MSG_MISSING_FIELDS = "Please select subject and teacher"
MSG_CONFIRM_OVERRIDE = "There are scheduling conflicts. The save may fail. Continue anyway?"
MSG_SCHEDULING_CONFLICT = "Scheduling conflict: This teacher or room is already booked"
MSG_CHECK_FAILED = "Could not check for scheduling conflicts. Save anyway?"
MSG_SAVE_FAILED = "Failed to save entry"
MSG_CONFIRM_DELETE = "Are you sure you want to delete this entry?"
MSG_DELETE_FAILED = "Failed to delete entry"


class EditorState(str, Enum):
    EMPTY = "empty"
    EDITING = "editing"
    VALIDATING = "validating"
    READY = "ready"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    VALIDATION = "validation"
    CONFIRMATION_REQUIRED = "confirmation_required"
    SCHEDULING_CONFLICT = "scheduling_conflict"
    ERROR = "error"


@dataclass
class EditorOutcome:
    ok: bool
    kind: OutcomeKind
    message: str
    entry: Optional[TimetableEntryResponse] = None


class EditorStateError(Exception):
    """Operation not allowed in the editor's current state."""


EDITABLE_FIELDS = ("subject_id", "teacher_id", "room_id", "is_double_period", "notes")
# Fields that change what the placement can clash with.
CLASH_FIELDS = ("teacher_id", "room_id", "is_double_period")


class EntryEditor:
    """One dialog's worth of state: a grid cell (timetable, class, day, slot) and the form bound to it."""

    def __init__(self, store: EntryStore) -> None:
        self.store = store
        self._request_seq = 0
        self._reset()

    def _reset(self) -> None:
        self.state = EditorState.EMPTY
        self.entry_id: Optional[UUID] = None
        self.timetable_id: Optional[UUID] = None
        self.class_id: Optional[UUID] = None
        self.day_of_week: Optional[int] = None
        self.time_slot_id: Optional[UUID] = None
        self.subject_id: Optional[UUID] = None
        self.teacher_id: Optional[UUID] = None
        self.room_id: Optional[UUID] = None
        self.is_double_period = False
        self.notes: Optional[str] = None
        self.clash: Optional[ClashResult] = None
        self.check_failed = False
        self.last_error: Optional[str] = None

    def _require(self, *states: EditorState) -> None:
        if self.state not in states:
            raise EditorStateError(f"Not allowed while editor is {self.state.value}")

    @property
    def is_new(self) -> bool:
        return self.entry_id is None

    def open_for_create(self, timetable_id: UUID, class_id: UUID, day_of_week: int, time_slot_id: UUID) -> None:
        self._reset()
        self.timetable_id = timetable_id
        self.class_id = class_id
        self.day_of_week = day_of_week
        self.time_slot_id = time_slot_id
        self.state = EditorState.EDITING

    def open_for_edit(self, entry: TimetableEntryResponse) -> None:
        self._reset()
        self.entry_id = entry.id
        self.timetable_id = entry.timetable_id
        self.class_id = entry.class_id
        self.day_of_week = entry.day_of_week
        self.time_slot_id = entry.time_slot_id
        self.subject_id = entry.subject_id
        self.teacher_id = entry.teacher_id
        self.room_id = entry.room_id
        self.is_double_period = entry.is_double_period
        self.notes = entry.notes
        self.state = EditorState.EDITING

    def close(self) -> None:
        self._reset()

    async def set_field(self, name: str, value: Any) -> Optional[ClashResult]:
        """Change one form field; teacher, room and double-period changes re-run the clash check."""
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown field: {name}")
        self._require(EditorState.EDITING, EditorState.VALIDATING, EditorState.READY, EditorState.FAILED)
        setattr(self, name, value)
        self.last_error = None
        if name in CLASH_FIELDS:
            return await self.validate()
        if self.state == EditorState.FAILED:
            self.state = EditorState.EDITING
        return self.clash

    def placement(self) -> Placement:
        return Placement(
            timetable_id=self.timetable_id,
            day_of_week=self.day_of_week,
            time_slot_id=self.time_slot_id,
            teacher_id=self.teacher_id,
            room_id=self.room_id,
            class_id=self.class_id,
            id=self.entry_id,
            is_double_period=self.is_double_period,
        )

    async def validate(self) -> Optional[ClashResult]:
        """Run the clash check for the current form.

        Returns None when a newer check was issued while this one was in
        flight; only the latest response is applied.
        """
        self._require(EditorState.EDITING, EditorState.VALIDATING, EditorState.READY, EditorState.FAILED)
        self._request_seq += 1
        request_no = self._request_seq
        self.state = EditorState.VALIDATING

        try:
            result = await self.store.check_clash(self.placement())
        except Exception:
            if request_no != self._request_seq:
                return None
            logger.exception("clash_check_failed", entry_id=str(self.entry_id) if self.entry_id else None)
            self.clash = None
            self.check_failed = True
            self.last_error = MSG_CHECK_FAILED
            self.state = EditorState.EDITING
            return None

        if request_no != self._request_seq:
            logger.info("stale_clash_check_discarded", request_no=request_no, latest=self._request_seq)
            return None
        if self.check_failed:
            self.check_failed = False
            self.last_error = None
        self.clash = result
        self.state = EditorState.EDITING if result.has_clash else EditorState.READY
        return result

    async def submit(self, confirm_override: bool = False) -> EditorOutcome:
        self._require(EditorState.EDITING, EditorState.VALIDATING, EditorState.READY, EditorState.FAILED)
        if self.subject_id is None or self.teacher_id is None:
            return EditorOutcome(False, OutcomeKind.VALIDATION, MSG_MISSING_FIELDS)

        if self.clash is None or self.state == EditorState.VALIDATING:
            await self.validate()
        if self.check_failed:
            # No soft check ran; saving is left to the store's constraints.
            if not confirm_override:
                return EditorOutcome(False, OutcomeKind.CONFIRMATION_REQUIRED, MSG_CHECK_FAILED)
            logger.info("unchecked_save_confirmed", timetable_id=str(self.timetable_id), entry_id=str(self.entry_id))
        elif self.clash is not None and self.clash.has_clash:
            if not confirm_override:
                return EditorOutcome(False, OutcomeKind.CONFIRMATION_REQUIRED, MSG_CONFIRM_OVERRIDE)
            logger.info("clash_override_confirmed", timetable_id=str(self.timetable_id), entry_id=str(self.entry_id))
        self.state = EditorState.READY
        return await self._commit()

    async def _commit(self) -> EditorOutcome:
        self.state = EditorState.COMMITTING
        try:
            if self.is_new:
                entry = await self.store.create_entry(
                    TimetableEntryCreate(
                        timetable_id=self.timetable_id,
                        class_id=self.class_id,
                        subject_id=self.subject_id,
                        teacher_id=self.teacher_id,
                        time_slot_id=self.time_slot_id,
                        day_of_week=self.day_of_week,
                        room_id=self.room_id,
                        is_double_period=self.is_double_period,
                        notes=self.notes,
                    )
                )
            else:
                entry = await self.store.update_entry(
                    self.entry_id,
                    TimetableEntryUpdate(
                        subject_id=self.subject_id,
                        teacher_id=self.teacher_id,
                        room_id=self.room_id,
                        is_double_period=self.is_double_period,
                        notes=self.notes,
                    ),
                )
        except SchedulingConflictError as e:
            logger.warning("entry_commit_conflict", timetable_id=str(self.timetable_id), resource=e.resource)
            return self._fail(OutcomeKind.SCHEDULING_CONFLICT, MSG_SCHEDULING_CONFLICT)
        except Exception:
            logger.exception("entry_commit_failed", timetable_id=str(self.timetable_id))
            return self._fail(OutcomeKind.ERROR, MSG_SAVE_FAILED)

        if entry is None:
            return self._fail(OutcomeKind.ERROR, MSG_SAVE_FAILED)
        message = "Entry created" if self.is_new else "Entry updated"
        self.entry_id = entry.id
        self.state = EditorState.COMMITTED
        return EditorOutcome(True, OutcomeKind.SUCCESS, message, entry)

    def _fail(self, kind: OutcomeKind, message: str) -> EditorOutcome:
        self.state = EditorState.FAILED
        self.last_error = message
        return EditorOutcome(False, kind, message)

    async def delete(self, confirmed: bool = False) -> EditorOutcome:
        if self.is_new:
            raise EditorStateError("No saved entry to delete")
        self._require(EditorState.EDITING, EditorState.VALIDATING, EditorState.READY, EditorState.FAILED)
        if not confirmed:
            return EditorOutcome(False, OutcomeKind.CONFIRMATION_REQUIRED, MSG_CONFIRM_DELETE)
        self.state = EditorState.COMMITTING
        try:
            deleted = await self.store.delete_entry(self.entry_id)
        except Exception:
            logger.exception("entry_delete_failed", entry_id=str(self.entry_id))
            return self._fail(OutcomeKind.ERROR, MSG_DELETE_FAILED)
        if not deleted:
            return self._fail(OutcomeKind.ERROR, MSG_DELETE_FAILED)
        self.state = EditorState.COMMITTED
        return EditorOutcome(True, OutcomeKind.SUCCESS, "Entry deleted")
