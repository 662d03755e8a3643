from typing import Any, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def detail(self) -> Any:
        """Payload for HTTPException.detail."""
        return self.message


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class SlotInUseError(ServiceError):
    """Time slot is still referenced by timetable entries."""

    def __init__(self, count: int, timetable_names: List[str]) -> None:
        names = ", ".join(timetable_names) if timetable_names else "unknown timetables"
        super().__init__(
            f"Time slot is used by {count} timetable entries ({names}). Remove or reassign them first.",
            status.HTTP_409_CONFLICT,
        )
        self.count = count
        self.timetable_names = timetable_names

    @property
    def detail(self) -> Any:
        return {"message": self.message, "count": self.count, "timetables": self.timetable_names}


class SchedulingConflictError(ServiceError):
    """The store rejected an entry because a teacher or room is already booked at that day/slot."""

    def __init__(self, resource: Optional[str] = None) -> None:
        if resource:
            message = f"Scheduling conflict: this {resource} is already booked at that day and time slot"
        else:
            message = "Scheduling conflict: this teacher or room is already booked"
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.resource = resource

    @property
    def detail(self) -> Any:
        return {"message": self.message, "resource": self.resource}


class InvalidTransitionError(ServiceError):
    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(
            f"Cannot change timetable status from {from_status} to {to_status}",
            status.HTTP_409_CONFLICT,
        )
        self.from_status = from_status
        self.to_status = to_status
