from enum import Enum
from typing import Dict, FrozenSet


class SlotType(str, Enum):
    LESSON = "lesson"
    BREAK = "break"
    LUNCH = "lunch"
    ASSEMBLY = "assembly"
    OTHER = "other"


class TimetableType(str, Enum):
    MAIN = "main"
    BOARDING_EVENING = "boarding_evening"
    SATURDAY = "saturday"
    EXAM = "exam"


class TimetableStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"


# Legal status changes; archived is terminal.
TIMETABLE_TRANSITIONS: Dict[TimetableStatus, FrozenSet[TimetableStatus]] = {
    TimetableStatus.DRAFT: frozenset({TimetableStatus.PUBLISHED}),
    TimetableStatus.PUBLISHED: frozenset({TimetableStatus.ARCHIVED}),
    TimetableStatus.ARCHIVED: frozenset(),
}


def can_transition(current: TimetableStatus, target: TimetableStatus) -> bool:
    return target in TIMETABLE_TRANSITIONS[current]
