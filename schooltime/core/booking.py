"""Double-booking rules for timetable entries.

One table of rules feeds both the advisory clash check and the unique
constraints on ``timetable_entries``, so the two cannot drift apart.
"""

from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import UniqueConstraint

ENTRY_TABLE = "timetable_entries"

# (day_of_week, time_slot_id)
Cell = Tuple[int, UUID]


@dataclass(frozen=True)
class BookingRule:
    resource: str
    column: str
    enforced: bool

    @property
    def constraint_name(self) -> str:
        return f"uq_{ENTRY_TABLE}_{self.resource}_day_slot"

    @property
    def constraint_columns(self) -> Tuple[str, ...]:
        return ("timetable_id", self.column, "day_of_week", "time_slot_id")


TEACHER_RULE = BookingRule("teacher", "teacher_id", enforced=True)
ROOM_RULE = BookingRule("room", "room_id", enforced=True)
# Split/multi-room classes are legitimate, so a class clash only warns.
CLASS_RULE = BookingRule("class", "class_id", enforced=False)

BOOKING_RULES: Tuple[BookingRule, ...] = (TEACHER_RULE, ROOM_RULE, CLASS_RULE)


def entry_unique_constraints() -> List[UniqueConstraint]:
    return [
        UniqueConstraint(*rule.constraint_columns, name=rule.constraint_name)
        for rule in BOOKING_RULES
        if rule.enforced
    ]


def occupied_cells(day_of_week: int, time_slot_id: UUID, following_slot_id: Optional[UUID]) -> FrozenSet[Cell]:
    """Cells held by a placement: its own slot, plus the following slot for a double period."""
    cells = {(day_of_week, time_slot_id)}
    if following_slot_id is not None:
        cells.add((day_of_week, following_slot_id))
    return frozenset(cells)


def clashes_on(rule: BookingRule, placement: Any, other: Any) -> bool:
    """True when ``other`` books the same resource as ``placement`` within one timetable.

    Both arguments only need ``id``, ``timetable_id`` and the rule's column. Cell
    overlap is decided by the caller (see ``occupied_cells``).
    """
    if placement.id is not None and placement.id == other.id:
        return False
    if placement.timetable_id != other.timetable_id:
        return False
    value = getattr(placement, rule.column)
    return value is not None and value == getattr(other, rule.column)


def rule_for_violation(message: str, rules: Iterable[BookingRule] = BOOKING_RULES) -> Optional[BookingRule]:
    """Map a store integrity error message to the rule it violated.

    PostgreSQL reports the constraint name; SQLite lists the constrained columns.
    """
    enforced = [r for r in rules if r.enforced]
    for rule in enforced:
        if rule.constraint_name in message:
            return rule
    for rule in enforced:
        if f"{ENTRY_TABLE}.{rule.column}" in message:
            return rule
    return None
