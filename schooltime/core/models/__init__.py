from schooltime.core.models.institution import Institution
from schooltime.core.models.school_class import SchoolClass
from schooltime.core.models.subject import Subject
from schooltime.core.models.staff import Staff
from schooltime.core.models.room import Room
from schooltime.core.models.time_slot import TimeSlot
from schooltime.core.models.timetable import Timetable
from schooltime.core.models.timetable_entry import TimetableEntry
from schooltime.core.models.audit_log import AuditLog

__all__ = [
    "AuditLog",
    "Institution",
    "Room",
    "SchoolClass",
    "Staff",
    "Subject",
    "TimeSlot",
    "Timetable",
    "TimetableEntry",
]
