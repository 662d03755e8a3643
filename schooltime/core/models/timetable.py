"""Timetable: named weekly schedule container. At most one PUBLISHED per institution."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from schooltime.core.enums import TimetableStatus, TimetableType
from schooltime.db.session import Base

_PUBLISHED_ONLY = text(f"status = '{TimetableStatus.PUBLISHED.value}'")


class Timetable(Base):
    __tablename__ = "timetables"
    __table_args__ = (
        Index(
            "uq_timetables_one_published",
            "institution_id",
            unique=True,
            postgresql_where=_PUBLISHED_ONLY,
            sqlite_where=_PUBLISHED_ONLY,
        ),
        {"schema": "school"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    institution_id = Column(UUID(as_uuid=True), ForeignKey("core.institutions.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    timetable_type = Column(String(50), nullable=False, default=TimetableType.MAIN.value)
    term = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=TimetableStatus.DRAFT.value)
    effective_from = Column(Date, nullable=True)
    effective_to = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    institution = relationship("Institution")
    entries = relationship("TimetableEntry", back_populates="timetable", cascade="all, delete-orphan", passive_deletes=True)
