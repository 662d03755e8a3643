import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from schooltime.db.session import Base


class Institution(Base):
    """
    Tenant (school) in the multi-tenant platform.

    Every timetabling row is scoped by institution_id. Institutions are created by
    onboarding; this service only references them.
    """

    __tablename__ = "institutions"
    __table_args__ = {"schema": "core"}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Human-readable public identifier; never used as FK
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
