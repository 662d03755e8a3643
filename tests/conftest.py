import os
from datetime import time
from types import SimpleNamespace
from typing import AsyncGenerator, Dict
from uuid import uuid4

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from schooltime.auth.schemas import CurrentUser
from schooltime.auth.security import create_access_token
from schooltime.core.models import (
    Institution,
    Room,
    SchoolClass,
    Staff,
    Subject,
    TimeSlot,
    Timetable,
    TimetableEntry,
)
from schooltime.db.session import Base, get_db
from schooltime.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite per test. school/core schemas collapse into the default schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {"school": None, "core": None}},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def fresh_session(engine: AsyncEngine, db_session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Second session on the same database with an empty identity map, as a new request would see it."""
    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """One school: two classes, subjects, teachers and rooms, a Monday-Friday day of four slots, a draft timetable."""
    institution = Institution(code="KHS001", name="Kilimani High School")
    db_session.add(institution)
    await db_session.flush()
    inst_id = institution.id

    form1 = SchoolClass(institution_id=inst_id, name="Form 1 East", level="Form 1", stream="East")
    form2 = SchoolClass(institution_id=inst_id, name="Form 2 West", level="Form 2", stream="West")
    maths = Subject(institution_id=inst_id, name="Mathematics", code="MAT")
    english = Subject(institution_id=inst_id, name="English", code="ENG")
    otieno = Staff(institution_id=inst_id, first_name="Grace", last_name="Otieno", employee_number="T001")
    kamau = Staff(institution_id=inst_id, first_name="Peter", last_name="Kamau", employee_number="T002")
    lab = Room(institution_id=inst_id, name="Lab 1", building="Science Block", room_type="lab", capacity=40)
    hall = Room(institution_id=inst_id, name="Main Hall", building="Admin Block", room_type="hall", capacity=300)
    period1 = TimeSlot(
        institution_id=inst_id, name="Period 1", start_time=time(8, 0), end_time=time(8, 40),
        slot_type="lesson", sequence_order=1,
    )
    period2 = TimeSlot(
        institution_id=inst_id, name="Period 2", start_time=time(8, 40), end_time=time(9, 20),
        slot_type="lesson", sequence_order=2,
    )
    tea_break = TimeSlot(
        institution_id=inst_id, name="Tea Break", start_time=time(9, 20), end_time=time(9, 40),
        slot_type="break", sequence_order=3,
    )
    period3 = TimeSlot(
        institution_id=inst_id, name="Period 3", start_time=time(9, 40), end_time=time(10, 20),
        slot_type="lesson", sequence_order=4,
    )
    timetable = Timetable(institution_id=inst_id, name="Term 1 Main", timetable_type="main", term="Term 1")
    db_session.add_all(
        [form1, form2, maths, english, otieno, kamau, lab, hall, period1, period2, tea_break, period3, timetable]
    )
    await db_session.commit()

    return SimpleNamespace(
        institution=institution,
        form1=form1,
        form2=form2,
        maths=maths,
        english=english,
        otieno=otieno,
        kamau=kamau,
        lab=lab,
        hall=hall,
        period1=period1,
        period2=period2,
        tea_break=tea_break,
        period3=period3,
        timetable=timetable,
    )


@pytest.fixture()
def current_user(seed: SimpleNamespace) -> CurrentUser:
    return CurrentUser(id=uuid4(), institution_id=seed.institution.id, role="SUPER_ADMIN", permissions={})


@pytest.fixture()
def auth_headers(current_user: CurrentUser) -> Dict[str, str]:
    token = create_access_token(
        subject={
            "sub": str(current_user.id),
            "institution_id": str(current_user.institution_id),
            "role": current_user.role,
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_entry(db_session: AsyncSession, seed: SimpleNamespace):
    """Insert an entry straight into the store (defaults: Form 1 maths with Otieno, Monday period 1)."""

    async def _make(**fields) -> TimetableEntry:
        values = dict(
            institution_id=seed.institution.id,
            timetable_id=seed.timetable.id,
            class_id=seed.form1.id,
            subject_id=seed.maths.id,
            teacher_id=seed.otieno.id,
            room_id=None,
            time_slot_id=seed.period1.id,
            day_of_week=1,
            is_double_period=False,
        )
        values.update(fields)
        entry = TimetableEntry(**values)
        db_session.add(entry)
        await db_session.commit()
        return entry

    return _make
