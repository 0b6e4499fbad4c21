import os
from collections.abc import AsyncGenerator
from datetime import date, datetime, time, timedelta
from uuid import uuid4

# Point the app at a throwaway database before it is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_clinic_portal.db"
os.environ["CACHE_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "console"
os.environ["CLINIC_TIMEZONE"] = "UTC"

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Load remaining settings from .env without overriding the values above
load_dotenv()

from clinic_portal.core.clock import get_clock
from clinic_portal.core.security import create_access_token
from clinic_portal.database import create_engine_for_url, get_db
from clinic_portal.main import app
from clinic_portal.models import appointments, doctors, metadata, patients, symptom_scopes, users
from clinic_portal.schemas.appointments import CallerContext

# Monday, 08:00 clinic time
FROZEN_NOW = datetime(2026, 10, 19, 8, 0)
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
WEDNESDAY = date(2026, 10, 21)
FRIDAY = date(2026, 10, 23)
NEXT_MONDAY = date(2026, 10, 26)


class FrozenClock:
    """Clinic clock that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    """Frozen clinic clock starting on a Monday morning."""
    return FrozenClock(FROZEN_NOW)


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Per-test SQLite database with the full schema."""
    engine = create_engine_for_url(
        f"sqlite+aiosqlite:///{tmp_path / 'clinic_portal_test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for tests that need independent connections."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, clock: FrozenClock) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _create_patient(db: AsyncSession, email: str, full_name: str) -> dict:
    user_id = uuid4()
    patient_id = uuid4()
    await db.execute(
        insert(users).values(
            id=user_id,
            email=email,
            full_name=full_name,
            role="patient",
            is_active=True,
        )
    )
    await db.execute(
        insert(patients).values(
            id=patient_id,
            user_id=user_id,
            date_of_birth=date(1990, 5, 15),
            gender="female",
            phone="+8801700000000",
        )
    )
    await db.commit()
    return {"user_id": user_id, "patient_id": patient_id, "email": email}


@pytest_asyncio.fixture
async def test_patient(db_session: AsyncSession) -> dict:
    """Create a patient account with its profile."""
    return await _create_patient(db_session, "patient@example.com", "Test Patient")


@pytest_asyncio.fixture
async def other_patient(db_session: AsyncSession) -> dict:
    """Create a second, unrelated patient."""
    return await _create_patient(db_session, "other@example.com", "Other Patient")


@pytest.fixture
def caller(test_patient: dict) -> CallerContext:
    return CallerContext(user_id=test_patient["user_id"], patient_id=test_patient["patient_id"])


@pytest.fixture
def other_caller(other_patient: dict) -> CallerContext:
    return CallerContext(user_id=other_patient["user_id"], patient_id=other_patient["patient_id"])


@pytest_asyncio.fixture
async def test_doctor(db_session: AsyncSession) -> dict:
    """Create a doctor working Monday, Wednesday and Friday mornings."""
    doctor_id = uuid4()
    data = {
        "id": doctor_id,
        "full_name": "Dr. Amina Rahman",
        "specialization": "General Practice",
        "qualification": "MBBS",
        "consultation_fee": 500,
        "available_days": ["Monday", "Wednesday", "Friday"],
        "available_hours": "09:00-12:00",
        "is_active": True,
    }
    await db_session.execute(insert(doctors).values(**data))
    await db_session.commit()
    return data


@pytest.fixture
def make_appointment(db_session: AsyncSession, clock: FrozenClock):
    """Factory inserting an appointment row directly into the ledger."""

    async def _make(
        patient: dict,
        doctor: dict,
        day: date,
        at: time,
        status: str = "pending",
        **extra,
    ):
        appointment_id = uuid4()
        values = {
            "id": appointment_id,
            "patient_id": patient["patient_id"],
            "doctor_id": doctor["id"],
            "appointment_date": day,
            "appointment_time": at,
            "status": status,
            "confirmation_deadline": clock() + timedelta(hours=24),
            "qr_code": f"APT-{appointment_id.hex[:16].upper()}",
            "reason": "Checkup",
            "created_at": clock(),
            "updated_at": clock(),
        }
        values.update(extra)
        await db_session.execute(insert(appointments).values(**values))
        await db_session.commit()
        return appointment_id

    return _make


@pytest.fixture
def make_scope(db_session: AsyncSession):
    """Factory inserting a symptom scope."""

    async def _make(symptom_name: str, **extra):
        scope_id = uuid4()
        values = {
            "id": scope_id,
            "symptom_name": symptom_name,
            "category": "General",
            "urgency_level": "routine",
            "is_active": True,
        }
        values.update(extra)
        await db_session.execute(insert(symptom_scopes).values(**values))
        await db_session.commit()
        return scope_id

    return _make


@pytest.fixture
def auth_headers(test_patient) -> dict:
    """Create authentication headers for testing protected endpoints."""
    token_data = {
        "sub": str(test_patient["user_id"]),
        "email": test_patient["email"],
    }
    token = create_access_token(data=token_data, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(other_patient) -> dict:
    token = create_access_token(
        data={"sub": str(other_patient["user_id"])},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}
