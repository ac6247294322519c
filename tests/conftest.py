import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from schoolfees.core.config import settings
from schoolfees.core.enums import StudentStatus
from schoolfees.core.models import AcademicYear, FeeConfiguration, SchoolClass, Student
from schoolfees.db.session import Base, get_db
from schoolfees.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_ID = uuid.uuid4()
ACCOUNTANT_ID = uuid.uuid4()
TEACHER_ID = uuid.uuid4()


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; one shared connection so every session sees the same tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

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

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _auth_headers(user_id: uuid.UUID, role: str) -> Dict[str, str]:
    """Bearer header with a token shaped like the identity service's."""
    claims = {
        "sub": str(user_id),
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
    }
    token = jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return _auth_headers(ADMIN_ID, "admin")


@pytest.fixture()
def accountant_headers() -> Dict[str, str]:
    return _auth_headers(ACCOUNTANT_ID, "accountant")


@pytest.fixture()
def teacher_headers() -> Dict[str, str]:
    return _auth_headers(TEACHER_ID, "teacher")


@pytest.fixture()
async def academic_year(db_session: AsyncSession) -> AcademicYear:
    ay = AcademicYear(
        name="2024-2025",
        start_date=date(2024, 4, 1),
        end_date=date(2025, 3, 31),
        is_active=True,
        promotion_done=False,
    )
    db_session.add(ay)
    await db_session.commit()
    return ay


@pytest.fixture()
async def school_class(db_session: AsyncSession, academic_year: AcademicYear) -> SchoolClass:
    cl = SchoolClass(name="Class 5", section="A", grade=5, academic_year_id=academic_year.id, capacity=40)
    db_session.add(cl)
    await db_session.commit()
    return cl


async def make_student(
    db: AsyncSession,
    school_class: SchoolClass,
    number: int = 1,
    status: str = StudentStatus.ACTIVE.value,
) -> Student:
    """Insert a student directly, bypassing the creation service and its fee trigger."""
    student = Student(
        admission_number=f"ADM-2024-{number:04d}",
        first_name="Student",
        last_name=str(number),
        admission_date=date(2024, 4, 1),
        current_class_id=school_class.id,
        current_academic_year_id=school_class.academic_year_id,
        status=status,
    )
    db.add(student)
    await db.commit()
    return student


@pytest.fixture()
async def student(db_session: AsyncSession, school_class: SchoolClass) -> Student:
    return await make_student(db_session, school_class)


@pytest.fixture()
async def fee_configuration(
    db_session: AsyncSession,
    academic_year: AcademicYear,
    school_class: SchoolClass,
) -> FeeConfiguration:
    """1500 monthly tuition and a single 500 First Term exam: 13 installments, 18500 total."""
    cfg = FeeConfiguration(
        academic_year_id=academic_year.id,
        class_id=school_class.id,
        tuition_fee=Decimal("1500"),
        exam_fees=[{"name": "First Term", "amount": "500"}],
        other_fees=[],
        is_active=True,
    )
    db_session.add(cfg)
    await db_session.commit()
    return cfg


@pytest.fixture()
def student_factory(db_session: AsyncSession, school_class: SchoolClass):
    async def _make(number: int, status: str = StudentStatus.ACTIVE.value) -> Student:
        return await make_student(db_session, school_class, number=number, status=status)

    return _make
