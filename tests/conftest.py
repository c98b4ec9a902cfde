import os
import uuid
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from schoolfees.api.v1.fees.schemas import FeeStructureResponse, FeeStructureUpsert
from schoolfees.api.v1.fees.service import upsert_fee_structure
from schoolfees.api.v1.grades.schemas import GradeCreate, GradeResponse
from schoolfees.api.v1.grades.service import create_grade
from schoolfees.api.v1.payments.schemas import PaymentCreate, PaymentResponse
from schoolfees.api.v1.payments.service import record_payment
from schoolfees.api.v1.pupils.schemas import PupilCreate, PupilResponse
from schoolfees.api.v1.pupils.service import create_pupil
from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core import models  # noqa: F401  (registers tables on Base.metadata)
from schoolfees.core.enums import AppRole, PupilStatus
from schoolfees.db.session import Base, get_db
from schoolfees.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; overrides the FastAPI session dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
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

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture()
def school_admin() -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), role=AppRole.SCHOOL_ADMIN)


@pytest.fixture()
def director() -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), role=AppRole.DIRECTOR)


@pytest.fixture()
def super_admin() -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), role=AppRole.SUPER_ADMIN)


@pytest.fixture()
def act_as() -> Callable[[CurrentUser], None]:
    """Make subsequent HTTP requests run as the given user."""

    def _act_as(user: CurrentUser) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return _act_as


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_grade(db_session: AsyncSession, school_admin: CurrentUser) -> Callable[..., Awaitable[GradeResponse]]:
    async def _make(name: str = "Grade 1") -> GradeResponse:
        return await create_grade(db_session, GradeCreate(name=name), school_admin)

    return _make


@pytest.fixture()
def make_pupil(db_session: AsyncSession, school_admin: CurrentUser) -> Callable[..., Awaitable[PupilResponse]]:
    async def _make(
        grade_id: uuid.UUID,
        full_name: str = "Chanda Mwale",
        status: PupilStatus = PupilStatus.ACTIVE,
    ) -> PupilResponse:
        return await create_pupil(
            db_session,
            PupilCreate(full_name=full_name, grade_id=grade_id, status=status),
            school_admin,
        )

    return _make


@pytest.fixture()
def make_fee(db_session: AsyncSession, school_admin: CurrentUser) -> Callable[..., Awaitable[FeeStructureResponse]]:
    async def _make(
        grade_id: uuid.UUID,
        amount: str = "500",
        term_number: int = 1,
        year: int = 2024,
    ) -> FeeStructureResponse:
        payload = FeeStructureUpsert(grade_id=grade_id, term_number=term_number, year=year, amount=Decimal(amount))
        return await upsert_fee_structure(db_session, payload, school_admin)

    return _make


@pytest.fixture()
def make_payment(db_session: AsyncSession, school_admin: CurrentUser) -> Callable[..., Awaitable[PaymentResponse]]:
    async def _make(
        pupil_id: uuid.UUID,
        amount: str = "500",
        term_number: int = 1,
        year: int = 2024,
        actor: Optional[CurrentUser] = None,
        **extra,
    ) -> PaymentResponse:
        payload = PaymentCreate(
            pupil_id=pupil_id,
            term_number=term_number,
            year=year,
            amount=Decimal(amount),
            **extra,
        )
        return await record_payment(db_session, payload, actor or school_admin)

    return _make
