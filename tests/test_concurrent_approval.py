import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from schoolfees.api.v1.grades.schemas import GradeCreate
from schoolfees.api.v1.grades.service import create_grade
from schoolfees.api.v1.payments import service as payment_service
from schoolfees.api.v1.payments.schemas import PaymentCreate
from schoolfees.api.v1.pupils.schemas import PupilCreate
from schoolfees.api.v1.pupils.service import create_pupil
from schoolfees.core.exceptions import InvalidStateError
from schoolfees.core.models import AuditLogEntry, Payment
from schoolfees.db.session import Base


@pytest.fixture()
async def session_factory(tmp_path):
    """Separate connections to one database file, so two sessions really race."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 10},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_approvals_only_one_wins(session_factory, school_admin, director, super_admin) -> None:
    async with session_factory() as db:
        grade = await create_grade(db, GradeCreate(name="Grade 5"), school_admin)
        pupil = await create_pupil(db, PupilCreate(full_name="Bwalya Phiri", grade_id=grade.id), school_admin)
        payment = await payment_service.record_payment(
            db,
            PaymentCreate(pupil_id=pupil.id, term_number=1, year=2024, amount=Decimal("400")),
            school_admin,
        )
        await payment_service.soft_delete_payment(db, payment.id, "Entered twice", school_admin)

    async def approve(approver) -> str:
        async with session_factory() as db:
            try:
                await payment_service.approve_deletion(db, payment.id, approver)
            except InvalidStateError:
                return "InvalidStateError"
            return "ok"

    results = await asyncio.gather(approve(director), approve(super_admin))
    assert sorted(results) == ["InvalidStateError", "ok"]

    async with session_factory() as db:
        state = (await db.execute(select(Payment.state).where(Payment.id == payment.id))).scalar_one()
        audit_rows = (
            await db.execute(select(func.count(AuditLogEntry.id)).where(AuditLogEntry.record_id == payment.id))
        ).scalar_one()
    assert state == "deletion_approved"
    assert audit_rows == 3
