import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from schoolfees.api.v1.audit.service import list_audit_entries
from schoolfees.api.v1.fees import service as fee_service
from schoolfees.api.v1.fees.schemas import FeeStructureUpsert
from schoolfees.core.enums import AuditAction
from schoolfees.core.exceptions import NotFoundError, ValidationError
from schoolfees.core.models import FeeStructure


@pytest.fixture()
async def grade(make_grade):
    return await make_grade("Grade 7")


async def _active_count(db, grade_id) -> int:
    result = await db.execute(
        select(func.count(FeeStructure.id)).where(
            FeeStructure.grade_id == grade_id,
            FeeStructure.term_number == 1,
            FeeStructure.year == 2024,
            FeeStructure.is_active.is_(True),
        )
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_resolve_without_structure_is_not_found(db_session, grade) -> None:
    with pytest.raises(NotFoundError):
        await fee_service.resolve_fee(db_session, grade.id, 1, 2024)


@pytest.mark.asyncio
async def test_zero_fee_resolves(db_session, grade, make_fee) -> None:
    await make_fee(grade.id, "0")
    fee = await fee_service.resolve_fee(db_session, grade.id, 1, 2024)
    assert fee.amount == Decimal("0")


@pytest.mark.asyncio
async def test_upsert_replaces_active_structure(db_session, grade, make_fee) -> None:
    first = await make_fee(grade.id, "500")
    second = await make_fee(grade.id, "650")

    assert second.id != first.id
    assert await _active_count(db_session, grade.id) == 1
    resolved = await fee_service.resolve_fee(db_session, grade.id, 1, 2024)
    assert resolved.id == second.id
    assert resolved.amount == Decimal("650")

    history = await fee_service.list_fee_structures(db_session, grade_id=grade.id, is_active=False)
    assert [fs.id for fs in history] == [first.id]

    entries = await list_audit_entries(db_session, table_name="fee_structures", record_id=first.id)
    assert sorted(e.action_type for e in entries) == sorted([AuditAction.CREATE.value, AuditAction.DEACTIVATE.value])


@pytest.mark.asyncio
async def test_upsert_same_amount_is_a_no_op(db_session, grade, make_fee) -> None:
    first = await make_fee(grade.id, "500")
    again = await make_fee(grade.id, "500.00")

    assert again.id == first.id
    total = (await db_session.execute(select(func.count(FeeStructure.id)))).scalar_one()
    assert total == 1


@pytest.mark.asyncio
async def test_keys_are_independent(db_session, grade, make_fee) -> None:
    await make_fee(grade.id, "500", term_number=1)
    await make_fee(grade.id, "550", term_number=2)
    await make_fee(grade.id, "600", term_number=1, year=2025)

    active = await fee_service.list_fee_structures(db_session, grade_id=grade.id, is_active=True)
    assert len(active) == 3


@pytest.mark.asyncio
async def test_reactivating_deactivates_conflicting(db_session, grade, make_fee, director) -> None:
    old = await make_fee(grade.id, "500")
    new = await make_fee(grade.id, "650")

    reactivated = await fee_service.set_fee_structure_active(db_session, old.id, True, director)
    assert reactivated.is_active is True
    assert await _active_count(db_session, grade.id) == 1
    resolved = await fee_service.resolve_fee(db_session, grade.id, 1, 2024)
    assert resolved.id == old.id

    entries = await list_audit_entries(db_session, table_name="fee_structures", record_id=new.id)
    assert AuditAction.DEACTIVATE.value in {e.action_type for e in entries}


@pytest.mark.asyncio
async def test_deactivating_leaves_no_fee(db_session, grade, make_fee, director) -> None:
    fee = await make_fee(grade.id, "500")
    await fee_service.set_fee_structure_active(db_session, fee.id, False, director)
    with pytest.raises(NotFoundError):
        await fee_service.resolve_fee(db_session, grade.id, 1, 2024)


@pytest.mark.asyncio
async def test_toggle_unknown_structure(db_session, director) -> None:
    with pytest.raises(NotFoundError):
        await fee_service.set_fee_structure_active(db_session, uuid.uuid4(), True, director)


@pytest.mark.asyncio
async def test_upsert_validation(db_session, grade, school_admin) -> None:
    negative = FeeStructureUpsert.model_construct(grade_id=grade.id, term_number=1, year=2024, amount=Decimal("-1"))
    with pytest.raises(ValidationError):
        await fee_service.upsert_fee_structure(db_session, negative, school_admin)

    unknown_grade = FeeStructureUpsert(grade_id=uuid.uuid4(), term_number=1, year=2024, amount=Decimal("10"))
    with pytest.raises(ValidationError):
        await fee_service.upsert_fee_structure(db_session, unknown_grade, school_admin)

    with pytest.raises(ValidationError):
        await fee_service.resolve_fee(db_session, grade.id, 0, 2024)
