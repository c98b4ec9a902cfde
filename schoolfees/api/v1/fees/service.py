"""
Fee catalog: resolve the fee owed per (grade, term, year) and maintain fee structures.

At most one structure per key is active. Replacing or reactivating a structure
deactivates the current one in the same transaction, so readers never see two
(or zero, mid-swap) active structures for a key.
"""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.audit.service import record_audit
from schoolfees.auth.rbac import ensure_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import AuditAction
from schoolfees.core.exceptions import NotFoundError, ValidationError
from schoolfees.core.models import FeeStructure, Grade
from schoolfees.db.session import store_call, transactional

from .schemas import FeeStructureResponse, FeeStructureUpsert

logger = logging.getLogger(__name__)

VALID_TERMS = (1, 2, 3)
MIN_YEAR = 2000
MAX_YEAR = 2100


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def validate_term_year(term_number: int, year: int) -> None:
    if term_number not in VALID_TERMS:
        raise ValidationError("term_number must be 1, 2 or 3")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")


def _to_response(fs: FeeStructure, grade_name: Optional[str] = None) -> FeeStructureResponse:
    return FeeStructureResponse(
        id=fs.id,
        grade_id=fs.grade_id,
        grade_name=grade_name,
        term_number=fs.term_number,
        year=fs.year,
        amount=_to_decimal(fs.amount),
        is_active=fs.is_active,
        created_at=fs.created_at,
        updated_at=fs.updated_at,
    )


def _snapshot(fs: FeeStructure) -> dict:
    return {
        "grade_id": str(fs.grade_id),
        "term_number": fs.term_number,
        "year": fs.year,
        "amount": str(fs.amount),
        "is_active": bool(fs.is_active),
    }


@store_call
async def find_active_fee(
    db: AsyncSession,
    grade_id: UUID,
    term_number: int,
    year: int,
    for_update: bool = False,
) -> Optional[FeeStructure]:
    stmt = select(FeeStructure).where(
        FeeStructure.grade_id == grade_id,
        FeeStructure.term_number == term_number,
        FeeStructure.year == year,
        FeeStructure.is_active.is_(True),
    )
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


@store_call
async def resolve_fee(
    db: AsyncSession,
    grade_id: UUID,
    term_number: int,
    year: int,
) -> FeeStructureResponse:
    """Active fee for the key. NotFoundError means no fee is configured, which is not a zero fee."""
    validate_term_year(term_number, year)
    fs = await find_active_fee(db, grade_id, term_number, year)
    if not fs:
        raise NotFoundError(f"No active fee structure for grade {grade_id}, term {term_number}, {year}")
    return _to_response(fs)


async def _deactivate(db: AsyncSession, fs: FeeStructure, actor: CurrentUser) -> None:
    before = _snapshot(fs)
    fs.is_active = False
    await db.flush()
    await record_audit(db, AuditAction.DEACTIVATE, "fee_structures", fs.id, actor, before, _snapshot(fs))


@store_call
async def upsert_fee_structure(
    db: AsyncSession,
    payload: FeeStructureUpsert,
    actor: CurrentUser,
) -> FeeStructureResponse:
    """Make `payload.amount` the active fee for the key; the previous structure is kept, inactive."""
    ensure_permission(actor, "fees", "create")
    validate_term_year(payload.term_number, payload.year)
    amount = _to_decimal(payload.amount)
    if amount < 0:
        raise ValidationError("Fee amount cannot be negative")
    if not await db.get(Grade, payload.grade_id):
        raise ValidationError("Invalid grade")

    async with transactional(db):
        current = await find_active_fee(db, payload.grade_id, payload.term_number, payload.year, for_update=True)
        if current is not None and _to_decimal(current.amount) == amount:
            return _to_response(current)
        if current is not None:
            await _deactivate(db, current, actor)
        fs = FeeStructure(
            grade_id=payload.grade_id,
            term_number=payload.term_number,
            year=payload.year,
            amount=amount,
            is_active=True,
            created_by=actor.id,
        )
        db.add(fs)
        await db.flush()
        await record_audit(db, AuditAction.CREATE, "fee_structures", fs.id, actor, None, _snapshot(fs))

    logger.info(
        "Fee structure %s active for grade %s term %s/%s: %s",
        fs.id, fs.grade_id, fs.term_number, fs.year, amount,
    )
    return _to_response(fs)


@store_call
async def set_fee_structure_active(
    db: AsyncSession,
    fee_structure_id: UUID,
    is_active: bool,
    actor: CurrentUser,
) -> FeeStructureResponse:
    """Toggle a structure. Activating one first deactivates whichever structure holds its key."""
    ensure_permission(actor, "fees", "activate")
    async with transactional(db):
        fs = (
            await db.execute(
                select(FeeStructure)
                .where(FeeStructure.id == fee_structure_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if not fs:
            raise NotFoundError("Fee structure not found")
        if bool(fs.is_active) == is_active:
            return _to_response(fs)

        if is_active:
            conflicting = await find_active_fee(db, fs.grade_id, fs.term_number, fs.year, for_update=True)
            if conflicting is not None:
                await _deactivate(db, conflicting, actor)
            before = _snapshot(fs)
            fs.is_active = True
            await db.flush()
            await record_audit(db, AuditAction.ACTIVATE, "fee_structures", fs.id, actor, before, _snapshot(fs))
        else:
            await _deactivate(db, fs, actor)

    logger.info("Fee structure %s is_active=%s", fs.id, is_active)
    return _to_response(fs)


@store_call
async def list_fee_structures(
    db: AsyncSession,
    grade_id: Optional[UUID] = None,
    term_number: Optional[int] = None,
    year: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> List[FeeStructureResponse]:
    stmt = select(FeeStructure, Grade.name).join(Grade, FeeStructure.grade_id == Grade.id)
    if grade_id is not None:
        stmt = stmt.where(FeeStructure.grade_id == grade_id)
    if term_number is not None:
        stmt = stmt.where(FeeStructure.term_number == term_number)
    if year is not None:
        stmt = stmt.where(FeeStructure.year == year)
    if is_active is not None:
        stmt = stmt.where(FeeStructure.is_active.is_(is_active))
    stmt = stmt.order_by(FeeStructure.year.desc(), FeeStructure.term_number, Grade.name, FeeStructure.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(fs, grade_name) for fs, grade_name in result.all()]
