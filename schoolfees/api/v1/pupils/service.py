"""Pupils: enrolment, lookup, status changes. Pupils are owned by a grade by reference only."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.audit.service import record_audit
from schoolfees.auth.rbac import ensure_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import AuditAction, PupilStatus
from schoolfees.core.exceptions import NotFoundError, ValidationError
from schoolfees.core.models import Grade, Parent, Payment, Pupil
from schoolfees.db.session import store_call, transactional

from .schemas import PupilCreate, PupilResponse, PupilUpdate

logger = logging.getLogger(__name__)


def _to_response(p: Pupil, grade_name: Optional[str] = None) -> PupilResponse:
    return PupilResponse(
        id=p.id,
        full_name=p.full_name,
        grade_id=p.grade_id,
        grade_name=grade_name,
        parent_id=p.parent_id,
        status=p.status,
        enrolled_at=p.enrolled_at,
    )


def _snapshot(p: Pupil) -> dict:
    return {
        "full_name": p.full_name,
        "grade_id": str(p.grade_id),
        "parent_id": str(p.parent_id) if p.parent_id else None,
        "status": p.status,
    }


async def _validate_refs(db: AsyncSession, grade_id: Optional[UUID], parent_id: Optional[UUID]) -> None:
    if grade_id is not None and not await db.get(Grade, grade_id):
        raise ValidationError("Invalid grade")
    if parent_id is not None and not await db.get(Parent, parent_id):
        raise ValidationError("Invalid parent")


@store_call
async def get_pupil(db: AsyncSession, pupil_id: UUID) -> PupilResponse:
    row = (
        await db.execute(
            select(Pupil, Grade.name)
            .join(Grade, Pupil.grade_id == Grade.id)
            .where(Pupil.id == pupil_id)
        )
    ).first()
    if not row:
        raise NotFoundError("Pupil not found")
    pupil, grade_name = row
    return _to_response(pupil, grade_name)


@store_call
async def create_pupil(db: AsyncSession, payload: PupilCreate, actor: CurrentUser) -> PupilResponse:
    ensure_permission(actor, "pupils", "create")
    full_name = payload.full_name.strip()
    if not full_name:
        raise ValidationError("Pupil name is required")
    await _validate_refs(db, payload.grade_id, payload.parent_id)
    async with transactional(db):
        pupil = Pupil(
            full_name=full_name,
            grade_id=payload.grade_id,
            parent_id=payload.parent_id,
            status=payload.status.value,
        )
        db.add(pupil)
        await db.flush()
        await record_audit(db, AuditAction.CREATE, "pupils", pupil.id, actor, None, _snapshot(pupil))
    logger.info("Pupil %s enrolled in grade %s", pupil.id, pupil.grade_id)
    return await get_pupil(db, pupil.id)


@store_call
async def list_pupils(
    db: AsyncSession,
    grade_id: Optional[UUID] = None,
    status_filter: Optional[PupilStatus] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[PupilResponse]:
    stmt = select(Pupil, Grade.name).join(Grade, Pupil.grade_id == Grade.id)
    if grade_id is not None:
        stmt = stmt.where(Pupil.grade_id == grade_id)
    if status_filter is not None:
        stmt = stmt.where(Pupil.status == status_filter.value)
    if search:
        stmt = stmt.where(Pupil.full_name.ilike(f"%{search.strip()}%"))
    stmt = stmt.order_by(Pupil.full_name).offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return [_to_response(p, grade_name) for p, grade_name in result.all()]


@store_call
async def update_pupil(
    db: AsyncSession,
    pupil_id: UUID,
    payload: PupilUpdate,
    actor: CurrentUser,
) -> PupilResponse:
    ensure_permission(actor, "pupils", "update")
    pupil = await db.get(Pupil, pupil_id)
    if not pupil:
        raise NotFoundError("Pupil not found")
    await _validate_refs(db, payload.grade_id, payload.parent_id)
    before = _snapshot(pupil)
    async with transactional(db):
        if payload.full_name is not None:
            pupil.full_name = payload.full_name.strip()
        if payload.grade_id is not None:
            pupil.grade_id = payload.grade_id
        if payload.parent_id is not None:
            pupil.parent_id = payload.parent_id
        if payload.status is not None:
            pupil.status = payload.status.value
        await record_audit(db, AuditAction.UPDATE, "pupils", pupil.id, actor, before, _snapshot(pupil))
    return await get_pupil(db, pupil_id)


@store_call
async def delete_pupil(db: AsyncSession, pupil_id: UUID, actor: CurrentUser) -> None:
    """Only pupils without any payment history may be removed; otherwise change their status."""
    ensure_permission(actor, "pupils", "delete")
    pupil = await db.get(Pupil, pupil_id)
    if not pupil:
        raise NotFoundError("Pupil not found")
    payment_count = (
        await db.execute(select(func.count(Payment.id)).where(Payment.pupil_id == pupil_id))
    ).scalar() or 0
    if payment_count:
        raise ValidationError("Pupil has payment history; set status to inactive or withdrawn instead", 409)
    async with transactional(db):
        await record_audit(db, AuditAction.DELETE, "pupils", pupil.id, actor, _snapshot(pupil), None)
        await db.delete(pupil)
