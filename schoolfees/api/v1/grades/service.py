"""Grades: create, list, rename, delete guarded by dependent pupils and fee structures."""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.audit.service import record_audit
from schoolfees.auth.rbac import ensure_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import AuditAction
from schoolfees.core.exceptions import NotFoundError, ValidationError
from schoolfees.core.models import FeeStructure, Grade, Pupil
from schoolfees.db.session import store_call, transactional

from .schemas import GradeCreate, GradeResponse, GradeUpdate

logger = logging.getLogger(__name__)


def _to_response(g: Grade) -> GradeResponse:
    return GradeResponse(id=g.id, name=g.name, created_at=g.created_at, updated_at=g.updated_at)


async def _ensure_unique_name(db: AsyncSession, name: str) -> None:
    existing = (await db.execute(select(Grade.id).where(Grade.name == name))).scalar_one_or_none()
    if existing:
        raise ValidationError(f"Grade '{name}' already exists", 409)


@store_call
async def get_grade_or_404(db: AsyncSession, grade_id: UUID) -> Grade:
    grade = await db.get(Grade, grade_id)
    if not grade:
        raise NotFoundError("Grade not found")
    return grade


@store_call
async def create_grade(db: AsyncSession, payload: GradeCreate, actor: CurrentUser) -> GradeResponse:
    ensure_permission(actor, "grades", "create")
    name = payload.name.strip()
    if not name:
        raise ValidationError("Grade name is required")
    await _ensure_unique_name(db, name)
    async with transactional(db):
        grade = Grade(name=name)
        db.add(grade)
        await db.flush()
        await record_audit(db, AuditAction.CREATE, "grades", grade.id, actor, None, {"name": name})
    logger.info("Grade %s created (%s)", grade.id, name)
    return _to_response(grade)


@store_call
async def list_grades(db: AsyncSession) -> List[GradeResponse]:
    result = await db.execute(select(Grade).order_by(Grade.name))
    return [_to_response(g) for g in result.scalars().all()]


@store_call
async def rename_grade(
    db: AsyncSession,
    grade_id: UUID,
    payload: GradeUpdate,
    actor: CurrentUser,
) -> GradeResponse:
    """Rename is the only permitted change on a grade."""
    ensure_permission(actor, "grades", "update")
    grade = await get_grade_or_404(db, grade_id)
    name = payload.name.strip()
    if name == grade.name:
        return _to_response(grade)
    await _ensure_unique_name(db, name)
    async with transactional(db):
        old_name = grade.name
        grade.name = name
        await record_audit(db, AuditAction.UPDATE, "grades", grade.id, actor, {"name": old_name}, {"name": name})
    return _to_response(grade)


@store_call
async def delete_grade(db: AsyncSession, grade_id: UUID, actor: CurrentUser) -> None:
    ensure_permission(actor, "grades", "delete")
    grade = await get_grade_or_404(db, grade_id)
    pupil_count = (
        await db.execute(select(func.count(Pupil.id)).where(Pupil.grade_id == grade_id))
    ).scalar() or 0
    fee_count = (
        await db.execute(select(func.count(FeeStructure.id)).where(FeeStructure.grade_id == grade_id))
    ).scalar() or 0
    if pupil_count or fee_count:
        raise ValidationError(
            f"Grade has {pupil_count} pupil(s) and {fee_count} fee structure(s); it cannot be deleted",
            409,
        )
    async with transactional(db):
        await record_audit(db, AuditAction.DELETE, "grades", grade.id, actor, {"name": grade.name}, None)
        await db.delete(grade)
    logger.info("Grade %s deleted", grade_id)
