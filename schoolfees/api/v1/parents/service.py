from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.audit.service import record_audit
from schoolfees.auth.rbac import ensure_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import AuditAction
from schoolfees.core.exceptions import ValidationError
from schoolfees.core.models import Parent
from schoolfees.db.session import store_call, transactional

from .schemas import ParentCreate, ParentResponse


@store_call
async def create_parent(db: AsyncSession, payload: ParentCreate, actor: CurrentUser) -> ParentResponse:
    ensure_permission(actor, "parents", "create")
    full_name = payload.full_name.strip()
    if not full_name:
        raise ValidationError("Parent name is required")
    async with transactional(db):
        parent = Parent(
            full_name=full_name,
            phone_number=(payload.phone_number or "").strip() or None,
            account_number=(payload.account_number or "").strip() or None,
        )
        db.add(parent)
        await db.flush()
        await record_audit(
            db, AuditAction.CREATE, "parents", parent.id, actor,
            None, {"full_name": full_name, "phone_number": parent.phone_number},
        )
    return ParentResponse.model_validate(parent)


@store_call
async def list_parents(db: AsyncSession, search: Optional[str] = None) -> List[ParentResponse]:
    stmt = select(Parent)
    if search:
        stmt = stmt.where(Parent.full_name.ilike(f"%{search.strip()}%"))
    stmt = stmt.order_by(Parent.full_name)
    result = await db.execute(stmt)
    return [ParentResponse.model_validate(p) for p in result.scalars().all()]
