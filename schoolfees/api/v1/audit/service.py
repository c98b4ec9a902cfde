"""
Audit recorder for financial entities. Call on every mutation, inside the same
transaction as the mutation itself.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import AuditAction
from schoolfees.core.models import AuditLogEntry
from schoolfees.db.session import store_call


async def record_audit(
    db: AsyncSession,
    action_type: AuditAction,
    table_name: str,
    record_id: UUID,
    actor: Optional[CurrentUser],
    before: Optional[dict] = None,
    after: Optional[dict] = None,
) -> AuditLogEntry:
    """Append one audit log entry. Caller commits (see db.session.transactional)."""
    entry = AuditLogEntry(
        action_type=action_type.value,
        table_name=table_name,
        record_id=record_id,
        actor_id=actor.id if actor else None,
        actor_role=actor.role.value if actor else None,
        before_snapshot=before,
        after_snapshot=after,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


@store_call
async def list_audit_entries(
    db: AsyncSession,
    table_name: Optional[str] = None,
    record_id: Optional[UUID] = None,
    limit: int = 100,
) -> List[AuditLogEntry]:
    """Newest first."""
    stmt = select(AuditLogEntry)
    if table_name is not None:
        stmt = stmt.where(AuditLogEntry.table_name == table_name)
    if record_id is not None:
        stmt = stmt.where(AuditLogEntry.record_id == record_id)
    stmt = stmt.order_by(AuditLogEntry.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
