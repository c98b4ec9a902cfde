"""Audit log: immutable record of every mutation on financial entities."""

import uuid

from sqlalchemy import JSON, Column, DateTime, String, event
from sqlalchemy.dialects.postgresql import JSONB, UUID

from schoolfees.core.exceptions import InvalidStateError
from schoolfees.core.clock import utcnow
from schoolfees.db.session import Base


class AuditLogEntry(Base):
    """Append-only. Rows are never updated or deleted."""

    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action_type = Column(String(30), nullable=False)
    table_name = Column(String(50), nullable=False, index=True)
    record_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    actor_id = Column(UUID(as_uuid=True), nullable=True)
    actor_role = Column(String(30), nullable=True)
    before_snapshot = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    after_snapshot = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


@event.listens_for(AuditLogEntry, "before_update")
@event.listens_for(AuditLogEntry, "before_delete")
def _reject_audit_mutation(mapper, connection, target) -> None:
    raise InvalidStateError("Audit log entries are append-only")
