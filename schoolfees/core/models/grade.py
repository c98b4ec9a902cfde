"""School grades (e.g. Grade 1, Grade 7). Pupils and fee structures reference a grade."""
import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from schoolfees.core.clock import utcnow
from schoolfees.db.session import Base


class Grade(Base):
    """Grade master. Only the name may change once pupils or fee structures reference it."""

    __tablename__ = "grades"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
