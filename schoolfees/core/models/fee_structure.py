"""Fee structure: amount owed per grade per term per year."""

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from schoolfees.core.clock import utcnow
from schoolfees.db.session import Base


class FeeStructure(Base):
    """
    Fee per (grade, term, year). Superseded structures are deactivated, never deleted,
    so at most one row per key is active at a time.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="chk_fee_structure_amount"),
        CheckConstraint("term_number IN (1, 2, 3)", name="chk_fee_structure_term"),
        Index(
            "uq_fee_structure_active_key",
            "grade_id",
            "term_number",
            "year",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    grade_id = Column(UUID(as_uuid=True), ForeignKey("grades.id", ondelete="RESTRICT"), nullable=False, index=True)
    term_number = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    grade = relationship("Grade", foreign_keys=[grade_id])

    __mapper_args__ = {"version_id_col": version}
