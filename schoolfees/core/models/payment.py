"""Payment against a pupil for one term/year. Supports partial payments and soft delete."""

import uuid
from datetime import date

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from schoolfees.core.enums import PaymentState
from schoolfees.core.clock import utcnow
from schoolfees.db.session import Base


class Payment(Base):
    """
    Money received for a pupil. Never physically deleted: a retracted payment moves to
    deletion_approved and stays in the table for the audit trail.
    """

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_payment_amount_positive"),
        CheckConstraint("term_number IN (1, 2, 3)", name="chk_payment_term"),
        CheckConstraint(
            "state IN ('active','pending_deletion','deletion_approved','deletion_rejected')",
            name="chk_payment_state",
        ),
        Index("ix_payment_pupil_term_year", "pupil_id", "term_number", "year"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pupil_id = Column(UUID(as_uuid=True), ForeignKey("pupils.id", ondelete="RESTRICT"), nullable=False)
    term_number = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    state = Column(String(30), nullable=False, default=PaymentState.ACTIVE.value, index=True)
    recorded_by = Column(UUID(as_uuid=True), nullable=False)
    recorded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Deletion workflow
    deletion_reason = Column(Text, nullable=True)
    deletion_requested_by = Column(UUID(as_uuid=True), nullable=True)
    deletion_requested_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(UUID(as_uuid=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    pupil = relationship("Pupil", foreign_keys=[pupil_id])

    __mapper_args__ = {"version_id_col": version}
