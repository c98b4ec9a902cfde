"""Pupil enrolled in a grade. Payments are recorded against pupils."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from schoolfees.core.enums import PupilStatus
from schoolfees.core.clock import utcnow
from schoolfees.db.session import Base


class Pupil(Base):
    __tablename__ = "pupils"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active','inactive','graduated','withdrawn')",
            name="chk_pupil_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=False, index=True)
    grade_id = Column(UUID(as_uuid=True), ForeignKey("grades.id", ondelete="RESTRICT"), nullable=False, index=True)
    parent_id = Column(UUID(as_uuid=True), ForeignKey("parents.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default=PupilStatus.ACTIVE.value)
    enrolled_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    grade = relationship("Grade", foreign_keys=[grade_id])
    parent = relationship("Parent", foreign_keys=[parent_id])
