"""Payment ledger schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schoolfees.core.enums import PaymentState


class PaymentCreate(BaseModel):
    pupil_id: UUID
    term_number: int = Field(..., ge=1, le=3)
    year: int = Field(..., ge=2000, le=2100)
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[date] = None


class SoftDeleteRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class RejectDeletionRequest(BaseModel):
    rejection_reason: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    id: UUID
    pupil_id: UUID
    pupil_name: Optional[str] = None
    grade_name: Optional[str] = None
    term_number: int
    year: int
    amount: Decimal
    payment_date: date
    state: PaymentState
    is_counted: bool
    recorded_by: UUID
    recorded_at: datetime
    deletion_reason: Optional[str] = None
    deletion_requested_by: Optional[UUID] = None
    deletion_requested_at: Optional[datetime] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
