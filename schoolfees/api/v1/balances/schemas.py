"""Balance reconciliation schemas. All values are derived on read, never stored."""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from schoolfees.core.enums import BalanceStatus


class PupilBalance(BaseModel):
    pupil_id: UUID
    pupil_name: str
    grade_id: UUID
    grade_name: Optional[str] = None
    term_number: int
    year: int
    fee_structure_id: Optional[UUID] = None
    expected: Decimal
    collected: Decimal
    outstanding: Decimal
    # Money received for a term/year that has no fee structure configured.
    unallocated: Decimal = Decimal("0")
    status: BalanceStatus
    last_payment_date: Optional[date] = None


class GradeSummary(BaseModel):
    grade_id: UUID
    grade_name: str
    term_number: int
    year: int
    total_pupils: int
    total_expected: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    collection_rate: int
    paid_pupils: int = 0
    partial_pupils: int = 0
    unpaid_pupils: int = 0
    overdue_pupils: int = 0
    not_applicable_pupils: int = 0


class SchoolSummary(BaseModel):
    term_number: int
    year: int
    total_grades: int
    total_pupils: int
    total_expected: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    collection_rate: int
    paid_pupils: int = 0
    partial_pupils: int = 0
    unpaid_pupils: int = 0
    overdue_pupils: int = 0
    not_applicable_pupils: int = 0
    average_payment_per_pupil: Decimal = Decimal("0")
    grades: List[GradeSummary]
