from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from schoolfees.api.v1.balances.schemas import SchoolSummary
from schoolfees.core.enums import AlertSeverity, FinancialHealth, HeatBand


class HeatmapItem(BaseModel):
    grade_id: UUID
    grade_name: str
    expected: Decimal
    collected: Decimal
    outstanding: Decimal
    collection_rate: int
    band: HeatBand


class GradeRanking(BaseModel):
    grade_id: UUID
    grade_name: str
    collection_rate: int
    total_outstanding: Decimal


class FinancialHealthReport(BaseModel):
    rating: FinancialHealth
    collection_rate: int
    at_risk_grades: List[GradeRanking]
    healthy_grades: List[GradeRanking]


class RiskExposure(BaseModel):
    """Outstanding balances grouped by days since the pupil's last counted payment."""

    days_30: Decimal = Decimal("0")
    days_60: Decimal = Decimal("0")
    days_90: Decimal = Decimal("0")
    over_90: Decimal = Decimal("0")
    never_paid: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class DashboardAlert(BaseModel):
    code: str
    severity: AlertSeverity
    title: str
    description: str


class MonthlyCollection(BaseModel):
    month: int
    total_collected: Decimal
    payment_count: int


class RevenueVelocity(BaseModel):
    last_7_days: Decimal
    previous_7_days: Decimal
    change_percent: Optional[int] = None


class GradeEnrollment(BaseModel):
    grade_id: UUID
    grade_name: str
    total_pupils: int


class EnrollmentStats(BaseModel):
    total_enrollment: int
    average_class_size: Decimal
    largest_grade: Optional[GradeEnrollment] = None
    smallest_grade: Optional[GradeEnrollment] = None
    grades: List[GradeEnrollment]


class DashboardResponse(BaseModel):
    summary: SchoolSummary
    heatmap: List[HeatmapItem]
    financial_health: FinancialHealthReport
    risk_exposure: RiskExposure
    alerts: List[DashboardAlert]
    top_grades: List[GradeRanking]
    grades_needing_attention: List[GradeRanking]
    revenue_velocity: RevenueVelocity
    enrollment: EnrollmentStats
