"""
Dashboard statistics. Everything here is a fold over the per-pupil balances produced by
the balances service; payment-level figures (monthly trend, velocity) only read counted
payments.
"""

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.balances.due_policy import DuePolicy
from schoolfees.api.v1.balances.schemas import GradeSummary, PupilBalance, SchoolSummary
from schoolfees.api.v1.balances.service import (
    group_into_grade_summaries,
    list_pupil_balances,
    summarize_school,
)
from schoolfees.api.v1.payments.lifecycle import COUNTED_STATE_VALUES
from schoolfees.core.enums import AlertSeverity, FinancialHealth, HeatBand
from schoolfees.core.exceptions import ValidationError
from schoolfees.core.models import Grade, Payment
from schoolfees.db.session import store_call

from .schemas import (
    DashboardAlert,
    DashboardResponse,
    EnrollmentStats,
    FinancialHealthReport,
    GradeEnrollment,
    GradeRanking,
    HeatmapItem,
    MonthlyCollection,
    RevenueVelocity,
    RiskExposure,
)

ZERO = Decimal("0")
AT_RISK_RATE = 50
HEALTHY_RATE = 80


def heat_band(rate: int) -> HeatBand:
    if rate >= 90:
        return HeatBand.EXCELLENT
    if rate >= 70:
        return HeatBand.GOOD
    if rate >= 50:
        return HeatBand.MODERATE
    if rate >= 30:
        return HeatBand.LOW
    return HeatBand.CRITICAL


def build_heatmap(grades: List[GradeSummary]) -> List[HeatmapItem]:
    return [
        HeatmapItem(
            grade_id=g.grade_id,
            grade_name=g.grade_name,
            expected=g.total_expected,
            collected=g.total_collected,
            outstanding=g.total_outstanding,
            collection_rate=g.collection_rate,
            band=heat_band(g.collection_rate),
        )
        for g in grades
    ]


def _ranking(g: GradeSummary) -> GradeRanking:
    return GradeRanking(
        grade_id=g.grade_id,
        grade_name=g.grade_name,
        collection_rate=g.collection_rate,
        total_outstanding=g.total_outstanding,
    )


def _billed(grades: List[GradeSummary]) -> List[GradeSummary]:
    # Grades with nothing owed have no meaningful rate to rank.
    return [g for g in grades if g.total_expected > 0]


def top_performing_grades(grades: List[GradeSummary], limit: int = 5) -> List[GradeRanking]:
    ranked = sorted(_billed(grades), key=lambda g: (-g.collection_rate, g.grade_name))
    return [_ranking(g) for g in ranked[:limit]]


def grades_needing_attention(grades: List[GradeSummary], threshold: int = AT_RISK_RATE) -> List[GradeRanking]:
    ranked = sorted(
        (g for g in _billed(grades) if g.collection_rate < threshold),
        key=lambda g: (g.collection_rate, g.grade_name),
    )
    return [_ranking(g) for g in ranked]


def build_enrollment_stats(grades: List[GradeSummary]) -> EnrollmentStats:
    """Pupil counts per grade, largest first; ties keep grade-name order."""
    ranked = sorted(
        (GradeEnrollment(grade_id=g.grade_id, grade_name=g.grade_name, total_pupils=g.total_pupils) for g in grades),
        key=lambda e: (-e.total_pupils, e.grade_name),
    )
    total = sum(e.total_pupils for e in ranked)
    if not ranked:
        return EnrollmentStats(total_enrollment=0, average_class_size=ZERO, grades=[])
    average = (Decimal(total) / len(ranked)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    smallest = min(ranked, key=lambda e: e.total_pupils)
    return EnrollmentStats(
        total_enrollment=total,
        average_class_size=average,
        largest_grade=ranked[0],
        smallest_grade=smallest,
        grades=ranked,
    )


def rate_financial_health(summary: SchoolSummary) -> FinancialHealthReport:
    rate = summary.collection_rate
    if rate >= 80:
        rating = FinancialHealth.EXCELLENT
    elif rate >= 60:
        rating = FinancialHealth.GOOD
    elif rate >= 40:
        rating = FinancialHealth.FAIR
    else:
        rating = FinancialHealth.POOR
    billed = _billed(summary.grades)
    return FinancialHealthReport(
        rating=rating,
        collection_rate=rate,
        at_risk_grades=[_ranking(g) for g in billed if g.collection_rate < AT_RISK_RATE],
        healthy_grades=[_ranking(g) for g in billed if g.collection_rate >= HEALTHY_RATE],
    )


def build_risk_exposure(balances: List[PupilBalance], today: Optional[date] = None) -> RiskExposure:
    today = today or date.today()
    exposure = RiskExposure()
    for b in balances:
        if b.outstanding <= 0:
            continue
        if b.last_payment_date is None:
            exposure.never_paid += b.outstanding
        else:
            age = (today - b.last_payment_date).days
            if age <= 30:
                exposure.days_30 += b.outstanding
            elif age <= 60:
                exposure.days_60 += b.outstanding
            elif age <= 90:
                exposure.days_90 += b.outstanding
            else:
                exposure.over_90 += b.outstanding
        exposure.total += b.outstanding
    return exposure


def _percent(part: Decimal, whole: Decimal) -> int:
    if whole <= 0:
        return 0
    return int((Decimal(100) * part / whole).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_alerts(summary: SchoolSummary, balances: List[PupilBalance]) -> List[DashboardAlert]:
    alerts: List[DashboardAlert] = []
    period = f"term {summary.term_number} {summary.year}"

    if summary.total_outstanding > 0:
        share = _percent(summary.total_outstanding, summary.total_expected)
        if share > 40:
            severity = AlertSeverity.CRITICAL
        elif share > 20:
            severity = AlertSeverity.HIGH
        else:
            severity = AlertSeverity.MEDIUM
        alerts.append(
            DashboardAlert(
                code="outstanding_balances",
                severity=severity,
                title="Outstanding balances require attention",
                description=f"{summary.total_outstanding} ({share}%) is still outstanding for {period}.",
            )
        )

    if summary.total_expected > 0 and summary.collection_rate < AT_RISK_RATE:
        alerts.append(
            DashboardAlert(
                code="low_collection_rate",
                severity=AlertSeverity.HIGH,
                title="Low collection rate detected",
                description=f"Only {summary.collection_rate}% of expected fees have been collected for {period}.",
            )
        )

    high_risk = [b for b in balances if b.expected > 0 and b.outstanding * 2 > b.expected]
    if high_risk:
        alerts.append(
            DashboardAlert(
                code="high_risk_pupils",
                severity=AlertSeverity.MEDIUM,
                title="High-risk pupils identified",
                description=f"{len(high_risk)} pupils owe more than half of their expected fees for {period}.",
            )
        )
    return alerts


@store_call
async def get_monthly_collections(db: AsyncSession, year: int) -> List[MonthlyCollection]:
    """Counted payments by calendar month of payment_date, all twelve months present."""
    if year < 2000 or year > 2100:
        raise ValidationError("Year must be between 2000 and 2100")
    month = extract("month", Payment.payment_date)
    result = await db.execute(
        select(month, func.coalesce(func.sum(Payment.amount), 0), func.count(Payment.id))
        .where(
            Payment.payment_date >= date(year, 1, 1),
            Payment.payment_date < date(year + 1, 1, 1),
            Payment.state.in_(COUNTED_STATE_VALUES),
        )
        .group_by(month)
    )
    by_month = {int(m): (Decimal(str(total)), count) for m, total, count in result.all()}
    trend = []
    for m in range(1, 13):
        total, count = by_month.get(m, (ZERO, 0))
        trend.append(MonthlyCollection(month=m, total_collected=total, payment_count=count))
    return trend


async def _collected_between(db: AsyncSession, start: date, end: date) -> Decimal:
    total = await db.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.payment_date >= start,
            Payment.payment_date <= end,
            Payment.state.in_(COUNTED_STATE_VALUES),
        )
    )
    return Decimal(str(total or 0))


@store_call
async def get_revenue_velocity(db: AsyncSession, today: Optional[date] = None) -> RevenueVelocity:
    """Money collected in the last 7 days against the 7 days before that."""
    today = today or date.today()
    last = await _collected_between(db, today - timedelta(days=6), today)
    previous = await _collected_between(db, today - timedelta(days=13), today - timedelta(days=7))
    change = _percent(last - previous, previous) if previous > 0 else None
    return RevenueVelocity(last_7_days=last, previous_7_days=previous, change_percent=change)


@store_call
async def get_dashboard(
    db: AsyncSession,
    term_number: int,
    year: int,
    today: Optional[date] = None,
    due_policy: Optional[DuePolicy] = None,
) -> DashboardResponse:
    balances = await list_pupil_balances(db, term_number, year, today=today, due_policy=due_policy)
    grades = list((await db.execute(select(Grade).order_by(Grade.name))).scalars().all())
    grade_summaries = group_into_grade_summaries(grades, balances, term_number, year)
    summary = summarize_school(term_number, year, grade_summaries)

    return DashboardResponse(
        summary=summary,
        heatmap=build_heatmap(grade_summaries),
        financial_health=rate_financial_health(summary),
        risk_exposure=build_risk_exposure(balances, today),
        alerts=build_alerts(summary, balances),
        top_grades=top_performing_grades(grade_summaries),
        grades_needing_attention=grades_needing_attention(grade_summaries),
        revenue_velocity=await get_revenue_velocity(db, today),
        enrollment=build_enrollment_stats(grade_summaries),
    )
