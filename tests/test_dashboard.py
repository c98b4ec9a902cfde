import uuid
from datetime import date
from decimal import Decimal

import pytest

from schoolfees.api.v1.balances import service as balance_service
from schoolfees.api.v1.balances.schemas import GradeSummary, PupilBalance
from schoolfees.api.v1.dashboard import service as dashboard_service
from schoolfees.api.v1.payments import service as payment_service
from schoolfees.core.enums import AlertSeverity, BalanceStatus, FinancialHealth, HeatBand

TODAY = date(2024, 4, 30)


def _balance(expected: str, collected: str, last_payment=None) -> PupilBalance:
    e, c = Decimal(expected), Decimal(collected)
    return PupilBalance(
        pupil_id=uuid.uuid4(),
        pupil_name="Pupil",
        grade_id=uuid.uuid4(),
        term_number=1,
        year=2024,
        expected=e,
        collected=c,
        outstanding=max(Decimal("0"), e - c),
        status=balance_service.classify_balance(e, c, True),
        last_payment_date=last_payment,
    )


def _grade(name: str, expected: str, collected: str) -> GradeSummary:
    return balance_service.summarize_grade(uuid.uuid4(), name, 1, 2024, [_balance(expected, collected)])


@pytest.mark.parametrize(
    "rate, band",
    [
        (100, HeatBand.EXCELLENT),
        (90, HeatBand.EXCELLENT),
        (89, HeatBand.GOOD),
        (70, HeatBand.GOOD),
        (50, HeatBand.MODERATE),
        (30, HeatBand.LOW),
        (29, HeatBand.CRITICAL),
        (0, HeatBand.CRITICAL),
    ],
)
def test_heat_band(rate, band) -> None:
    assert dashboard_service.heat_band(rate) == band


def test_financial_health_and_grade_rankings() -> None:
    grades = [
        _grade("Grade 1", "100", "95"),
        _grade("Grade 2", "100", "40"),
        _grade("Grade 3", "100", "85"),
        _grade("Grade 4", "0", "0"),
    ]
    summary = balance_service.summarize_school(1, 2024, grades)
    assert summary.collection_rate == 73

    health = dashboard_service.rate_financial_health(summary)
    assert health.rating == FinancialHealth.GOOD
    assert [g.grade_name for g in health.at_risk_grades] == ["Grade 2"]
    assert [g.grade_name for g in health.healthy_grades] == ["Grade 1", "Grade 3"]

    top = dashboard_service.top_performing_grades(grades, limit=2)
    assert [g.grade_name for g in top] == ["Grade 1", "Grade 3"]
    attention = dashboard_service.grades_needing_attention(grades)
    assert [g.grade_name for g in attention] == ["Grade 2"]


@pytest.mark.parametrize(
    "rate, rating",
    [(80, FinancialHealth.EXCELLENT), (60, FinancialHealth.GOOD), (40, FinancialHealth.FAIR), (39, FinancialHealth.POOR)],
)
def test_financial_health_thresholds(rate, rating) -> None:
    summary = balance_service.summarize_school(1, 2024, [_grade("Grade 1", "100", str(rate))])
    assert dashboard_service.rate_financial_health(summary).rating == rating


def test_risk_exposure_buckets() -> None:
    balances = [
        _balance("500", "100", date(2024, 4, 20)),  # 10 days
        _balance("500", "200", date(2024, 3, 1)),  # 60 days
        _balance("500", "300", date(2024, 2, 15)),  # 75 days
        _balance("500", "400", date(2023, 12, 1)),  # 151 days
        _balance("500", "0"),
        _balance("500", "500", date(2024, 1, 1)),  # settled
    ]
    exposure = dashboard_service.build_risk_exposure(balances, TODAY)
    assert exposure.days_30 == Decimal("400")
    assert exposure.days_60 == Decimal("300")
    assert exposure.days_90 == Decimal("200")
    assert exposure.over_90 == Decimal("100")
    assert exposure.never_paid == Decimal("500")
    assert exposure.total == Decimal("1500")


@pytest.mark.parametrize(
    "collected, severity",
    [("500", AlertSeverity.CRITICAL), ("700", AlertSeverity.HIGH), ("900", AlertSeverity.MEDIUM)],
)
def test_outstanding_alert_severity(collected, severity) -> None:
    balances = [_balance("1000", collected)]
    summary = balance_service.summarize_school(
        1, 2024, [balance_service.summarize_grade(uuid.uuid4(), "Grade 1", 1, 2024, balances)]
    )
    alerts = {a.code: a for a in dashboard_service.build_alerts(summary, balances)}
    assert alerts["outstanding_balances"].severity == severity


def test_alerts_for_low_collection_and_high_risk_pupils() -> None:
    balances = [_balance("1000", "100"), _balance("1000", "600")]
    summary = balance_service.summarize_school(
        1, 2024, [balance_service.summarize_grade(uuid.uuid4(), "Grade 1", 1, 2024, balances)]
    )
    alerts = {a.code: a for a in dashboard_service.build_alerts(summary, balances)}
    assert set(alerts) == {"outstanding_balances", "low_collection_rate", "high_risk_pupils"}
    assert alerts["low_collection_rate"].severity == AlertSeverity.HIGH
    assert "1 pupils" in alerts["high_risk_pupils"].description


def test_no_alerts_when_fully_collected() -> None:
    balances = [_balance("1000", "1000")]
    summary = balance_service.summarize_school(
        1, 2024, [balance_service.summarize_grade(uuid.uuid4(), "Grade 1", 1, 2024, balances)]
    )
    assert dashboard_service.build_alerts(summary, balances) == []


def _grade_with_pupils(name: str, pupils: int) -> GradeSummary:
    return balance_service.summarize_grade(
        uuid.uuid4(), name, 1, 2024, [_balance("100", "0") for _ in range(pupils)]
    )


def test_enrollment_stats() -> None:
    grades = [
        _grade_with_pupils("Grade 1", 3),
        _grade_with_pupils("Grade 2", 1),
        _grade_with_pupils("Grade 3", 3),
        _grade_with_pupils("Grade 4", 0),
    ]
    stats = dashboard_service.build_enrollment_stats(grades)

    assert stats.total_enrollment == 7
    assert stats.average_class_size == Decimal("1.75")
    assert [(g.grade_name, g.total_pupils) for g in stats.grades] == [
        ("Grade 1", 3), ("Grade 3", 3), ("Grade 2", 1), ("Grade 4", 0),
    ]
    assert stats.largest_grade.grade_name == "Grade 1"
    assert stats.smallest_grade.grade_name == "Grade 4"


def test_enrollment_stats_without_grades() -> None:
    stats = dashboard_service.build_enrollment_stats([])
    assert stats.total_enrollment == 0
    assert stats.average_class_size == Decimal("0")
    assert stats.largest_grade is None
    assert stats.smallest_grade is None
    assert stats.grades == []


@pytest.mark.asyncio
async def test_dashboard_reuses_balance_engine(
    db_session, make_grade, make_pupil, make_fee, make_payment, school_admin, director
) -> None:
    g1 = await make_grade("Grade 1")
    g2 = await make_grade("Grade 2")
    await make_fee(g1.id, "500")
    await make_fee(g2.id, "800")
    p1 = await make_pupil(g1.id, "One")
    p2 = await make_pupil(g2.id, "Two")
    await make_payment(p1.id, "500", payment_date=date(2024, 4, 25))
    await make_payment(p2.id, "100", payment_date=date(2024, 2, 10))
    wrong = await make_payment(p2.id, "300", payment_date=date(2024, 4, 28))
    await payment_service.soft_delete_payment(db_session, wrong.id, "Duplicate", school_admin)
    await payment_service.approve_deletion(db_session, wrong.id, director)

    dashboard = await dashboard_service.get_dashboard(db_session, 1, 2024, today=TODAY)
    school = await balance_service.compute_school_summary(db_session, 1, 2024, today=TODAY)

    assert dashboard.summary == school
    assert dashboard.summary.total_collected == Decimal("600")
    assert [(h.grade_name, h.band) for h in dashboard.heatmap] == [
        ("Grade 1", HeatBand.EXCELLENT),
        ("Grade 2", HeatBand.CRITICAL),
    ]
    assert dashboard.risk_exposure.days_90 == Decimal("700")
    assert dashboard.revenue_velocity.last_7_days == Decimal("500")
    assert dashboard.revenue_velocity.previous_7_days == Decimal("0")
    assert dashboard.revenue_velocity.change_percent is None
    assert dashboard.enrollment.total_enrollment == 2
    assert dashboard.enrollment.average_class_size == Decimal("1.00")


@pytest.mark.asyncio
async def test_monthly_collections_count_only_counted_payments(
    db_session, make_grade, make_pupil, make_payment, school_admin, director
) -> None:
    grade = await make_grade("Grade 1")
    pupil = await make_pupil(grade.id)
    await make_payment(pupil.id, "100", payment_date=date(2024, 1, 5))
    await make_payment(pupil.id, "150", payment_date=date(2024, 1, 20))
    await make_payment(pupil.id, "200", payment_date=date(2024, 3, 2))
    removed = await make_payment(pupil.id, "999", payment_date=date(2024, 3, 3))
    await make_payment(pupil.id, "50", payment_date=date(2023, 12, 30))
    await payment_service.soft_delete_payment(db_session, removed.id, "Duplicate", school_admin)
    await payment_service.approve_deletion(db_session, removed.id, director)

    trend = await dashboard_service.get_monthly_collections(db_session, 2024)
    assert len(trend) == 12
    assert trend[0].total_collected == Decimal("250")
    assert trend[0].payment_count == 2
    assert trend[1].total_collected == Decimal("0")
    assert trend[2].total_collected == Decimal("200")
    assert trend[2].payment_count == 1
