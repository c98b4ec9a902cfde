"""
Balance reconciliation: derive expected / collected / outstanding and a payment status
from fee structures and counted payments, per pupil, then fold pupils into grade and
school summaries.

Balances are recomputed from the store on every read. Grade and school figures are
sums of the per-pupil balances built by `build_pupil_balance`, never a separate query,
so dashboards and the ledger cannot disagree.
"""

from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.fees.service import validate_term_year
from schoolfees.api.v1.payments.lifecycle import COUNTED_STATE_VALUES
from schoolfees.core.enums import BalanceStatus, PupilStatus
from schoolfees.core.exceptions import NotFoundError
from schoolfees.core.models import FeeStructure, Grade, Payment, Pupil
from schoolfees.db.session import store_call

from .due_policy import DuePolicy, default_due_policy, is_past_due
from .schemas import GradeSummary, PupilBalance, SchoolSummary

ZERO = Decimal("0")


def _to_decimal(val) -> Decimal:
    if val is None:
        return ZERO
    return val if isinstance(val, Decimal) else Decimal(str(val))


def classify_balance(expected: Decimal, collected: Decimal, past_due: bool) -> BalanceStatus:
    if expected <= 0:
        return BalanceStatus.NOT_APPLICABLE
    if collected >= expected:
        return BalanceStatus.PAID
    if collected > 0:
        return BalanceStatus.PARTIAL
    return BalanceStatus.OVERDUE if past_due else BalanceStatus.UNPAID


def collection_rate(expected: Decimal, collected: Decimal) -> int:
    """Whole-number percentage, rounded half up. Nothing owed and nothing paid counts as 100."""
    if expected <= 0:
        return 100 if collected == 0 else 0
    rate = Decimal(100) * collected / expected
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_pupil_balance(
    pupil: Pupil,
    grade_name: Optional[str],
    fee: Optional[FeeStructure],
    received: Decimal,
    last_payment_date: Optional[date],
    term_number: int,
    year: int,
    past_due: bool,
) -> PupilBalance:
    """
    `received` is the sum of counted payments for the pupil/term/year. Without a fee
    structure nothing is owed; the money is reported as unallocated rather than collected.
    """
    if fee is None:
        expected, collected, unallocated = ZERO, ZERO, received
    else:
        expected, collected, unallocated = _to_decimal(fee.amount), received, ZERO
    outstanding = max(ZERO, expected - collected)
    return PupilBalance(
        pupil_id=pupil.id,
        pupil_name=pupil.full_name,
        grade_id=pupil.grade_id,
        grade_name=grade_name,
        term_number=term_number,
        year=year,
        fee_structure_id=fee.id if fee is not None else None,
        expected=expected,
        collected=collected,
        outstanding=outstanding,
        unallocated=unallocated,
        status=classify_balance(expected, collected, past_due),
        last_payment_date=last_payment_date,
    )


def _status_counts(balances: Iterable[PupilBalance]) -> Dict[str, int]:
    counts = {s: 0 for s in BalanceStatus}
    for b in balances:
        counts[b.status] += 1
    return {
        "paid_pupils": counts[BalanceStatus.PAID],
        "partial_pupils": counts[BalanceStatus.PARTIAL],
        "unpaid_pupils": counts[BalanceStatus.UNPAID],
        "overdue_pupils": counts[BalanceStatus.OVERDUE],
        "not_applicable_pupils": counts[BalanceStatus.NOT_APPLICABLE],
    }


def summarize_grade(
    grade_id: UUID,
    grade_name: str,
    term_number: int,
    year: int,
    balances: List[PupilBalance],
) -> GradeSummary:
    expected = sum((b.expected for b in balances), ZERO)
    collected = sum((b.collected for b in balances), ZERO)
    outstanding = sum((b.outstanding for b in balances), ZERO)
    return GradeSummary(
        grade_id=grade_id,
        grade_name=grade_name,
        term_number=term_number,
        year=year,
        total_pupils=len(balances),
        total_expected=expected,
        total_collected=collected,
        total_outstanding=outstanding,
        collection_rate=collection_rate(expected, collected),
        **_status_counts(balances),
    )


def summarize_school(term_number: int, year: int, grades: List[GradeSummary]) -> SchoolSummary:
    expected = sum((g.total_expected for g in grades), ZERO)
    collected = sum((g.total_collected for g in grades), ZERO)
    outstanding = sum((g.total_outstanding for g in grades), ZERO)
    pupils = sum(g.total_pupils for g in grades)
    counts = {
        key: sum(getattr(g, key) for g in grades)
        for key in ("paid_pupils", "partial_pupils", "unpaid_pupils", "overdue_pupils", "not_applicable_pupils")
    }
    average = (collected / pupils).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if pupils else ZERO
    return SchoolSummary(
        term_number=term_number,
        year=year,
        total_grades=len(grades),
        total_pupils=pupils,
        total_expected=expected,
        total_collected=collected,
        total_outstanding=outstanding,
        collection_rate=collection_rate(expected, collected),
        average_payment_per_pupil=average,
        grades=grades,
        **counts,
    )


async def _received_by_pupil(
    db: AsyncSession,
    pupil_ids: List[UUID],
    term_number: int,
    year: int,
) -> Dict[UUID, Tuple[Decimal, Optional[date]]]:
    if not pupil_ids:
        return {}
    result = await db.execute(
        select(
            Payment.pupil_id,
            func.coalesce(func.sum(Payment.amount), 0),
            func.max(Payment.payment_date),
        )
        .where(
            Payment.pupil_id.in_(pupil_ids),
            Payment.term_number == term_number,
            Payment.year == year,
            Payment.state.in_(COUNTED_STATE_VALUES),
        )
        .group_by(Payment.pupil_id)
    )
    return {pid: (_to_decimal(total), last) for pid, total, last in result.all()}


async def _active_fees_by_grade(
    db: AsyncSession,
    grade_ids: Iterable[UUID],
    term_number: int,
    year: int,
) -> Dict[UUID, FeeStructure]:
    grade_ids = list(set(grade_ids))
    if not grade_ids:
        return {}
    result = await db.execute(
        select(FeeStructure).where(
            FeeStructure.grade_id.in_(grade_ids),
            FeeStructure.term_number == term_number,
            FeeStructure.year == year,
            FeeStructure.is_active.is_(True),
        )
    )
    return {fs.grade_id: fs for fs in result.scalars().all()}


async def _load_balances(
    db: AsyncSession,
    term_number: int,
    year: int,
    grade_id: Optional[UUID] = None,
    pupil_id: Optional[UUID] = None,
    include_inactive: bool = False,
    today: Optional[date] = None,
    due_policy: Optional[DuePolicy] = None,
) -> List[PupilBalance]:
    stmt = select(Pupil, Grade.name).join(Grade, Pupil.grade_id == Grade.id)
    if grade_id is not None:
        stmt = stmt.where(Pupil.grade_id == grade_id)
    if pupil_id is not None:
        stmt = stmt.where(Pupil.id == pupil_id)
    if not include_inactive:
        stmt = stmt.where(Pupil.status == PupilStatus.ACTIVE.value)
    stmt = stmt.order_by(Grade.name, Pupil.full_name)
    rows = (await db.execute(stmt)).all()

    fees = await _active_fees_by_grade(db, (p.grade_id for p, _ in rows), term_number, year)
    received = await _received_by_pupil(db, [p.id for p, _ in rows], term_number, year)
    past_due = is_past_due(due_policy or default_due_policy(), term_number, year, today)

    balances = []
    for pupil, grade_name in rows:
        amount, last_payment = received.get(pupil.id, (ZERO, None))
        balances.append(
            build_pupil_balance(
                pupil, grade_name, fees.get(pupil.grade_id), amount, last_payment,
                term_number, year, past_due,
            )
        )
    return balances


@store_call
async def compute_pupil_balance(
    db: AsyncSession,
    pupil_id: UUID,
    term_number: int,
    year: int,
    today: Optional[date] = None,
    due_policy: Optional[DuePolicy] = None,
) -> PupilBalance:
    validate_term_year(term_number, year)
    balances = await _load_balances(
        db, term_number, year, pupil_id=pupil_id, include_inactive=True,
        today=today, due_policy=due_policy,
    )
    if not balances:
        raise NotFoundError("Pupil not found")
    return balances[0]


@store_call
async def list_pupil_balances(
    db: AsyncSession,
    term_number: int,
    year: int,
    grade_id: Optional[UUID] = None,
    status_filter: Optional[BalanceStatus] = None,
    include_inactive: bool = False,
    today: Optional[date] = None,
    due_policy: Optional[DuePolicy] = None,
) -> List[PupilBalance]:
    validate_term_year(term_number, year)
    balances = await _load_balances(
        db, term_number, year, grade_id=grade_id, include_inactive=include_inactive,
        today=today, due_policy=due_policy,
    )
    if status_filter is not None:
        balances = [b for b in balances if b.status == status_filter]
    return balances


@store_call
async def compute_grade_summary(
    db: AsyncSession,
    grade_id: UUID,
    term_number: int,
    year: int,
    include_inactive: bool = False,
    today: Optional[date] = None,
    due_policy: Optional[DuePolicy] = None,
) -> GradeSummary:
    validate_term_year(term_number, year)
    grade = await db.get(Grade, grade_id)
    if not grade:
        raise NotFoundError("Grade not found")
    balances = await _load_balances(
        db, term_number, year, grade_id=grade_id, include_inactive=include_inactive,
        today=today, due_policy=due_policy,
    )
    return summarize_grade(grade.id, grade.name, term_number, year, balances)


def group_into_grade_summaries(
    grades: List[Grade],
    balances: List[PupilBalance],
    term_number: int,
    year: int,
) -> List[GradeSummary]:
    by_grade: Dict[UUID, List[PupilBalance]] = defaultdict(list)
    for b in balances:
        by_grade[b.grade_id].append(b)
    return [summarize_grade(g.id, g.name, term_number, year, by_grade.get(g.id, [])) for g in grades]


@store_call
async def compute_school_summary(
    db: AsyncSession,
    term_number: int,
    year: int,
    include_inactive: bool = False,
    today: Optional[date] = None,
    due_policy: Optional[DuePolicy] = None,
) -> SchoolSummary:
    validate_term_year(term_number, year)
    grades = list((await db.execute(select(Grade).order_by(Grade.name))).scalars().all())
    balances = await _load_balances(
        db, term_number, year, include_inactive=include_inactive,
        today=today, due_policy=due_policy,
    )
    return summarize_school(term_number, year, group_into_grade_summaries(grades, balances, term_number, year))
