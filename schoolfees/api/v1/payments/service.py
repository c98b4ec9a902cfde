"""
Payment ledger: record payments and run the soft-delete / approval workflow.

Every state change and its audit entry commit in one transaction. Transitions lock the
payment row (and the version column catches writers on stores without row locks), so of
two concurrent approvals exactly one succeeds and the other gets InvalidStateError.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.api.v1.audit.service import record_audit
from schoolfees.api.v1.fees.service import validate_term_year
from schoolfees.auth.rbac import ensure_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.config import settings
from schoolfees.core.enums import AuditAction, PaymentAction, PaymentState
from schoolfees.core.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from schoolfees.core.models import Grade, Payment, Pupil
from schoolfees.db.session import store_call, transactional

from .lifecycle import AUDIT_ACTIONS, COUNTED_STATE_VALUES, is_counted, next_state
from .schemas import PaymentCreate, PaymentResponse

logger = logging.getLogger(__name__)


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _to_response(
    p: Payment,
    pupil_name: Optional[str] = None,
    grade_name: Optional[str] = None,
) -> PaymentResponse:
    state = PaymentState(p.state)
    return PaymentResponse(
        id=p.id,
        pupil_id=p.pupil_id,
        pupil_name=pupil_name,
        grade_name=grade_name,
        term_number=p.term_number,
        year=p.year,
        amount=_to_decimal(p.amount),
        payment_date=p.payment_date,
        state=state,
        is_counted=is_counted(state),
        recorded_by=p.recorded_by,
        recorded_at=p.recorded_at,
        deletion_reason=p.deletion_reason,
        deletion_requested_by=p.deletion_requested_by,
        deletion_requested_at=p.deletion_requested_at,
        reviewed_by=p.reviewed_by,
        reviewed_at=p.reviewed_at,
        rejection_reason=p.rejection_reason,
    )


def _snapshot(p: Payment) -> dict:
    return {
        "pupil_id": str(p.pupil_id),
        "term_number": p.term_number,
        "year": p.year,
        "amount": str(p.amount),
        "state": p.state,
        "deletion_reason": p.deletion_reason,
        "rejection_reason": p.rejection_reason,
    }


@store_call
async def record_payment(
    db: AsyncSession,
    payload: PaymentCreate,
    actor: CurrentUser,
) -> PaymentResponse:
    """Create an active payment for a pupil/term/year. Partial payments are allowed."""
    ensure_permission(actor, "payments", "create")
    amount = _to_decimal(payload.amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    validate_term_year(payload.term_number, payload.year)
    pupil = await db.get(Pupil, payload.pupil_id)
    if not pupil:
        raise ValidationError("Payment does not reference a known pupil")

    async with transactional(db):
        payment = Payment(
            pupil_id=payload.pupil_id,
            term_number=payload.term_number,
            year=payload.year,
            amount=amount,
            payment_date=payload.payment_date or date.today(),
            state=PaymentState.ACTIVE.value,
            recorded_by=actor.id,
            recorded_at=datetime.now(timezone.utc),
        )
        db.add(payment)
        await db.flush()
        await record_audit(db, AuditAction.CREATE, "payments", payment.id, actor, None, _snapshot(payment))

    logger.info(
        "Payment %s recorded for pupil %s term %s/%s: %s",
        payment.id, payment.pupil_id, payment.term_number, payment.year, amount,
    )
    return await get_payment(db, payment.id)


async def _get_payment_for_update(db: AsyncSession, payment_id: UUID) -> Payment:
    payment = (
        await db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


async def _apply_transition(
    db: AsyncSession,
    payment_id: UUID,
    action: PaymentAction,
    actor: CurrentUser,
    mutate: Callable[[Payment], None],
    guard: Optional[Callable[[Payment], None]] = None,
) -> PaymentResponse:
    async with transactional(db):
        payment = await _get_payment_for_update(db, payment_id)
        try:
            target = next_state(PaymentState(payment.state), action)
        except InvalidStateError:
            logger.warning("Rejected %s on payment %s in state %s", action.value, payment_id, payment.state)
            raise
        if guard is not None:
            guard(payment)
        before = _snapshot(payment)
        payment.state = target.value
        mutate(payment)
        await db.flush()
        await record_audit(db, AUDIT_ACTIONS[action], "payments", payment.id, actor, before, _snapshot(payment))

    logger.info("Payment %s: %s -> %s by %s", payment.id, before["state"], payment.state, actor.id)
    return await get_payment(db, payment.id)


@store_call
async def soft_delete_payment(
    db: AsyncSession,
    payment_id: UUID,
    reason: str,
    actor: CurrentUser,
) -> PaymentResponse:
    """Request deletion. The payment keeps counting towards balances until approved."""
    ensure_permission(actor, "payments", "soft_delete")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to delete a payment")

    def mutate(p: Payment) -> None:
        p.deletion_reason = reason
        p.deletion_requested_by = actor.id
        p.deletion_requested_at = datetime.now(timezone.utc)
        p.reviewed_by = None
        p.reviewed_at = None
        p.rejection_reason = None

    return await _apply_transition(db, payment_id, PaymentAction.SOFT_DELETE, actor, mutate)


def _segregation_guard(approver: CurrentUser) -> Callable[[Payment], None]:
    def guard(p: Payment) -> None:
        if not settings.enforce_segregation_of_duties:
            return
        if approver.id in (p.recorded_by, p.deletion_requested_by):
            raise PermissionDeniedError(
                "A payment deletion must be approved by someone other than the recorder or requester"
            )

    return guard


@store_call
async def approve_deletion(
    db: AsyncSession,
    payment_id: UUID,
    approver: CurrentUser,
) -> PaymentResponse:
    """Approve a pending deletion. From here on the payment is excluded from every balance."""
    ensure_permission(approver, "payments", "approve_delete")

    def mutate(p: Payment) -> None:
        p.reviewed_by = approver.id
        p.reviewed_at = datetime.now(timezone.utc)

    return await _apply_transition(
        db, payment_id, PaymentAction.APPROVE_DELETION, approver, mutate,
        guard=_segregation_guard(approver),
    )


@store_call
async def reject_deletion(
    db: AsyncSession,
    payment_id: UUID,
    rejection_reason: str,
    approver: CurrentUser,
) -> PaymentResponse:
    """Reject a pending deletion; the payment counts as active again and may be re-submitted."""
    ensure_permission(approver, "payments", "approve_delete")
    rejection_reason = (rejection_reason or "").strip()
    if not rejection_reason:
        raise ValidationError("A reason is required to reject a deletion request")

    def mutate(p: Payment) -> None:
        p.reviewed_by = approver.id
        p.reviewed_at = datetime.now(timezone.utc)
        p.rejection_reason = rejection_reason

    return await _apply_transition(db, payment_id, PaymentAction.REJECT_DELETION, approver, mutate)


def _with_pupil_and_grade():
    return (
        select(Payment, Pupil.full_name, Grade.name)
        .join(Pupil, Payment.pupil_id == Pupil.id)
        .join(Grade, Pupil.grade_id == Grade.id)
    )


@store_call
async def get_payment(db: AsyncSession, payment_id: UUID) -> PaymentResponse:
    row = (await db.execute(_with_pupil_and_grade().where(Payment.id == payment_id))).first()
    if not row:
        raise NotFoundError("Payment not found")
    payment, pupil_name, grade_name = row
    return _to_response(payment, pupil_name, grade_name)


@store_call
async def list_pending_deletions(db: AsyncSession) -> List[PaymentResponse]:
    """Approval queue, most recent request first."""
    stmt = (
        _with_pupil_and_grade()
        .where(Payment.state == PaymentState.PENDING_DELETION.value)
        .order_by(Payment.deletion_requested_at.desc())
    )
    result = await db.execute(stmt)
    return [_to_response(p, pn, gn) for p, pn, gn in result.all()]


@store_call
async def list_payments(
    db: AsyncSession,
    pupil_id: Optional[UUID] = None,
    term_number: Optional[int] = None,
    year: Optional[int] = None,
    state: Optional[PaymentState] = None,
    include_excluded: bool = False,
) -> List[PaymentResponse]:
    stmt = _with_pupil_and_grade()
    if pupil_id is not None:
        stmt = stmt.where(Payment.pupil_id == pupil_id)
    if term_number is not None:
        stmt = stmt.where(Payment.term_number == term_number)
    if year is not None:
        stmt = stmt.where(Payment.year == year)
    if state is not None:
        stmt = stmt.where(Payment.state == state.value)
    elif not include_excluded:
        stmt = stmt.where(Payment.state.in_(COUNTED_STATE_VALUES))
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.recorded_at.desc())
    result = await db.execute(stmt)
    return [_to_response(p, pn, gn) for p, pn, gn in result.all()]


@store_call
async def get_payment_history(
    db: AsyncSession,
    pupil_id: UUID,
    include_excluded: bool = False,
) -> List[PaymentResponse]:
    if not await db.get(Pupil, pupil_id):
        raise NotFoundError("Pupil not found")
    return await list_payments(db, pupil_id=pupil_id, include_excluded=include_excluded)
