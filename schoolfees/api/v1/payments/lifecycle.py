"""
Payment lifecycle.

    active ──soft delete──▶ pending_deletion ──approve──▶ deletion_approved (terminal)
      ▲                            │
      │                          reject
      │                            ▼
      └───── (counts as active) deletion_rejected ──soft delete──▶ pending_deletion

Only deletion_approved payments are excluded from balances. A pending deletion has no
financial effect until it is approved.
"""

from typing import Dict, FrozenSet, Tuple, assert_never

from schoolfees.core.enums import AuditAction, PaymentAction, PaymentState
from schoolfees.core.exceptions import InvalidStateError


def is_counted(state: PaymentState) -> bool:
    """Whether a payment in `state` contributes to collected amounts."""
    match state:
        case PaymentState.ACTIVE | PaymentState.PENDING_DELETION | PaymentState.DELETION_REJECTED:
            return True
        case PaymentState.DELETION_APPROVED:
            return False
        case _:
            assert_never(state)


COUNTED_STATES: FrozenSet[PaymentState] = frozenset(s for s in PaymentState if is_counted(s))
COUNTED_STATE_VALUES: Tuple[str, ...] = tuple(s.value for s in COUNTED_STATES)


def transition_rule(action: PaymentAction) -> Tuple[FrozenSet[PaymentState], PaymentState]:
    """(allowed source states, target state) for an action."""
    match action:
        case PaymentAction.SOFT_DELETE:
            return frozenset({PaymentState.ACTIVE, PaymentState.DELETION_REJECTED}), PaymentState.PENDING_DELETION
        case PaymentAction.APPROVE_DELETION:
            return frozenset({PaymentState.PENDING_DELETION}), PaymentState.DELETION_APPROVED
        case PaymentAction.REJECT_DELETION:
            return frozenset({PaymentState.PENDING_DELETION}), PaymentState.DELETION_REJECTED
        case _:
            assert_never(action)


AUDIT_ACTIONS: Dict[PaymentAction, AuditAction] = {
    PaymentAction.SOFT_DELETE: AuditAction.SOFT_DELETE,
    PaymentAction.APPROVE_DELETION: AuditAction.APPROVE_DELETION,
    PaymentAction.REJECT_DELETION: AuditAction.REJECT_DELETION,
}


def next_state(current: PaymentState, action: PaymentAction) -> PaymentState:
    sources, target = transition_rule(action)
    if current not in sources:
        allowed = ", ".join(sorted(s.value for s in sources))
        raise InvalidStateError(
            f"Cannot {action.value.lower().replace('_', ' ')} a payment in state '{current.value}' "
            f"(allowed from: {allowed})"
        )
    return target
