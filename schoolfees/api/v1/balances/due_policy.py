"""When an unpaid term balance becomes overdue."""

from datetime import date, timedelta
from typing import Dict, Optional, Protocol

from schoolfees.core.config import settings


class DuePolicy(Protocol):
    def due_date(self, term_number: int, year: int) -> date:
        ...


class TermStartDuePolicy:
    """Fees fall due a fixed number of days after the first day of the term."""

    def __init__(self, term_start_months: Dict[int, int], grace_days: int) -> None:
        self.term_start_months = term_start_months
        self.grace_days = grace_days

    def due_date(self, term_number: int, year: int) -> date:
        return date(year, self.term_start_months[term_number], 1) + timedelta(days=self.grace_days)


def default_due_policy() -> TermStartDuePolicy:
    return TermStartDuePolicy(settings.term_start_months, settings.payment_grace_days)


def is_past_due(policy: DuePolicy, term_number: int, year: int, today: Optional[date] = None) -> bool:
    return (today or date.today()) > policy.due_date(term_number, year)
