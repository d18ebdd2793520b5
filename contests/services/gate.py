"""
Monthly completion policy.

A user completes a contest at most once per calendar month. A Result from an
earlier month may be replaced while the contest is still open; a Result from
the current month is final until the first day of the next month.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from django.utils import timezone

from contests.exceptions import PolicyError

REJECTION_MESSAGES = {
    'monthly_limit': 'You have already taken this contest this month. You can take it again next month.',
    'contest_not_active': 'Cannot submit. The contest is not active.',
    'not_started': 'Cannot submit. The contest has not started yet.',
    'window_closed': 'Cannot submit. The contest has ended.',
}


class GateAction(Enum):
    ALLOW = 'allow'
    REPLACE = 'replace'
    REJECT = 'reject'


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    reason: str = ''
    next_available_date: Optional[datetime] = None
    existing: Optional[object] = None

    @property
    def allowed(self) -> bool:
        return self.action is not GateAction.REJECT

    @property
    def can_resubmit(self) -> bool:
        return self.allowed

    def to_error(self) -> PolicyError:
        extra = {}
        if self.existing is not None:
            extra = {
                'submitted_at': self.existing.completed_at.isoformat(),
                'score': float(self.existing.total_score),
                'max_score': float(self.existing.max_score),
                'percentage': float(self.existing.percentage),
            }
        return PolicyError(
            REJECTION_MESSAGES.get(self.reason),
            reason=self.reason,
            can_resubmit=self.can_resubmit,
            next_available_date=self.next_available_date,
            **extra
        )


def first_day_of_next_month(now: datetime) -> datetime:
    local = timezone.localtime(now) if timezone.is_aware(now) else now
    if local.month == 12:
        return local.replace(year=local.year + 1, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return local.replace(month=local.month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


def same_calendar_month(a: datetime, b: datetime) -> bool:
    if timezone.is_aware(a):
        a = timezone.localtime(a)
    if timezone.is_aware(b):
        b = timezone.localtime(b)
    return (a.year, a.month) == (b.year, b.month)


class ResubmissionGate:

    def evaluate(self, existing_result, window, now: datetime) -> GateDecision:
        if existing_result is not None and same_calendar_month(existing_result.completed_at, now):
            return GateDecision(
                GateAction.REJECT,
                reason='monthly_limit',
                next_available_date=first_day_of_next_month(now),
                existing=existing_result,
            )

        closed = window.closed_reason(now)
        if closed:
            return GateDecision(GateAction.REJECT, reason=closed, existing=existing_result)

        if existing_result is not None:
            return GateDecision(GateAction.REPLACE, existing=existing_result)
        return GateDecision(GateAction.ALLOW)
