"""Read-only access to contests and their questions."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from contests.exceptions import NotFoundError
from contests.models import Contest, Question


@dataclass(frozen=True)
class ContestWindow:
    contest_id: int
    title: str
    contest_type: str
    status: str
    start_time: datetime
    end_time: datetime
    total_points: Decimal

    @classmethod
    def from_contest(cls, contest: Contest) -> 'ContestWindow':
        return cls(
            contest_id=contest.id,
            title=contest.title,
            contest_type=contest.contest_type,
            status=contest.status,
            start_time=contest.start_time,
            end_time=contest.end_time,
            total_points=Decimal(str(contest.get_total_points())),
        )

    @classmethod
    def get(cls, contest_id, storage) -> 'ContestWindow':
        with storage.guard('contest lookup'):
            contest = Contest.objects.filter(pk=contest_id).first()
            if contest is None:
                raise NotFoundError('Contest not found.')
            return cls.from_contest(contest)

    @property
    def is_submittable_status(self) -> bool:
        return self.status in Contest.SUBMITTABLE_STATUSES

    def closed_reason(self, now: datetime) -> Optional[str]:
        """None when submissions are accepted at `now`, else a reason code."""
        if not self.is_submittable_status:
            return 'contest_not_active'
        if now < self.start_time:
            return 'not_started'
        if now > self.end_time:
            return 'window_closed'
        return None


class QuestionProvider:

    def __init__(self, storage):
        self.storage = storage

    def by_contest(self, contest_id) -> List[Question]:
        with self.storage.guard('question lookup'):
            return list(Question.objects.filter(contest_id=contest_id).order_by('order', 'id'))
