import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from contests.exceptions import ConflictError
from contests.models import Result, Submission

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


def compute_percentage(total_score, max_score) -> Decimal:
    total_score = Decimal(str(total_score))
    max_score = Decimal(str(max_score))
    if max_score <= 0:
        return Decimal('0.00')
    return (total_score / max_score * 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class ResultDraft:
    total_score: Decimal
    max_score: Decimal
    percentage: Decimal
    completed_at: datetime
    status: str = Result.Status.ACTIVE
    visible: bool = True


class ResultAggregator:

    def __init__(self, storage, max_retries=3):
        self.storage = storage
        self.max_retries = max_retries

    def aggregate(self, graded, max_score, now=None) -> ResultDraft:
        total = sum((Decimal(str(answer.score)) for answer in graded), Decimal('0'))
        max_score = Decimal(str(max_score or 0))
        return ResultDraft(
            total_score=total,
            max_score=max_score,
            percentage=compute_percentage(total, max_score),
            completed_at=now or timezone.now(),
        )

    def persist(self, user, contest_id, draft: ResultDraft, time_spent=0) -> Result:
        """Create the Result; a concurrent writer for the same pair raises ConflictError."""
        try:
            with self.storage.guard('create result'), transaction.atomic():
                return Result.objects.create(
                    user=user,
                    contest_id=contest_id,
                    total_score=draft.total_score,
                    max_score=draft.max_score,
                    percentage=draft.percentage,
                    completed_at=draft.completed_at,
                    time_spent=time_spent,
                    status=draft.status,
                    visible=draft.visible,
                )
        except IntegrityError:
            logger.warning(f"Duplicate result for user {user.pk} contest {contest_id}")
            raise ConflictError()

    def recalculate(self, result: Result, status=None) -> Result:
        """
        Recompute total and percentage from stored submissions. The write only
        lands if nobody bumped `version` since the read.
        """
        for _ in range(self.max_retries):
            with self.storage.guard('recalculate result'):
                current = Result.objects.get(pk=result.pk)
                total = Submission.objects.filter(
                    user_id=current.user_id, contest_id=current.contest_id
                ).aggregate(total=Sum('score'))['total'] or Decimal('0')

                updates = {
                    'total_score': total,
                    'percentage': compute_percentage(total, current.max_score),
                    'version': F('version') + 1,
                    'updated_at': timezone.now(),
                }
                if status is not None:
                    updates['status'] = status

                updated = Result.objects.filter(pk=current.pk, version=current.version).update(**updates)
                if updated:
                    current.refresh_from_db()

            if updated:
                return current
            logger.info(f"Result {result.pk} changed during recalculation, retrying")

        raise ConflictError('Result was modified concurrently. Please retry.')
