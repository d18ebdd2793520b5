"""
Human grading of stored submissions.

A grader may overwrite a submission's score and comment. Essay answers are
re-analysed for AI-likelihood at the same time; when the likelihood crosses
the configured threshold the owning Result is blocked.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from contests.exceptions import NotFoundError, ValidationError
from contests.grading import EssayScorer
from contests.models import Result, Submission
from .aggregator import ResultAggregator
from .ledger import SubmissionLedger

logger = logging.getLogger(__name__)


class ReviewService:

    def __init__(self, storage, scorer=None):
        config = getattr(settings, 'CONTEST_ENGINE', {})
        self.storage = storage
        self.scorer = scorer or EssayScorer()
        self.ledger = SubmissionLedger(storage)
        self.aggregator = ResultAggregator(storage, max_retries=config.get('RESULT_RECALC_RETRIES', 3))
        self.ai_threshold = config.get('AI_FLAG_THRESHOLD', 0.5)
        self.ai_min_length = config.get('AI_ANALYSIS_MIN_LENGTH', 50)

    def _parse_score(self, score, max_points) -> Decimal:
        if isinstance(score, bool) or score is None:
            raise ValidationError('Score is required and must be a number.')
        try:
            value = Decimal(str(score))
        except InvalidOperation:
            raise ValidationError('Score must be a number.')
        if not value.is_finite():
            raise ValidationError('Score must be a number.')
        if value < 0:
            raise ValidationError('Score must be a non-negative number.')
        if value > max_points:
            raise ValidationError(f"Score cannot exceed max points ({max_points}).")
        return value

    def grade_submission(self, submission_id, grader, score, comment='', now=None):
        """Returns (submission, result or None, ai_detected)."""
        now = now or timezone.now()

        with transaction.atomic():
            with self.storage.guard('lock submission'):
                submission = (
                    Submission.objects.select_for_update()
                    .select_related('question')
                    .filter(pk=submission_id)
                    .first()
                )
            if submission is None:
                raise NotFoundError('Submission not found.')

            new_score = self._parse_score(score, submission.question.points)

            ai_likelihood = Decimal('0')
            ai_detected = False
            if submission.answer_text and len(submission.answer_text) > self.ai_min_length:
                competitors = self.ledger.competitor_answers(
                    submission.contest_id, [submission.question_id], exclude_user=submission.user_id
                ).get(str(submission.question_id), [])
                analysis = self.scorer.analyze(submission.answer_text, competitors)
                ai_likelihood = Decimal(str(round(analysis.ai_likelihood, 2)))
                ai_detected = analysis.ai_likelihood > self.ai_threshold

            submission.score = new_score
            submission.is_correct = new_score > 0
            submission.graded_by = grader
            submission.graded_at = now
            submission.comment = comment or ''
            submission.ai_likelihood = ai_likelihood
            submission.ai_flagged = ai_detected
            # Flag stamps record who flagged the answer, cleared when it passes.
            submission.ai_flagged_by = grader if ai_detected else None
            submission.ai_flagged_at = now if ai_detected else None
            with self.storage.guard('save submission'):
                submission.save()
                result = Result.objects.filter(user_id=submission.user_id, contest_id=submission.contest_id).first()

            if result is not None:
                status = Result.Status.BLOCKED if ai_detected else Result.Status.ACTIVE
                result = self.aggregator.recalculate(result, status=status)

        logger.info(
            f"Submission {submission.pk} graded by {grader.pk}: score={new_score} ai_detected={ai_detected}"
        )
        return submission, result, ai_detected

    def _get_result(self, result_id) -> Result:
        with self.storage.guard('load result'):
            result = Result.objects.filter(pk=result_id).first()
        if result is None:
            raise NotFoundError('Result not found.')
        return result

    def set_result_status(self, result_id, status) -> Result:
        if status not in Result.Status.values:
            raise ValidationError(f"status must be one of: {', '.join(Result.Status.values)}")
        result = self._get_result(result_id)
        result.status = status
        with self.storage.guard('save result'):
            result.save(update_fields=['status', 'updated_at'])
        return result

    def set_result_visibility(self, result_id, visible) -> Result:
        if not isinstance(visible, bool):
            raise ValidationError('visible must be a boolean value (true or false).')
        result = self._get_result(result_id)
        result.visible = visible
        with self.storage.guard('save result'):
            result.save(update_fields=['visible', 'updated_at'])
        return result
