from collections import defaultdict
from typing import Dict, Iterable, List

from contests.models import Submission, Result


class SubmissionLedger:
    """Stores one graded answer per (user, contest, question)."""

    def __init__(self, storage):
        self.storage = storage

    def record(self, user, contest_id, graded) -> List[Submission]:
        submissions = [
            Submission(
                user=user,
                contest_id=contest_id,
                question=answer.question,
                answer_text=answer.answer_text,
                score=answer.score,
                is_correct=answer.is_correct,
                ai_likelihood=round(answer.ai_likelihood, 2),
            )
            for answer in graded
        ]
        with self.storage.guard('record submissions'):
            return Submission.objects.bulk_create(submissions)

    def delete_attempt(self, user, contest_id):
        """Remove the Result and every Submission of a prior attempt."""
        with self.storage.guard('delete attempt'):
            results_deleted, _ = Result.objects.filter(user=user, contest_id=contest_id).delete()
            submissions_deleted, _ = Submission.objects.filter(user=user, contest_id=contest_id).delete()
        return results_deleted, submissions_deleted

    def for_user(self, user, contest_id) -> List[Submission]:
        with self.storage.guard('load submissions'):
            return list(
                Submission.objects.filter(user=user, contest_id=contest_id)
                .select_related('question')
                .order_by('question__order', 'question_id')
            )

    def competitor_answers(self, contest_id, question_ids: Iterable, exclude_user) -> Dict[str, List[str]]:
        """
        Essay texts other users submitted, keyed by question id as str and
        ordered by submission id so repeated reads of the same rows agree.
        """
        snapshot = defaultdict(list)
        with self.storage.guard('load competitors'):
            rows = (
                Submission.objects.filter(contest_id=contest_id, question_id__in=list(question_ids))
                .exclude(user=exclude_user)
                .exclude(answer_text='')
                .order_by('id')
                .values_list('question_id', 'answer_text')
            )
            for question_id, text in rows:
                snapshot[str(question_id)].append(text)
        return dict(snapshot)
