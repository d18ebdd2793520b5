"""
Result detail read.

Graders and owners see every result of a contest, ranked without the
visibility filter. A contestant sees only their own result with per-question
breakdown, plus the public top of the leaderboard.
"""
from django.conf import settings

from contests.exceptions import NotFoundError
from contests.grading import EssayScorer
from contests.models import Result
from contests.permissions import is_privileged
from .leaderboard import LeaderboardRanker, position_label
from .ledger import SubmissionLedger
from .providers import QuestionProvider


class ResultDetailService:

    def __init__(self, storage, scorer=None):
        self.storage = storage
        self.scorer = scorer or EssayScorer()
        self.ranker = LeaderboardRanker()
        self.questions = QuestionProvider(storage)
        self.ledger = SubmissionLedger(storage)
        self.top_n = getattr(settings, 'CONTEST_ENGINE', {}).get('LEADERBOARD_TOP_N', 5)

    def _contest_results(self, contest_id):
        with self.storage.guard('load results'):
            return list(
                Result.objects.filter(contest_id=contest_id)
                .select_related('user', 'user__profile')
            )

    def get_results(self, window, user) -> dict:
        results = self._contest_results(window.contest_id)
        if is_privileged(user):
            return self._admin_view(window, results)
        return self._contestant_view(window, user, results)

    def _admin_view(self, window, results) -> dict:
        entries = self.ranker.rank_all(results)
        return {
            'success': True,
            'contest_id': window.contest_id,
            'contest_title': window.title,
            'contest_type': window.contest_type,
            'isAdminView': True,
            'total_participants': len(entries),
            'results': [entry.to_admin_dict() for entry in entries],
        }

    def _contestant_view(self, window, user, results) -> dict:
        own = next((r for r in results if r.user_id == user.pk), None)
        if own is None:
            raise NotFoundError('No result found for this contest.')

        ordered = self.ranker.order(results)
        rank = next(index for index, r in enumerate(ordered, 1) if r.pk == own.pk)
        public = self.ranker.rank(results)

        questions = self.questions.by_contest(window.contest_id)
        submissions = {s.question_id: s for s in self.ledger.for_user(user, window.contest_id)}
        essay_ids = [q.id for q in questions if q.is_essay]
        competitors = (
            self.ledger.competitor_answers(window.contest_id, essay_ids, exclude_user=user)
            if essay_ids else {}
        )

        answers = {}
        submission_details = {}
        correct_options = {}
        essay_analyses = {}
        for question in questions:
            key = str(question.id)
            submission = submissions.get(question.id)
            if submission is not None:
                answers[key] = submission.answer_text
                submission_details[key] = {
                    'score': float(submission.score),
                    'max_points': float(question.points),
                    'is_correct': submission.is_correct,
                    'comment': submission.comment,
                }
            if not question.is_essay:
                correct_options[key] = question.correct_option
            elif submission is not None:
                analysis = self.scorer.analyze(submission.answer_text, competitors.get(key, []))
                essay_analyses[key] = analysis.to_dict()

        return {
            'success': True,
            'contest_id': window.contest_id,
            'contest_title': window.title,
            'contest_type': window.contest_type,
            'isAdminView': False,
            'result': {
                'id': own.id,
                'rank': rank,
                'position': position_label(rank),
                'score': float(own.total_score),
                'max_score': float(own.max_score),
                'percentage': float(own.percentage),
                'completed_at': own.completed_at,
                'time_spent': own.time_spent,
                'status': own.status,
                'answers': answers,
                'submission_details': submission_details,
                'correct_options': correct_options,
                'essay_analyses': essay_analyses,
            },
            'leaderboard': [entry.to_public_dict() for entry in public[:self.top_n]],
            'total_participants': len(public),
            'total_participants_all': len(results),
        }
