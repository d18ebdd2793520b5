"""
Test cases for the Contest Grading Engine.
Covers scoring, the monthly gate, result aggregation, grader review and the API.
"""
import threading
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from django.apps import apps
from django.contrib.auth.models import User
from django.core.cache import cache
from django.core.exceptions import ValidationError as ModelValidationError
from django.db import OperationalError
from django.test import TestCase
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from .api.exceptions import contest_exception_handler
from .exceptions import ConflictError, NotFoundError, PolicyError, StorageUnavailable, ValidationError
from .grading import EssayScorer, ObjectiveScorer, ScoringRouter, resolve_essay_text
from .grading.text_analysis import calculate_originality, detect_ai_patterns, jaccard_similarity, tokenize
from .models import AuditLog, Contest, Question, Result, Submission, UserProfile
from .permissions import is_privileged
from .services import (
    ContestWindow, KeyedLock, LeaderboardRanker, ResubmissionGate, ResultAggregator,
    ReviewService, StorageHealth, SubmissionService, compute_percentage,
)
from .services.gate import GateAction, first_day_of_next_month
from .services.leaderboard import position_label

UTC = dt_timezone.utc

AI_STYLE_ESSAY = (
    "Furthermore, the modern economy depends heavily on reliable digital infrastructure today. "
    "Moreover, the global markets react quickly to every technological shift observed. "
    "Additionally, the public institutions adapt their policies to these rapid changes. "
    "It is clear that governments must invest in education and research. "
    "It is evident that companies benefit from skilled and adaptable workers. "
    "In conclusion, the future requires careful planning across many different sectors."
)

PERSONAL_ESSAY = (
    "Last summer my grandfather taught me to fish on the lake behind our house. "
    "I was impatient at first and kept pulling the line too early! "
    "He laughed, then showed me how the float bobs twice before a real bite. "
    "We caught nothing that day, but I still remember the smell of rain."
)


def _question(pk, question_type, points, correct_option='', order=None):
    return Question(
        id=pk,
        question_type=question_type,
        points=Decimal(str(points)),
        correct_option=correct_option,
        order=pk if order is None else order,
        text=f'Question {pk}',
    )


class ObjectiveScorerTests(TestCase):
    """Tests for exact-match objective scoring."""

    def setUp(self):
        self.scorer = ObjectiveScorer()
        self.question = _question(1, Question.QuestionType.OBJECTIVE, 5, correct_option='B')

    def test_correct_option_scores_full_points(self):
        graded = self.scorer.score_answer(self.question, 'B')
        self.assertEqual(graded.score, Decimal('5'))
        self.assertTrue(graded.is_correct)

    def test_wrong_option_scores_zero(self):
        graded = self.scorer.score_answer(self.question, 'C')
        self.assertEqual(graded.score, Decimal('0'))
        self.assertFalse(graded.is_correct)

    def test_match_is_exact(self):
        """Case and whitespace differences are wrong answers."""
        self.assertFalse(self.scorer.score_answer(self.question, 'b').is_correct)
        self.assertFalse(self.scorer.score_answer(self.question, ' B').is_correct)


class TextAnalysisTests(TestCase):
    """Tests for the pure text heuristics."""

    def test_jaccard_properties(self):
        a = tokenize("The quick brown fox jumps over the lazy dog")
        b = tokenize("A quick red fox runs past the sleepy dog")
        self.assertEqual(jaccard_similarity(a, b), jaccard_similarity(b, a))
        self.assertEqual(jaccard_similarity(a, a), 1.0)
        self.assertEqual(jaccard_similarity(a, set()), 0.0)

    def test_tokenize_drops_short_words_and_punctuation(self):
        self.assertEqual(tokenize("It is a Cat, a cat!"), {'cat'})

    def test_originality_without_competitors(self):
        self.assertEqual(calculate_originality("Anything written here counts.", []), 1.0)

    def test_originality_of_copied_essay(self):
        self.assertEqual(calculate_originality(PERSONAL_ESSAY, [PERSONAL_ESSAY]), 0.0)

    def test_ai_patterns_detected(self):
        detection = detect_ai_patterns(AI_STYLE_ESSAY)
        self.assertEqual(
            detection.indicators,
            ['formal_transitions', 'impersonal_language', 'uniform_sentences', 'generic_filler']
        )
        self.assertAlmostEqual(detection.likelihood, 0.6)

    def test_personal_essay_has_no_impersonal_indicator(self):
        self.assertNotIn('impersonal_language', detect_ai_patterns(PERSONAL_ESSAY).indicators)


class EssayScorerTests(TestCase):
    """Tests for heuristic essay scoring."""

    def setUp(self):
        self.scorer = EssayScorer()

    def test_score_within_bounds(self):
        for text in (PERSONAL_ESSAY, AI_STYLE_ESSAY, "word " * 200, "Short."):
            for max_points in (0, 1, 7, 10, 100):
                result = self.scorer.score_essay(text, max_points, [PERSONAL_ESSAY])
                self.assertGreaterEqual(result.score, 0)
                self.assertLessEqual(result.score, max_points)

    def test_empty_text_scores_zero(self):
        for text in ('', '   ', None, 42):
            result = self.scorer.score_essay(text, 10)
            self.assertEqual(result.score, 0)
            self.assertEqual(result.analysis.indicators, ['empty_text'])

    def test_originality_is_one_without_competitors(self):
        self.assertEqual(self.scorer.analyze(PERSONAL_ESSAY, []).originality, 1.0)

    def test_deterministic(self):
        first = self.scorer.score_essay(PERSONAL_ESSAY, 10, [AI_STYLE_ESSAY])
        second = self.scorer.score_essay(PERSONAL_ESSAY, 10, [AI_STYLE_ESSAY])
        self.assertEqual(first, second)

    def test_copied_essay_scores_lower(self):
        original = self.scorer.analyze(PERSONAL_ESSAY, [])
        copied = self.scorer.analyze(PERSONAL_ESSAY, [PERSONAL_ESSAY])
        self.assertLess(copied.score, original.score)

    def test_graded_answer_correct_when_positive(self):
        question = _question(1, Question.QuestionType.ESSAY, 10)
        graded = self.scorer.score_answer(question, f"  {PERSONAL_ESSAY}  ")
        self.assertEqual(graded.answer_text, PERSONAL_ESSAY)
        self.assertTrue(graded.is_correct)
        self.assertIsNotNone(graded.analysis)


class ResolveEssayTextTests(TestCase):
    """Tests for essay field aliasing."""

    def test_precedence(self):
        self.assertEqual(resolve_essay_text({'content': 'b', 'essay': 'a'}), 'a')
        self.assertEqual(resolve_essay_text({'essay': '   ', 'answer': 'c'}), 'c')
        self.assertEqual(resolve_essay_text({'answers': 'z', 'answer': 'c'}), 'c')
        self.assertEqual(resolve_essay_text({'answers': 'z'}), 'z')
        self.assertEqual(resolve_essay_text({'answers': {'other': 'x', 'content': 'y'}}), 'y')
        self.assertEqual(resolve_essay_text({'answers': {'7': '', 'other': 'x'}}), 'x')

    def test_missing(self):
        self.assertIsNone(resolve_essay_text({}))
        self.assertIsNone(resolve_essay_text({'essay': 12}))
        self.assertIsNone(resolve_essay_text('not a mapping'))


class ScoringRouterTests(TestCase):
    """Tests for routing payloads to per-question scorers."""

    def setUp(self):
        self.router = ScoringRouter()
        self.q1 = _question(1, Question.QuestionType.OBJECTIVE, 5, correct_option='A')
        self.q2 = _question(2, Question.QuestionType.OBJECTIVE, 5, correct_option='B')
        self.essay = _question(3, Question.QuestionType.ESSAY, 10)

    def test_objective_ignores_unknown_ids(self):
        window = SimpleNamespace(contest_type='objective')
        graded = self.router.score(window, [self.q1, self.q2], {'answers': {'1': 'A', '99': 'A'}})
        self.assertEqual(len(graded), 1)
        self.assertEqual(graded[0].score, Decimal('5'))

    def test_objective_with_only_unknown_ids(self):
        window = SimpleNamespace(contest_type='objective')
        with self.assertRaises(ValidationError):
            self.router.score(window, [self.q1, self.q2], {'answers': {'99': 'A'}})

    def test_objective_requires_answers(self):
        window = SimpleNamespace(contest_type='objective')
        for payload in ({}, {'answers': {}}, {'answers': 'A'}):
            with self.assertRaises(ValidationError):
                self.router.score(window, [self.q1], payload)

    def test_mixed_reports_missing_questions(self):
        window = SimpleNamespace(contest_type='mixed')
        with self.assertRaises(ValidationError) as ctx:
            self.router.score(window, [self.q1, self.q2, self.essay], {'answers': {'1': 'A'}})
        self.assertEqual(ctx.exception.extra['missing_questions'], ['2', '3'])

    def test_mixed_empty_essay_scores_zero(self):
        window = SimpleNamespace(contest_type='mixed')
        graded = self.router.score(window, [self.q1, self.essay], {'answers': {'1': 'A', '3': ''}})
        self.assertEqual([g.score for g in graded], [Decimal('5'), Decimal('0')])

    def test_essay_scores_first_question(self):
        window = SimpleNamespace(contest_type='essay')
        graded = self.router.score(window, [self.essay], {'content': PERSONAL_ESSAY})
        self.assertEqual(len(graded), 1)
        self.assertEqual(graded[0].question, self.essay)

    def test_essay_missing_text(self):
        window = SimpleNamespace(contest_type='essay')
        with self.assertRaises(ValidationError) as ctx:
            self.router.score(window, [self.essay], {'title': 'x'})
        self.assertEqual(ctx.exception.extra['received_fields'], ['title'])

    def test_unknown_contest_type(self):
        with self.assertRaises(ValidationError):
            self.router.score(SimpleNamespace(contest_type='trivia'), [self.q1], {'answers': {'1': 'A'}})


class ResubmissionGateTests(TestCase):
    """Tests for the once-per-calendar-month rule."""

    def setUp(self):
        self.gate = ResubmissionGate()
        self.window = ContestWindow(
            contest_id=1, title='Monthly', contest_type='objective', status='active',
            start_time=datetime(2024, 1, 1, tzinfo=UTC), end_time=datetime(2025, 12, 31, tzinfo=UTC),
            total_points=Decimal('10'),
        )

    def _existing(self, completed_at):
        return SimpleNamespace(
            completed_at=completed_at, total_score=Decimal('5'),
            max_score=Decimal('10'), percentage=Decimal('50.00'),
        )

    def test_first_attempt_allowed(self):
        decision = self.gate.evaluate(None, self.window, datetime(2024, 3, 15, tzinfo=UTC))
        self.assertIs(decision.action, GateAction.ALLOW)

    def test_same_month_rejected(self):
        existing = self._existing(datetime(2024, 3, 2, tzinfo=UTC))
        decision = self.gate.evaluate(existing, self.window, datetime(2024, 3, 28, tzinfo=UTC))
        self.assertIs(decision.action, GateAction.REJECT)
        self.assertFalse(decision.can_resubmit)
        self.assertEqual(decision.next_available_date, datetime(2024, 4, 1, tzinfo=UTC))

        error = decision.to_error()
        self.assertEqual(error.reason, 'monthly_limit')
        self.assertEqual(error.to_dict()['score'], 5.0)

    def test_previous_month_replaced(self):
        existing = self._existing(datetime(2024, 2, 28, tzinfo=UTC))
        decision = self.gate.evaluate(existing, self.window, datetime(2024, 3, 1, tzinfo=UTC))
        self.assertIs(decision.action, GateAction.REPLACE)

    def test_closed_window_rejected(self):
        decision = self.gate.evaluate(None, self.window, datetime(2026, 1, 5, tzinfo=UTC))
        self.assertEqual(decision.reason, 'window_closed')

    def test_next_month_rolls_over_year(self):
        self.assertEqual(
            first_day_of_next_month(datetime(2024, 12, 31, 23, 59, tzinfo=UTC)),
            datetime(2025, 1, 1, tzinfo=UTC)
        )


class LeaderboardRankerTests(TestCase):
    """Tests for deterministic leaderboard ordering."""

    def _result(self, score, hour):
        return Result(
            total_score=Decimal(score), max_score=Decimal('100'), percentage=Decimal(score),
            completed_at=datetime(2024, 3, 1, hour, tzinfo=UTC),
            status=Result.Status.ACTIVE, visible=True,
        )

    def test_ties_broken_by_completion_time(self):
        results = [self._result(90, 10), self._result(90, 9), self._result(80, 8)]
        ranked = LeaderboardRanker().rank(results)
        self.assertEqual([entry.result.completed_at.hour for entry in ranked], [9, 10, 8])
        self.assertEqual([entry.rank for entry in ranked], [1, 2, 3])

    def test_hidden_results_are_filtered(self):
        hidden = self._result(99, 7)
        hidden.visible = False
        ranked = LeaderboardRanker().rank([hidden, self._result(50, 8)])
        self.assertEqual(len(ranked), 1)

    def test_position_labels(self):
        self.assertEqual(position_label(1), '🥇 1st Place')
        self.assertEqual(position_label(3), '🥉 3rd Place')
        self.assertEqual(position_label(4), '4th Place')


class PercentageTests(TestCase):

    def test_rounding(self):
        self.assertEqual(compute_percentage(5, 10), Decimal('50.00'))
        self.assertEqual(compute_percentage(1, 3), Decimal('33.33'))
        self.assertEqual(compute_percentage(2, 3), Decimal('66.67'))

    def test_zero_max_score(self):
        self.assertEqual(compute_percentage(5, 0), Decimal('0.00'))


class StorageHealthTests(TestCase):
    """Tests for the consecutive-failure cool-down."""

    def setUp(self):
        self.now = [datetime(2024, 1, 1, tzinfo=UTC)]
        self.health = StorageHealth(
            max_consecutive_failures=3, cool_down=timedelta(seconds=60), clock=lambda: self.now[0]
        )

    def _fail(self):
        with self.assertRaises(StorageUnavailable):
            with self.health.guard('test'):
                raise OperationalError('database is down')

    def test_cools_down_after_repeated_failures(self):
        for _ in range(3):
            self._fail()

        calls = []
        with self.assertRaises(StorageUnavailable) as ctx:
            with self.health.guard('test'):
                calls.append(1)
        self.assertEqual(calls, [])
        self.assertEqual(ctx.exception.retry_after, 61)

        self.now[0] += timedelta(seconds=61)
        with self.health.guard('test'):
            calls.append(1)
        self.assertEqual(calls, [1])
        self.assertEqual(self.health.failure_count, 0)

    def test_success_resets_counter(self):
        self._fail()
        self._fail()
        with self.health.guard('test'):
            pass
        self._fail()
        self.assertFalse(self.health.is_cooling_down())

    def test_other_errors_pass_through(self):
        with self.assertRaises(ValueError):
            with self.health.guard('test'):
                raise ValueError('not a storage problem')
        self.assertEqual(self.health.failure_count, 0)


class KeyedLockTests(TestCase):

    def test_entries_dropped_after_release(self):
        locks = KeyedLock()
        with locks.hold((1, 2)):
            self.assertIn((1, 2), locks._locks)
        self.assertEqual(locks._locks, {})

    def test_same_key_waits_for_holder(self):
        locks = KeyedLock()
        order = []
        held = threading.Event()
        release = threading.Event()

        def first():
            with locks.hold((1, 2)):
                held.set()
                release.wait(5)
                order.append('first')

        def second():
            with locks.hold((1, 2)):
                order.append('second')

        holder = threading.Thread(target=first)
        waiter = threading.Thread(target=second)
        holder.start()
        self.assertTrue(held.wait(5))
        waiter.start()
        waiter.join(0.2)
        self.assertTrue(waiter.is_alive())
        self.assertEqual(order, [])

        release.set()
        holder.join(5)
        waiter.join(5)
        self.assertEqual(order, ['first', 'second'])
        self.assertEqual(locks._locks, {})

    def test_other_keys_do_not_wait(self):
        locks = KeyedLock()
        done = []

        def other_pair():
            with locks.hold((3, 4)):
                done.append(True)

        with locks.hold((1, 2)):
            worker = threading.Thread(target=other_pair)
            worker.start()
            worker.join(5)
            self.assertEqual(done, [True])


class ContestFixtureMixin:
    """Creates an open objective contest with two five-point questions."""

    start = datetime(2024, 1, 1, tzinfo=UTC)
    end = datetime(2025, 12, 31, tzinfo=UTC)

    def make_contest(self, contest_type=Contest.ContestType.OBJECTIVE, **kwargs):
        defaults = dict(
            title='Monthly Challenge', contest_type=contest_type,
            status=Contest.Status.ACTIVE, start_time=self.start, end_time=self.end,
        )
        defaults.update(kwargs)
        return Contest.objects.create(**defaults)

    def make_objective_contest(self, **kwargs):
        contest = self.make_contest(**kwargs)
        q1 = Question.objects.create(
            contest=contest, question_type=Question.QuestionType.OBJECTIVE,
            text='Capital of France?', points=5, order=1, choices=['Paris', 'Lyon'], correct_option='Paris'
        )
        q2 = Question.objects.create(
            contest=contest, question_type=Question.QuestionType.OBJECTIVE,
            text='2 + 2?', points=5, order=2, choices=['3', '4'], correct_option='4'
        )
        return contest, q1, q2

    def make_essay_contest(self, **kwargs):
        contest = self.make_contest(Contest.ContestType.ESSAY, **kwargs)
        question = Question.objects.create(
            contest=contest, question_type=Question.QuestionType.ESSAY,
            text='Describe a memorable day.', points=10, order=1
        )
        return contest, question

    def make_user(self, username, role=UserProfile.Role.CONTESTANT):
        user = User.objects.create_user(username, f'{username}@test.com', 'pass12345')
        if role != UserProfile.Role.CONTESTANT:
            user.profile.role = role
            user.profile.save()
        return user


class SubmissionServiceTests(ContestFixtureMixin, TestCase):
    """Tests for the submit flow against the database."""

    def setUp(self):
        self.service = SubmissionService(storage=StorageHealth())
        self.user = self.make_user('alice')
        self.contest, self.q1, self.q2 = self.make_objective_contest()

    def test_half_correct_objective_submission(self):
        outcome = self.service.submit(
            self.user, self.contest.id,
            {'answers': {str(self.q1.id): 'Paris', str(self.q2.id): '3'}},
            now=datetime(2024, 3, 15, tzinfo=UTC)
        )
        self.assertEqual(outcome.score, Decimal('5'))
        self.assertEqual(outcome.max_score, Decimal('10'))
        self.assertEqual(outcome.percentage, Decimal('50.00'))
        self.assertFalse(outcome.replaced)
        self.assertEqual(Submission.objects.filter(user=self.user, contest=self.contest).count(), 2)

    def test_resubmission_next_month_replaces_result(self):
        self.service.submit(
            self.user, self.contest.id, {'answers': {str(self.q1.id): 'Lyon'}},
            now=datetime(2024, 3, 31, 23, 0, tzinfo=UTC)
        )
        outcome = self.service.submit(
            self.user, self.contest.id,
            {'answers': {str(self.q1.id): 'Paris', str(self.q2.id): '4'}},
            now=datetime(2024, 4, 1, 1, 0, tzinfo=UTC)
        )
        self.assertTrue(outcome.replaced)
        results = Result.objects.filter(user=self.user, contest=self.contest)
        self.assertEqual(results.count(), 1)
        self.assertEqual(results.get().total_score, Decimal('10'))
        self.assertEqual(Submission.objects.filter(user=self.user, contest=self.contest).count(), 2)

    def test_same_month_resubmission_rejected(self):
        self.service.submit(
            self.user, self.contest.id, {'answers': {str(self.q1.id): 'Paris'}},
            now=datetime(2024, 3, 2, tzinfo=UTC)
        )
        with self.assertRaises(PolicyError) as ctx:
            self.service.submit(
                self.user, self.contest.id, {'answers': {str(self.q1.id): 'Paris'}},
                now=datetime(2024, 3, 20, tzinfo=UTC)
            )
        self.assertEqual(ctx.exception.reason, 'monthly_limit')
        self.assertFalse(ctx.exception.can_resubmit)
        self.assertEqual(ctx.exception.next_available_date, datetime(2024, 4, 1, tzinfo=UTC))

    def test_invalid_resubmission_keeps_previous_attempt(self):
        self.service.submit(
            self.user, self.contest.id, {'answers': {str(self.q1.id): 'Paris'}},
            now=datetime(2024, 3, 2, tzinfo=UTC)
        )
        with self.assertRaises(ValidationError):
            self.service.submit(self.user, self.contest.id, {'answers': {}}, now=datetime(2024, 4, 2, tzinfo=UTC))

        result = Result.objects.get(user=self.user, contest=self.contest)
        self.assertEqual(result.completed_at, datetime(2024, 3, 2, tzinfo=UTC))

    def test_outside_window_rejected(self):
        with self.assertRaises(PolicyError) as ctx:
            self.service.submit(
                self.user, self.contest.id, {'answers': {str(self.q1.id): 'Paris'}},
                now=datetime(2026, 2, 1, tzinfo=UTC)
            )
        self.assertEqual(ctx.exception.reason, 'window_closed')

    def test_draft_contest_rejected(self):
        draft, q1, _ = self.make_objective_contest(status=Contest.Status.DRAFT)
        with self.assertRaises(PolicyError) as ctx:
            self.service.submit(self.user, draft.id, {'answers': {str(q1.id): 'Paris'}}, now=datetime(2024, 3, 2, tzinfo=UTC))
        self.assertEqual(ctx.exception.reason, 'contest_not_active')

    def test_unknown_contest(self):
        with self.assertRaises(NotFoundError):
            self.service.submit(self.user, 999999, {'answers': {'1': 'A'}})

    def test_stored_answer_without_result_conflicts(self):
        # Another writer's answer row is already in place but its Result is not.
        Submission.objects.create(
            user=self.user, contest=self.contest, question=self.q1, answer_text='Lyon', score=0
        )
        with self.assertRaises(ConflictError) as ctx:
            self.service.submit(
                self.user, self.contest.id, {'answers': {str(self.q1.id): 'Paris'}},
                now=datetime(2024, 3, 2, tzinfo=UTC)
            )
        self.assertEqual(ctx.exception.reason, 'concurrent_submission')
        self.assertTrue(ctx.exception.can_resubmit)
        self.assertFalse(Result.objects.filter(user=self.user, contest=self.contest).exists())
        self.assertEqual(Submission.objects.get(user=self.user, contest=self.contest).answer_text, 'Lyon')

    def test_total_points_override_never_below_question_points(self):
        contest, q1, q2 = self.make_objective_contest(total_points=Decimal('4'))
        outcome = self.service.submit(
            self.user, contest.id, {'answers': {str(q1.id): 'Paris', str(q2.id): '4'}},
            now=datetime(2024, 3, 2, tzinfo=UTC)
        )
        self.assertEqual(outcome.max_score, Decimal('10'))
        self.assertEqual(outcome.percentage, Decimal('100.00'))

    def test_essay_scored_against_competitors(self):
        contest, question = self.make_essay_contest()
        other = self.make_user('bob')
        now = datetime(2024, 5, 10, tzinfo=UTC)
        self.service.submit(other, contest.id, {'essay': PERSONAL_ESSAY}, now=now)
        outcome = self.service.submit(self.user, contest.id, {'content': PERSONAL_ESSAY}, now=now)

        analysis = outcome.graded[0].analysis
        self.assertEqual(analysis.originality, 0.0)
        self.assertLessEqual(outcome.score, question.points)


class ReviewServiceTests(ContestFixtureMixin, TestCase):
    """Tests for grader overrides and result moderation."""

    def setUp(self):
        self.storage = StorageHealth()
        self.grader = self.make_user('grader', UserProfile.Role.GRADER)
        self.user = self.make_user('carol')
        self.contest, self.question = self.make_essay_contest()
        self.review = ReviewService(self.storage)

    def _submit(self, text):
        SubmissionService(storage=self.storage).submit(
            self.user, self.contest.id, {'essay': text}, now=datetime(2024, 6, 1, tzinfo=UTC)
        )
        return Submission.objects.get(user=self.user, contest=self.contest)

    def test_grade_recalculates_result(self):
        submission = self._submit("I enjoyed learning about rivers this year.")
        submission, result, ai_detected = self.review.grade_submission(submission.id, self.grader, 7, 'Nice')

        self.assertFalse(ai_detected)
        self.assertEqual(submission.score, Decimal('7'))
        self.assertEqual(submission.comment, 'Nice')
        self.assertEqual(submission.graded_by, self.grader)
        self.assertEqual(result.total_score, Decimal('7'))
        self.assertEqual(result.percentage, Decimal('70.00'))
        self.assertEqual(result.version, 2)
        self.assertEqual(result.status, Result.Status.ACTIVE)

    def test_ai_style_essay_blocks_result(self):
        submission = self._submit(AI_STYLE_ESSAY)
        submission, result, ai_detected = self.review.grade_submission(submission.id, self.grader, 5)

        self.assertTrue(ai_detected)
        self.assertTrue(submission.ai_flagged)
        self.assertEqual(submission.ai_flagged_by, self.grader)
        self.assertIsNotNone(submission.ai_flagged_at)
        self.assertEqual(submission.ai_likelihood, Decimal('0.60'))
        self.assertEqual(result.status, Result.Status.BLOCKED)

    def test_short_answer_is_not_flag_stamped(self):
        submission = self._submit("Short answer about rivers.")
        submission, _, ai_detected = self.review.grade_submission(submission.id, self.grader, 3)

        self.assertFalse(ai_detected)
        self.assertFalse(submission.ai_flagged)
        self.assertIsNone(submission.ai_flagged_by)
        self.assertIsNone(submission.ai_flagged_at)
        self.assertEqual(submission.ai_likelihood, Decimal('0'))

    def test_score_validation(self):
        submission = self._submit("Short answer about rivers.")
        for bad in (-1, 11, 'abc', None, True):
            with self.assertRaises(ValidationError):
                self.review.grade_submission(submission.id, self.grader, bad)

    def test_unknown_submission(self):
        with self.assertRaises(NotFoundError):
            self.review.grade_submission(999999, self.grader, 1)

    def test_status_and_visibility(self):
        self._submit("Short answer about rivers.")
        result = Result.objects.get(user=self.user, contest=self.contest)

        self.assertEqual(self.review.set_result_status(result.id, 'checked').status, Result.Status.CHECKED)
        self.assertFalse(self.review.set_result_visibility(result.id, False).visible)
        with self.assertRaises(ValidationError):
            self.review.set_result_status(result.id, 'finished')
        with self.assertRaises(ValidationError):
            self.review.set_result_visibility(result.id, 'false')


class ResultAggregatorTests(ContestFixtureMixin, TestCase):
    """Tests for Result uniqueness and versioned recalculation."""

    def setUp(self):
        self.storage = StorageHealth()
        self.aggregator = ResultAggregator(self.storage, max_retries=3)
        self.user = self.make_user('frank')
        self.contest, self.q1, _ = self.make_objective_contest()
        SubmissionService(storage=self.storage).submit(
            self.user, self.contest.id, {'answers': {str(self.q1.id): 'Paris'}},
            now=datetime(2024, 3, 2, tzinfo=UTC)
        )
        self.result = Result.objects.get(user=self.user, contest=self.contest)

    def test_duplicate_result_conflicts(self):
        draft = self.aggregator.aggregate([], Decimal('10'), datetime(2024, 3, 3, tzinfo=UTC))
        with self.assertRaises(ConflictError):
            self.aggregator.persist(self.user, self.contest.id, draft)
        self.assertEqual(Result.objects.filter(user=self.user, contest=self.contest).count(), 1)

    def test_recalculate_gives_up_when_version_keeps_moving(self):
        load = Result.objects.get

        def read_then_bumped(*args, **kwargs):
            current = load(*args, **kwargs)
            current.version -= 1
            return current

        with patch.object(Result.objects, 'get', side_effect=read_then_bumped) as reads:
            with self.assertRaises(ConflictError):
                self.aggregator.recalculate(self.result, status=Result.Status.CHECKED)
        self.assertEqual(reads.call_count, 3)

        self.result.refresh_from_db()
        self.assertEqual(self.result.version, 1)
        self.assertEqual(self.result.status, Result.Status.ACTIVE)


class ModelValidationTests(ContestFixtureMixin, TestCase):

    def test_total_points_below_question_points_rejected(self):
        contest, _, _ = self.make_objective_contest()
        contest.total_points = Decimal('8')
        with self.assertRaises(ModelValidationError):
            contest.full_clean()
        contest.total_points = Decimal('12')
        contest.full_clean()
        self.assertEqual(contest.get_total_points(), Decimal('12'))

    def test_question_points_must_be_positive(self):
        contest = self.make_contest()
        question = Question(
            contest=contest, question_type=Question.QuestionType.OBJECTIVE,
            text='Free point?', points=0, correct_option='A'
        )
        with self.assertRaises(ModelValidationError):
            question.full_clean()


class PermissionTests(ContestFixtureMixin, TestCase):

    def test_privileged_users(self):
        superuser = User.objects.create_superuser('root', 'root@test.com', 'pass12345')
        self.assertTrue(is_privileged(superuser))
        self.assertTrue(is_privileged(self.make_user('grader', UserProfile.Role.GRADER)))
        self.assertFalse(is_privileged(self.make_user('gina')))


class ExceptionHandlerTests(TestCase):

    def tearDown(self):
        apps.get_app_config('contests').storage_health.record_success()

    def test_database_error_reported_as_storage_unavailable(self):
        storage = apps.get_app_config('contests').storage_health
        response = contest_exception_handler(OperationalError('connection reset'), {})
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data['code'], 'storage_unavailable')
        self.assertEqual(response['Retry-After'], str(int(storage.cool_down.total_seconds())))
        self.assertEqual(storage.failure_count, 1)

    def test_storage_unavailable_sets_retry_after(self):
        response = contest_exception_handler(StorageUnavailable(retry_after=30), {})
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response['Retry-After'], '30')
        self.assertEqual(response.data['code'], 'storage_unavailable')

    def test_unexpected_error_is_opaque(self):
        response = contest_exception_handler(RuntimeError('secret detail'), {})
        self.assertEqual(response.status_code, 500)
        self.assertNotIn('secret', response.data['message'])


class ContestAPITests(ContestFixtureMixin, APITestCase):
    """Tests for the HTTP endpoints."""

    def setUp(self):
        cache.clear()
        now = datetime.now(UTC)
        self.start = now - timedelta(days=1)
        self.end = now + timedelta(days=60)

        self.user = self.make_user('dave')
        self.other = self.make_user('erin')
        self.grader = self.make_user('grader', UserProfile.Role.GRADER)
        self.token = Token.objects.create(user=self.user)
        self.other_token = Token.objects.create(user=self.other)
        self.grader_token = Token.objects.create(user=self.grader)

        self.contest, self.q1, self.q2 = self.make_objective_contest()

    def tearDown(self):
        apps.get_app_config('contests').storage_health.record_success()

    def _auth(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    def _submit(self, token, answers):
        self._auth(token)
        return self.client.post(f'/api/contests/{self.contest.id}/submit/', {'answers': answers}, format='json')

    def test_requires_authentication(self):
        response = self.client.post(f'/api/contests/{self.contest.id}/submit/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_submit_success(self):
        response = self._submit(self.token, {str(self.q1.id): 'Paris', str(self.q2.id): '3'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['score'], 5.0)
        self.assertEqual(response.data['max_score'], 10.0)
        self.assertEqual(response.data['percentage'], 50.0)

    def test_second_submit_same_month_conflicts(self):
        self._submit(self.token, {str(self.q1.id): 'Paris'})
        response = self._submit(self.token, {str(self.q1.id): 'Paris'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['reason'], 'monthly_limit')
        self.assertFalse(response.data['can_resubmit'])
        self.assertIn('next_available_date', response.data)

    def test_invalid_payload(self):
        response = self._submit(self.token, {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'validation_error')

    def test_audit_write_failure_is_storage_unavailable(self):
        with patch.object(AuditLog, 'log', side_effect=OperationalError('audit table locked')):
            response = self._submit(self.token, {str(self.q1.id): 'Paris'})
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['code'], 'storage_unavailable')
        self.assertIn('Retry-After', response)

    def test_result_list_database_error_is_storage_unavailable(self):
        self._auth(self.grader_token)
        with patch.object(Result.objects, 'select_related', side_effect=OperationalError('server closed')):
            response = self.client.get('/api/grading/results/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['code'], 'storage_unavailable')

    def test_unknown_contest(self):
        self._auth(self.token)
        response = self.client.post('/api/contests/999999/submit/', {'answers': {'1': 'A'}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_leaderboard(self):
        self._submit(self.token, {str(self.q1.id): 'Paris', str(self.q2.id): '4'})
        self._submit(self.other_token, {str(self.q1.id): 'Paris'})

        response = self.client.get(f'/api/contests/{self.contest.id}/leaderboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('no-cache', response['Cache-Control'])
        self.assertEqual(response.data['total_participants'], 2)
        first = response.data['leaderboard'][0]
        self.assertEqual(first['user_id'], self.user.id)
        self.assertEqual(first['position'], '🥇 1st Place')
        self.assertNotIn('user_email', first)

    def test_contestant_results(self):
        self._submit(self.token, {str(self.q1.id): 'Paris', str(self.q2.id): '3'})
        self._auth(self.token)
        response = self.client.get(f'/api/contests/{self.contest.id}/results/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['isAdminView'])
        result = response.data['result']
        self.assertEqual(result['rank'], 1)
        self.assertEqual(result['correct_options'][str(self.q2.id)], '4')
        self.assertEqual(result['answers'][str(self.q2.id)], '3')
        self.assertFalse(result['submission_details'][str(self.q2.id)]['is_correct'])

    def test_contestant_without_result(self):
        self._auth(self.other_token)
        response = self.client.get(f'/api/contests/{self.contest.id}/results/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_grader_sees_hidden_results(self):
        self._submit(self.token, {str(self.q1.id): 'Paris'})
        Result.objects.filter(user=self.user).update(visible=False)

        self._auth(self.grader_token)
        response = self.client.get(f'/api/contests/{self.contest.id}/results/')
        self.assertTrue(response.data['isAdminView'])
        self.assertEqual(len(response.data['results']), 1)
        self.assertFalse(response.data['results'][0]['visible'])

    def test_grading_endpoints_require_grader(self):
        self._auth(self.token)
        self.assertEqual(self.client.get('/api/grading/results/').status_code, status.HTTP_403_FORBIDDEN)

    def test_grade_submission(self):
        self._submit(self.token, {str(self.q1.id): 'Lyon'})
        submission = Submission.objects.get(user=self.user, question=self.q1)

        self._auth(self.grader_token)
        response = self.client.put(
            f'/api/grading/submissions/{submission.id}/grade/', {'score': 4, 'comment': 'Partial credit'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['result']['total_score'], 4.0)

        response = self.client.put(f'/api/grading/submissions/{submission.id}/grade/', {'score': 50}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_result_moderation(self):
        self._submit(self.token, {str(self.q1.id): 'Paris'})
        result = Result.objects.get(user=self.user)
        self._auth(self.grader_token)

        response = self.client.put(f'/api/grading/results/{result.id}/status/', {'status': 'blocked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.put(f'/api/grading/results/{result.id}/visibility/', {'visible': 'yes'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.put(f'/api/grading/results/{result.id}/visibility/', {'visible': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        result.refresh_from_db()
        self.assertEqual(result.status, Result.Status.BLOCKED)
        self.assertFalse(result.visible)

        response = self.client.get('/api/grading/results/', {'contest': self.contest.id, 'status': 'blocked'})
        self.assertEqual(response.data['count'], 1)

    def test_similarity_report(self):
        contest, _ = self.make_essay_contest()
        for token in (self.token, self.other_token):
            self._auth(token)
            response = self.client.post(f'/api/contests/{contest.id}/submit/', {'essay': PERSONAL_ESSAY}, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)

        self._auth(self.grader_token)
        response = self.client.get(f'/api/contests/{contest.id}/similarity/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['similarity_detected'])
        self.assertEqual(len(response.data['flagged_pairs']), 1)
