"""
Contest submission flow.

submit() validates the contest window, applies the monthly gate, grades the
payload, replaces any prior attempt and stores the new Result. Every step for
one (user, contest) pair runs under a keyed lock and a single transaction
that row-locks the existing Result.
"""
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from contests.exceptions import ConflictError
from contests.grading import ScoringRouter, GradedAnswer
from contests.models import Result
from .aggregator import ResultAggregator
from .gate import GateAction, ResubmissionGate
from .ledger import SubmissionLedger
from .providers import ContestWindow, QuestionProvider
from .storage import StorageHealth

logger = logging.getLogger(__name__)


class KeyedLock:
    """In-process mutex per key; entries are dropped once nobody holds them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}
        self._holders = defaultdict(int)

    @contextmanager
    def hold(self, key):
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] += 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]


@dataclass
class SubmitOutcome:
    result: Result
    graded: List[GradedAnswer] = field(default_factory=list)
    replaced: bool = False

    @property
    def score(self):
        return self.result.total_score

    @property
    def max_score(self):
        return self.result.max_score

    @property
    def percentage(self):
        return self.result.percentage

    def to_dict(self) -> dict:
        return {
            'success': True,
            'message': 'Resubmission successful' if self.replaced else 'Submission successful',
            'result_id': self.result.id,
            'score': float(self.score),
            'max_score': float(self.max_score),
            'percentage': float(self.percentage),
            'replaced': self.replaced,
        }


class SubmissionService:

    def __init__(
        self,
        storage: Optional[StorageHealth] = None,
        router: Optional[ScoringRouter] = None,
        gate: Optional[ResubmissionGate] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.storage = storage or StorageHealth.from_settings()
        self.router = router or ScoringRouter()
        self.gate = gate or ResubmissionGate()
        self.locks = locks or KeyedLock()
        self.questions = QuestionProvider(self.storage)
        self.ledger = SubmissionLedger(self.storage)
        self.aggregator = ResultAggregator(self.storage)

    def submit(self, user, contest_id, payload, now=None, time_spent=0) -> SubmitOutcome:
        now = now or timezone.now()
        window = ContestWindow.get(contest_id, self.storage)

        with self.locks.hold((user.pk, window.contest_id)):
            try:
                outcome = self._submit_locked(user, window, payload, now, time_spent)
            except IntegrityError:
                logger.warning(f"Concurrent submission for user {user.pk} contest {window.contest_id}")
                raise ConflictError()

        logger.info(
            f"{'Resubmission' if outcome.replaced else 'Submission'} graded: user={user.pk} "
            f"contest={window.contest_id} score={outcome.score}/{outcome.max_score}"
        )
        return outcome

    def _submit_locked(self, user, window, payload, now, time_spent) -> SubmitOutcome:
        with transaction.atomic():
            with self.storage.guard('lock result'):
                existing = (
                    Result.objects.select_for_update()
                    .filter(user=user, contest_id=window.contest_id)
                    .first()
                )

            decision = self.gate.evaluate(existing, window, now)
            if not decision.allowed:
                logger.info(f"Submission rejected: user={user.pk} contest={window.contest_id} reason={decision.reason}")
                raise decision.to_error()

            questions = self.questions.by_contest(window.contest_id)
            essay_ids = [q.id for q in questions if q.is_essay]
            competitors = self.ledger.competitor_answers(window.contest_id, essay_ids, exclude_user=user) if essay_ids else {}

            graded = self.router.score(window, questions, payload, competitors)

            replaced = decision.action is GateAction.REPLACE
            if replaced:
                self.ledger.delete_attempt(user, window.contest_id)

            self.ledger.record(user, window.contest_id, graded)
            draft = self.aggregator.aggregate(graded, window.total_points, now)
            result = self.aggregator.persist(user, window.contest_id, draft, time_spent=time_spent)

        return SubmitOutcome(result=result, graded=graded, replaced=replaced)
