from .storage import StorageHealth
from .providers import ContestWindow, QuestionProvider
from .gate import ResubmissionGate, GateDecision, GateAction
from .ledger import SubmissionLedger
from .aggregator import ResultAggregator, compute_percentage
from .leaderboard import LeaderboardRanker, LeaderboardService
from .submission import SubmissionService, SubmitOutcome, KeyedLock
from .review import ReviewService
from .results import ResultDetailService
from .similarity import EssaySimilarityDetector, SimilarityReport

__all__ = [
    'StorageHealth', 'ContestWindow', 'QuestionProvider', 'ResubmissionGate',
    'GateDecision', 'GateAction', 'SubmissionLedger', 'ResultAggregator',
    'compute_percentage', 'LeaderboardRanker', 'LeaderboardService',
    'SubmissionService', 'SubmitOutcome', 'KeyedLock', 'ReviewService',
    'ResultDetailService', 'EssaySimilarityDetector', 'SimilarityReport'
]
