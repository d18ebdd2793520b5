from .base import QuestionScorer, GradedAnswer
from .objective import ObjectiveScorer
from .essay import EssayScorer, EssayAnalysis, EssayScore
from .factory import get_scorer
from .router import ScoringRouter, resolve_essay_text

__all__ = [
    'QuestionScorer', 'GradedAnswer', 'ObjectiveScorer', 'EssayScorer',
    'EssayAnalysis', 'EssayScore', 'get_scorer', 'ScoringRouter',
    'resolve_essay_text'
]
