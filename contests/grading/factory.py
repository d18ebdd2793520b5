from contests.models import Question
from .base import QuestionScorer
from .objective import ObjectiveScorer
from .essay import EssayScorer

SCORERS = {
    Question.QuestionType.OBJECTIVE: ObjectiveScorer,
    Question.QuestionType.ESSAY: EssayScorer,
}


def get_scorer(question_type: str) -> QuestionScorer:
    try:
        return SCORERS[Question.QuestionType(question_type)]()
    except (KeyError, ValueError):
        raise ValueError(f"Unknown question type: {question_type}")
