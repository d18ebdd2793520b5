from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Sequence


@dataclass
class GradedAnswer:
    question: Any
    answer_text: str
    score: Decimal
    max_points: Decimal
    is_correct: bool
    grading_method: str
    analysis: Optional[Any] = None

    @property
    def ai_likelihood(self) -> float:
        return self.analysis.ai_likelihood if self.analysis is not None else 0.0


class QuestionScorer(ABC):
    @abstractmethod
    def score_answer(
        self,
        question,
        answer,
        competitors: Sequence[str] = ()
    ) -> GradedAnswer:
        pass

    @abstractmethod
    def get_scorer_name(self) -> str:
        pass


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
