from typing import Sequence

from .base import QuestionScorer, GradedAnswer, to_decimal


class ObjectiveScorer(QuestionScorer):
    """Exact-match scoring for single-correct-option questions."""

    def get_scorer_name(self) -> str:
        return "exact_match"

    def score_answer(self, question, answer, competitors: Sequence[str] = ()) -> GradedAnswer:
        max_points = to_decimal(question.points)
        is_correct = answer == question.correct_option

        return GradedAnswer(
            question=question,
            answer_text=answer if isinstance(answer, str) else ('' if answer is None else str(answer)),
            score=max_points if is_correct else to_decimal(0),
            max_points=max_points,
            is_correct=is_correct,
            grading_method=self.get_scorer_name()
        )
