"""
Essay scoring by heuristic text analysis.

Weighted composite on a 0-100 scale:
- originality against competing essays (40)
- complexity of vocabulary and sentence structure (30)
- AI-likelihood penalty (up to 20)
- repetition penalty (up to 10)
"""
import math
from dataclasses import dataclass, field
from typing import List, Sequence

from .base import QuestionScorer, GradedAnswer, to_decimal
from .text_analysis import (
    ComplexityMetrics, calculate_complexity, calculate_originality,
    detect_ai_patterns, detect_repetition,
)

ORIGINALITY_WEIGHT = 40
COMPLEXITY_WEIGHT = 30
AI_WEIGHT = 20
REPETITION_WEIGHT = 10


@dataclass
class EssayAnalysis:
    originality: float = 0.0
    complexity: ComplexityMetrics = field(default_factory=ComplexityMetrics)
    ai_likelihood: float = 0.0
    indicators: List[str] = field(default_factory=list)
    repetition: float = 0.0
    score: float = 0.0

    def to_dict(self) -> dict:
        return {
            'originality': self.originality,
            'complexity': self.complexity.to_dict(),
            'ai_likelihood': self.ai_likelihood,
            'indicators': list(self.indicators),
            'repetition': self.repetition,
            'score': self.score,
            'word_count': self.complexity.word_count,
            'sentence_count': self.complexity.sentence_count,
        }


@dataclass
class EssayScore:
    score: float
    max_points: float
    analysis: EssayAnalysis


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class EssayScorer(QuestionScorer):

    def get_scorer_name(self) -> str:
        return "essay_heuristic"

    def analyze(self, text, competitors: Sequence[str] = ()) -> EssayAnalysis:
        if not isinstance(text, str) or not text.strip():
            return EssayAnalysis(indicators=['empty_text'])

        text = text.strip()
        originality = calculate_originality(text, competitors)
        complexity = calculate_complexity(text)
        ai = detect_ai_patterns(text)
        repetition = detect_repetition(text)

        final_score = (
            originality * ORIGINALITY_WEIGHT +
            complexity.score * COMPLEXITY_WEIGHT +
            (AI_WEIGHT - ai.likelihood * AI_WEIGHT) +
            (REPETITION_WEIGHT - repetition * REPETITION_WEIGHT)
        )

        return EssayAnalysis(
            originality=round(originality, 4),
            complexity=complexity,
            ai_likelihood=ai.likelihood,
            indicators=ai.indicators,
            repetition=round(repetition, 4),
            score=round(max(0.0, min(100.0, final_score)), 4),
        )

    def score_essay(self, text, max_points, competitors: Sequence[str] = ()) -> EssayScore:
        """Scale the 0-100 composite to 0..max_points, rounding half up."""
        max_points = float(max_points or 0)
        analysis = self.analyze(text, competitors)
        if max_points <= 0:
            return EssayScore(score=0, max_points=max_points, analysis=analysis)

        points = min(_round_half_up(analysis.score / 100 * max_points), max_points)
        return EssayScore(score=points, max_points=max_points, analysis=analysis)

    def score_answer(self, question, answer, competitors: Sequence[str] = ()) -> GradedAnswer:
        text = answer.strip() if isinstance(answer, str) else ''
        result = self.score_essay(text, question.points, competitors)

        return GradedAnswer(
            question=question,
            answer_text=text,
            score=to_decimal(result.score),
            max_points=to_decimal(question.points),
            is_correct=result.score > 0,
            grading_method=self.get_scorer_name(),
            analysis=result.analysis
        )
