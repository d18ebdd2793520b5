"""
Routes a submission payload to the per-question scorers.

The contest type decides how the payload is read:
- objective: {"answers": {question_id: option}}
- essay: one essay string under one of several aliased fields
- mixed: {"answers": {question_id: option_or_essay}} covering every question
"""
import logging
from typing import Dict, List, Mapping, Optional, Sequence

from contests.exceptions import ValidationError
from contests.models import Contest, Question
from .base import GradedAnswer
from .factory import get_scorer

logger = logging.getLogger(__name__)

ESSAY_FIELDS = ('essay', 'content', 'answer')


def _non_empty_string(value) -> bool:
    return isinstance(value, str) and len(value.strip()) > 0


def resolve_essay_text(payload: Mapping) -> Optional[str]:
    """
    Find essay text in a payload. Precedence: essay, content, answer, answers
    as a string, answers.essay/content/answer, then the first non-empty string
    value of answers.
    """
    if not isinstance(payload, Mapping):
        return None

    for key in ESSAY_FIELDS:
        if _non_empty_string(payload.get(key)):
            return payload[key]

    answers = payload.get('answers')
    if _non_empty_string(answers):
        return answers

    if isinstance(answers, Mapping):
        for key in ESSAY_FIELDS:
            if _non_empty_string(answers.get(key)):
                return answers[key]
        for value in answers.values():
            if _non_empty_string(value):
                return value

    return None


class ScoringRouter:

    def __init__(self):
        self._handlers = {
            Contest.ContestType.OBJECTIVE: self._score_objective,
            Contest.ContestType.ESSAY: self._score_essay,
            Contest.ContestType.MIXED: self._score_mixed,
        }

    def score(
        self,
        contest,
        questions: Sequence,
        payload: Mapping,
        competitors: Optional[Dict[str, List[str]]] = None
    ) -> List[GradedAnswer]:
        """
        Grade a payload against the contest's questions without persisting
        anything. `competitors` maps question id (as str) to the essay texts
        other users submitted for that question.
        """
        try:
            contest_type = Contest.ContestType(contest.contest_type)
        except ValueError:
            raise ValidationError(f"Unknown contest type: {contest.contest_type}")

        if not questions:
            raise ValidationError("No questions found for this contest.")

        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object.")

        ordered = sorted(questions, key=lambda q: (q.order, str(q.id)))
        return self._handlers[contest_type](ordered, payload, competitors or {})

    def _answers_mapping(self, payload, contest_type):
        answers = payload.get('answers')
        if not isinstance(answers, Mapping) or not answers:
            raise ValidationError(
                f"Answers are required for {contest_type} contests. "
                "Provide an answers object with questionId: answer pairs."
            )
        return {str(key): value for key, value in answers.items()}

    def _score_objective(self, questions, payload, competitors):
        answers = self._answers_mapping(payload, Contest.ContestType.OBJECTIVE)
        scorer = get_scorer(Question.QuestionType.OBJECTIVE)

        graded = [
            scorer.score_answer(question, answers[str(question.id)])
            for question in questions
            if str(question.id) in answers
        ]
        if not graded:
            raise ValidationError(
                "No valid answers provided. Check that the question ids match the contest questions."
            )
        return graded

    def _score_essay(self, questions, payload, competitors):
        text = resolve_essay_text(payload)
        if not _non_empty_string(text):
            raise ValidationError(
                'Essay content is required. Send it as "essay", "content", "answer" '
                'or "answers" (a string or an object with an essay field).',
                received_fields=sorted(str(k) for k in payload.keys()),
            )

        question = questions[0]
        scorer = get_scorer(Question.QuestionType.ESSAY)
        return [scorer.score_answer(question, text, competitors.get(str(question.id), []))]

    def _score_mixed(self, questions, payload, competitors):
        answers = self._answers_mapping(payload, Contest.ContestType.MIXED)

        missing = [str(q.id) for q in questions if str(q.id) not in answers]
        if missing:
            raise ValidationError(
                f"Missing answers for questions: {', '.join(missing)}.",
                missing_questions=missing,
            )

        graded = []
        for question in questions:
            value = answers[str(question.id)]
            if question.question_type == Question.QuestionType.ESSAY and not _non_empty_string(value):
                logger.warning(f"Empty essay answer for question {question.id}, scoring 0")
            scorer = get_scorer(question.question_type)
            graded.append(scorer.score_answer(question, value, competitors.get(str(question.id), [])))
        return graded
