"""
Heuristic text analysis for essay answers.

Everything here is a pure function of its arguments: no randomness, no clock,
no shared state. The AI-likelihood signal is an explainable pattern count,
not a trained classifier.
"""
import re
from dataclasses import dataclass, field, asdict
from typing import Iterable, List, Set

import numpy as np


FORMAL_PHRASES = (
    'in conclusion', 'furthermore', 'moreover', 'additionally',
    'it is important to note', 'it should be noted', 'it is worth mentioning',
    'in order to', 'with regard to', 'in terms of',
)

GENERIC_PHRASES = (
    'it is clear that', 'it can be seen that', 'it is evident that',
    'one can observe', 'it is apparent that',
)

PERSONAL_WORDS = frozenset({'i', 'me', 'my', 'mine', 'we', 'our', 'ours', 'us'})

# (indicator name, weight) pairs; weights sum to 0.6
FORMAL_TRANSITIONS = ('formal_transitions', 0.20)
IMPERSONAL_LANGUAGE = ('impersonal_language', 0.15)
UNIFORM_SENTENCES = ('uniform_sentences', 0.10)
GENERIC_FILLER = ('generic_filler', 0.15)

_SENTENCE_SPLIT = re.compile(r'[.!?]+')
_NON_WORD = re.compile(r'[^\w]')
_WORD = re.compile(r'[a-z]+')


@dataclass
class ComplexityMetrics:
    word_count: int = 0
    sentence_count: int = 0
    avg_words_per_sentence: float = 0.0
    avg_word_length: float = 0.0
    unique_words: int = 0
    vocabulary_richness: float = 0.0
    score: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AIDetection:
    likelihood: float = 0.0
    indicators: List[str] = field(default_factory=list)


def _words(text: str) -> List[str]:
    return [w for w in text.split() if w]


def _sentences(text: str) -> List[str]:
    return [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def _significant_words(text: str) -> List[str]:
    """Lowercase words longer than two characters, punctuation stripped."""
    cleaned = (_NON_WORD.sub('', w) for w in text.lower().split())
    return [w for w in cleaned if len(w) > 2]


def tokenize(text: str) -> Set[str]:
    if not text or not isinstance(text, str):
        return set()
    return set(_significant_words(text))


def jaccard_similarity(a: Set[str], b: Set[str]) -> float:
    if not a or not b:
        return 0.0
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def calculate_originality(text: str, competitors: Iterable[str] = ()) -> float:
    """1 minus the highest Jaccard similarity to any competing essay."""
    if not text or not text.strip():
        return 0.0

    tokens = tokenize(text)
    max_similarity = 0.0
    for other in competitors:
        if not isinstance(other, str) or not other.strip():
            continue
        max_similarity = max(max_similarity, jaccard_similarity(tokens, tokenize(other)))

    return max(0.0, 1.0 - max_similarity)


def _band(value: float, low: float, high: float, zero_at: float, floor: float = 0.0) -> float:
    """
    Map value into [0, 1]: rises linearly from 0 to 1 below `low`, holds 1
    on [low, high], then falls linearly to `floor` at `zero_at`.
    """
    if value <= 0:
        return 0.0
    if value < low:
        return value / low
    if value <= high:
        return 1.0
    if value >= zero_at:
        return floor
    return 1.0 - (1.0 - floor) * (value - high) / (zero_at - high)


def calculate_complexity(text: str) -> ComplexityMetrics:
    if not text or not text.strip():
        return ComplexityMetrics()

    words = _words(text.strip())
    sentences = _sentences(text)
    unique = {_NON_WORD.sub('', w.lower()) for w in words}
    unique.discard('')

    word_count = len(words)
    sentence_count = len(sentences) or 1
    avg_words_per_sentence = word_count / sentence_count
    avg_word_length = sum(len(w) for w in words) / word_count if word_count else 0.0
    richness = len(unique) / word_count if word_count else 0.0

    score = (
        0.50 * _band(richness, 0.4, 0.6, 1.0, floor=0.5) +
        0.25 * _band(avg_words_per_sentence, 12, 25, 50) +
        0.25 * _band(avg_word_length, 4, 6, 12)
    )

    return ComplexityMetrics(
        word_count=word_count,
        sentence_count=sentence_count,
        avg_words_per_sentence=round(avg_words_per_sentence, 2),
        avg_word_length=round(avg_word_length, 2),
        unique_words=len(unique),
        vocabulary_richness=round(richness, 4),
        score=round(min(1.0, max(0.0, score)), 4),
    )


def detect_repetition(text: str) -> float:
    """Share of the most frequent significant word, 0 (varied) to 1."""
    if not text or not text.strip():
        return 0.0

    words = [w for w in text.lower().split() if len(w) > 2]
    if not words:
        return 0.0

    _, counts = np.unique(words, return_counts=True)
    return min(float(counts.max()) / len(words), 1.0)


def detect_ai_patterns(text: str) -> AIDetection:
    if not text or not text.strip():
        return AIDetection()

    lowered = text.lower()
    detection = AIDetection()

    def trigger(indicator):
        name, weight = indicator
        detection.indicators.append(name)
        detection.likelihood += weight

    formal_count = sum(1 for phrase in FORMAL_PHRASES if phrase in lowered)
    if formal_count > 2:
        trigger(FORMAL_TRANSITIONS)

    words = _words(text)
    if len(words) > 50 and not PERSONAL_WORDS.intersection(_WORD.findall(lowered)):
        trigger(IMPERSONAL_LANGUAGE)

    sentences = _sentences(text)
    if len(sentences) > 5:
        lengths = np.array([len(s.split()) for s in sentences], dtype=float)
        if lengths.std() < lengths.mean() * 0.3:
            trigger(UNIFORM_SENTENCES)

    generic_count = sum(1 for phrase in GENERIC_PHRASES if phrase in lowered)
    if generic_count > 1:
        trigger(GENERIC_FILLER)

    detection.likelihood = round(min(detection.likelihood, 1.0), 4)
    return detection
