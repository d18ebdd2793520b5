"""
Essay similarity report using TF-IDF and cosine similarity.
Compares contestants' essay answers to the same question against each other.
"""
import logging
from collections import defaultdict

import numpy as np
from django.conf import settings
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from contests.models import Question, Submission
from .leaderboard import display_name

logger = logging.getLogger(__name__)

MIN_ANSWER_LENGTH = 20


class EssaySimilarityDetector:

    def __init__(self, similarity_threshold=None):
        if similarity_threshold is None:
            similarity_threshold = getattr(settings, 'CONTEST_ENGINE', {}).get('SIMILARITY_THRESHOLD', 0.85)
        self.threshold = similarity_threshold
        self.vectorizer = TfidfVectorizer(
            lowercase=True,
            stop_words='english',
            ngram_range=(1, 3),
            max_features=5000
        )

    def check_submissions(self, submissions):
        """
        Flag pairs of essay answers at or above the threshold.
        `submissions` is an iterable of essay Submission rows with users loaded.
        """
        report = {
            'flagged_pairs': [],
            'user_scores': {},
            'total_checked': 0,
            'similarity_detected': False
        }

        question_answers = defaultdict(list)
        for submission in submissions:
            if submission.answer_text and len(submission.answer_text.strip()) > MIN_ANSWER_LENGTH:
                question_answers[submission.question_id].append(submission)

        for question_id, answers in question_answers.items():
            if len(answers) < 2:
                continue
            report['flagged_pairs'].extend(self._find_similar_pairs(answers, question_id))
            report['total_checked'] += len(answers)

        user_flags = defaultdict(list)
        for pair in report['flagged_pairs']:
            user_flags[pair['user_1']].append(pair['similarity'])
            user_flags[pair['user_2']].append(pair['similarity'])

        for user_id, scores in user_flags.items():
            report['user_scores'][user_id] = {
                'max_similarity': round(max(scores) * 100, 2),
                'avg_similarity': round(float(np.mean(scores)) * 100, 2),
                'flag_count': len(scores)
            }

        report['similarity_detected'] = len(report['flagged_pairs']) > 0
        return report

    def _find_similar_pairs(self, answers, question_id):
        flagged = []
        texts = [a.answer_text for a in answers]

        try:
            tfidf_matrix = self.vectorizer.fit_transform(texts)
        except ValueError as e:
            # only stop words in every answer
            logger.warning(f"Similarity skipped for question {question_id}: {e}")
            return flagged

        similarity_matrix = cosine_similarity(tfidf_matrix)
        for i in range(len(answers)):
            for j in range(i + 1, len(answers)):
                similarity = float(similarity_matrix[i][j])
                if similarity >= self.threshold:
                    flagged.append({
                        'question_id': question_id,
                        'submission_1': answers[i].id,
                        'user_1': answers[i].user_id,
                        'user_name_1': display_name(answers[i].user),
                        'submission_2': answers[j].id,
                        'user_2': answers[j].user_id,
                        'user_name_2': display_name(answers[j].user),
                        'similarity': round(similarity, 4),
                        'similarity_percent': round(similarity * 100, 2)
                    })

        return flagged


class SimilarityReport:

    def __init__(self, storage, detector=None):
        self.storage = storage
        self.detector = detector or EssaySimilarityDetector()

    def for_contest(self, window) -> dict:
        with self.storage.guard('load essays'):
            submissions = list(
                Submission.objects.filter(
                    contest_id=window.contest_id,
                    question__question_type=Question.QuestionType.ESSAY,
                )
                .select_related('user', 'user__profile')
                .order_by('id')
            )

        report = self.detector.check_submissions(submissions)
        report.update({
            'success': True,
            'contest_id': window.contest_id,
            'contest_title': window.title,
            'threshold': self.detector.threshold,
        })
        return report
