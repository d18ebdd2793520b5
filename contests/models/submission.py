from django.db import models
from django.contrib.auth.models import User


class Submission(models.Model):
    """One graded answer per user, contest and question."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='contest_submissions',
        db_index=True
    )
    contest = models.ForeignKey(
        'Contest',
        on_delete=models.CASCADE,
        related_name='submissions',
        db_index=True
    )
    question = models.ForeignKey(
        'Question',
        on_delete=models.CASCADE,
        related_name='submissions',
        db_index=True
    )

    answer_text = models.TextField(blank=True)
    score = models.DecimalField(max_digits=7, decimal_places=2, default=0)
    is_correct = models.BooleanField(default=False)

    # Human grading
    graded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='graded_contest_submissions'
    )
    graded_at = models.DateTimeField(null=True, blank=True)
    comment = models.TextField(blank=True)

    # AI-likelihood heuristic
    ai_likelihood = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    ai_flagged = models.BooleanField(default=False)
    ai_flagged_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ai_flagged_contest_submissions'
    )
    ai_flagged_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['question__order', 'id']
        indexes = [
            models.Index(fields=['user', 'contest'], name='submission_user_contest_idx'),
            models.Index(fields=['contest', 'question'], name='submission_contest_q_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'contest', 'question'],
                name='unique_user_contest_question'
            )
        ]

    def __str__(self):
        return f"{self.user.username} - Q{self.question.order} ({self.score})"
