from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator, MaxValueValidator


class Result(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        BLOCKED = 'blocked', 'Blocked'
        PENDING = 'pending', 'Pending'
        UNDER_REVIEW = 'under-review', 'Under Review'
        CHECKED = 'checked', 'Checked'

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='contest_results',
        db_index=True
    )
    contest = models.ForeignKey(
        'Contest',
        on_delete=models.CASCADE,
        related_name='results',
        db_index=True
    )
    total_score = models.DecimalField(max_digits=9, decimal_places=2, default=0)
    max_score = models.DecimalField(max_digits=9, decimal_places=2, default=0)
    percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    completed_at = models.DateTimeField(db_index=True)
    time_spent = models.PositiveIntegerField(default=0, help_text="Minutes")
    visible = models.BooleanField(default=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True
    )
    version = models.PositiveIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-total_score', 'completed_at', 'id']
        indexes = [
            models.Index(fields=['contest', 'total_score'], name='result_contest_score_idx'),
            models.Index(fields=['contest', 'status', 'visible'], name='result_contest_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'contest'],
                name='unique_user_contest_result'
            )
        ]

    def __str__(self):
        return f"{self.user.username} - {self.contest.title}: {self.total_score}/{self.max_score}"
