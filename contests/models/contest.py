from django.db import models
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError


class Contest(models.Model):
    class ContestType(models.TextChoices):
        OBJECTIVE = 'objective', 'Objective'
        ESSAY = 'essay', 'Essay'
        MIXED = 'mixed', 'Mixed'

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        UPCOMING = 'upcoming', 'Upcoming'
        ACTIVE = 'active', 'Active'
        PUBLISHED = 'published', 'Published'
        COMPLETED = 'completed', 'Completed'

    SUBMITTABLE_STATUSES = (Status.ACTIVE, Status.PUBLISHED)

    title = models.CharField(max_length=300)
    description = models.TextField(blank=True)
    contest_type = models.CharField(
        max_length=20,
        choices=ContestType.choices,
        default=ContestType.OBJECTIVE,
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    total_points = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Leave blank to use the sum of question points"
    )

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_contests'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_time']
        indexes = [
            models.Index(fields=['status', 'start_time'], name='contest_status_start_idx'),
        ]

    def __str__(self):
        return self.title

    def get_total_points(self):
        """The override, floored at the sum of question points."""
        question_total = self.questions.aggregate(total=models.Sum('points'))['total'] or 0
        if self.total_points is not None:
            return max(self.total_points, question_total)
        return question_total

    def clean(self):
        super().clean()
        if self.total_points is None or self.pk is None:
            return
        question_total = self.questions.aggregate(total=models.Sum('points'))['total'] or 0
        if self.total_points < question_total:
            raise ValidationError({
                'total_points': f"Must be at least the sum of question points ({question_total})."
            })
