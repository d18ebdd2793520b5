from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator


class Question(models.Model):
    class QuestionType(models.TextChoices):
        OBJECTIVE = 'objective', 'Objective'
        ESSAY = 'essay', 'Essay'

    contest = models.ForeignKey(
        'Contest',
        on_delete=models.CASCADE,
        related_name='questions',
        db_index=True
    )
    question_type = models.CharField(
        max_length=10,
        choices=QuestionType.choices,
        db_index=True
    )
    text = models.TextField()
    points = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=1.00,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    order = models.PositiveIntegerField(default=0)
    choices = models.JSONField(null=True, blank=True)
    correct_option = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['order', 'id']
        indexes = [
            models.Index(fields=['contest', 'order'], name='question_contest_order_idx'),
        ]

    def __str__(self):
        return f"Q{self.order}: {self.text[:50]}..."

    @property
    def is_essay(self):
        return self.question_type == self.QuestionType.ESSAY
