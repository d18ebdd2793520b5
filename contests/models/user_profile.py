from django.db import models
from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver


class UserProfile(models.Model):
    class Role(models.TextChoices):
        CONTESTANT = 'contestant', 'Contestant'
        GRADER = 'grader', 'Grader'
        OWNER = 'owner', 'Owner'
        ADMIN = 'admin', 'Admin'

    PRIVILEGED_ROLES = (Role.GRADER, Role.OWNER, Role.ADMIN)

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CONTESTANT, db_index=True)
    display_name = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.username} ({self.get_role_display()})"

    @property
    def is_privileged(self):
        return self.role in self.PRIVILEGED_ROLES


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    if created:
        UserProfile.objects.create(user=instance)
