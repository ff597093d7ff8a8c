from django.db import models
from django.conf import settings


class Notification(models.Model):
    """Persisted alert log for actors and administrators."""

    class Audience(models.TextChoices):
        USER = 'user', 'User'
        ADMINS = 'admins', 'Administrators'

    # Null recipient means the alert is addressed to administrators
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='notifications'
    )
    audience = models.CharField(max_length=10, choices=Audience.choices, default=Audience.USER)

    event_type = models.CharField(max_length=50)
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True, default='')
    data = models.JSONField(default=dict, blank=True)
    donation_id = models.BigIntegerField(null=True, blank=True, db_index=True)

    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']

    def __str__(self):
        target = self.recipient_id or self.audience
        return f"{self.event_type} -> {target}"
