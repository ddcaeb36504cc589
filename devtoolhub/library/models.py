import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class Favorite(models.Model):
    """A tool the user starred. Uniqueness of (user, slug) is left to the client."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='favorites')
    tool_slug = models.CharField(max_length=100)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        db_table = 'library_favorite'

    def __str__(self):
        return f"{self.user.email} likes {self.tool_slug}"

    def to_dict(self):
        return {
            'id': str(self.id),
            'user_id': str(self.user_id),
            'tool_slug': self.tool_slug,
            'created_at': self.created_at.isoformat(),
        }


class HistoryEntry(models.Model):
    """One use of a tool; append only."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='history_entries')
    tool_slug = models.CharField(max_length=100)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-timestamp']
        db_table = 'library_historyentry'
        verbose_name_plural = 'history entries'

    def __str__(self):
        return f"{self.user.email} used {self.tool_slug} at {self.timestamp:%Y-%m-%d %H:%M}"

    def to_dict(self):
        return {
            'id': str(self.id),
            'user_id': str(self.user_id),
            'tool_slug': self.tool_slug,
            'timestamp': self.timestamp.isoformat(),
        }
