import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class PasswordEntry(models.Model):
    """Vault entry; the server only ever stores the client's ciphertext."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='password_entries')
    encrypted_data = models.TextField()
    category = models.CharField(max_length=100, blank=True, default='')

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        db_table = 'vault_passwordentry'
        verbose_name_plural = 'password entries'

    def __str__(self):
        return f"PasswordEntry {self.id} for {self.user.email}"

    def to_dict(self):
        return {
            'id': str(self.id),
            'user_id': str(self.user_id),
            'encrypted_data': self.encrypted_data,
            'category': self.category,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }
