import hashlib
import secrets

from django.conf import settings
from django.contrib.auth.models import (
    AbstractBaseUser,
    BaseUserManager,
    PermissionsMixin,
)
from django.db import models
from django.utils import timezone


class CustomUserManager(BaseUserManager):
    def create_user(self, email, password=None, **kwargs):
        if not email:
            raise ValueError("The Email field must be set")

        email = self.normalize_email(email)
        user = self.model(email=email, **kwargs)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **kwargs):
        kwargs.setdefault('is_staff', True)
        kwargs.setdefault('is_superuser', True)

        if not kwargs.get("is_staff"):
            raise ValueError("Superuser must have is_staff=True.")
        if not kwargs.get("is_superuser"):
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(email, password, **kwargs)


class CustomUser(AbstractBaseUser, PermissionsMixin):
    email = models.EmailField(max_length=255, unique=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    def __str__(self):
        return self.email

    def to_public_dict(self):
        return {'id': str(self.pk), 'email': self.email}


def hash_token(raw_token):
    return hashlib.sha256(raw_token.encode('utf-8')).hexdigest()


class ApiTokenManager(models.Manager):
    def issue(self, user, label=''):
        """Create a token for ``user`` and return ``(token, raw_key)``; only the hash is stored."""
        raw_key = secrets.token_urlsafe(32)
        token = self.create(user=user, key_hash=hash_token(raw_key), label=label[:100])
        return token, raw_key

    def resolve(self, raw_key):
        if not raw_key:
            return None
        token = (
            self.select_related('user')
            .filter(key_hash=hash_token(raw_key), user__is_active=True)
            .first()
        )
        if token is not None:
            token.last_used_at = timezone.now()
            token.save(update_fields=['last_used_at'])
        return token


class ApiToken(models.Model):
    """Bearer token used by the companion client."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='api_tokens')
    key_hash = models.CharField(max_length=64, unique=True)
    label = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    objects = ApiTokenManager()

    class Meta:
        db_table = 'accounts_apitoken'
        ordering = ['-created_at']

    def __str__(self):
        return f"API token {self.pk} for {self.user.email}"
