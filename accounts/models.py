from zoneinfo import available_timezones

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class CustomUser(AbstractUser):
    timezone = models.CharField(
        max_length=63,
        default="UTC",
        help_text="IANA timezone identifier (e.g. Asia/Jerusalem).",
    )

    @staticmethod
    def valid_timezones():
        return sorted(available_timezones())

    @property
    def display_name(self):
        """Name shown to the other parent in push notifications."""
        if self.first_name:
            return self.first_name
        if self.email:
            return self.email.split("@")[0]
        return self.username

    def push_tokens(self):
        return list(self.push_devices.values_list("token", flat=True))


class PushDevice(models.Model):
    """A registered push-messaging token for one installation of the app.

    The (user, token) pair is unique, so a user's token set never holds
    duplicates. Rows are removed by the push gateway when the messaging
    provider reports the token as permanently invalid.
    """

    class Platform(models.TextChoices):
        ANDROID = "android", "Android"
        IOS = "ios", "iOS"
        WEB = "web", "Web"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="push_devices",
    )
    token = models.CharField(max_length=255)
    platform = models.CharField(max_length=10, choices=Platform.choices, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [["user", "token"]]
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.user.username}: {self.token[:12]}..."
