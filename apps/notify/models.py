"""
Notification models for storing notification channel configurations.

Delivery outcomes are recorded on the AlertTrigger that caused them; this
app only manages transport configuration.
"""

from django.db import models


class ChannelType(models.TextChoices):
    """Notification channels an alert rule can route to."""

    EMAIL = "email", "Email"
    CHAT = "chat", "Chat"
    WEBHOOK = "webhook", "Webhook"


class NotificationChannel(models.Model):
    """
    Transport configuration for a notification channel (e.g., chat webhook, email list).

    When several active rows share a channel type, the first by name wins.
    Without an active row, settings.NOTIFY_CHANNELS supplies the config.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text="Unique name for this channel (e.g., 'ops-chat', 'oncall-email').",
    )
    channel_type = models.CharField(
        max_length=20,
        choices=ChannelType.choices,
        db_index=True,
    )
    config = models.JSONField(
        default=dict,
        blank=True,
        help_text="Transport configuration (e.g., webhook URL, SMTP host, recipients).",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this channel is active and can receive notifications.",
    )
    description = models.TextField(
        blank=True,
        default="",
        help_text="Description of this channel's purpose.",
    )

    # Timestamps
    created_at = models.DateTimeField(
        auto_now_add=True,
    )
    updated_at = models.DateTimeField(
        auto_now=True,
    )

    class Meta:
        ordering = ["name"]

    def __str__(self):
        status = "active" if self.is_active else "inactive"
        return f"{self.name} ({self.channel_type}) [{status}]"
