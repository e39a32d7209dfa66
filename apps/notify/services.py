"""Notification channel configuration.

Centralizes how a channel type resolves to transport configuration.

Selection priority:
- The first active NotificationChannel of that type, ordered by name.
- Otherwise settings.NOTIFY_CHANNELS[<channel type>].
- Otherwise no configuration (the channel fails as unconfigured).
"""

from typing import Any

from django.conf import settings

from apps.notify.models import NotificationChannel


class ChannelConfigResolver:
    """Resolve transport configuration for a channel type."""

    @staticmethod
    def resolve(channel: str) -> tuple[dict[str, Any] | None, str]:
        """Return (config, source_label) for a channel type.

        `source_label` is the NotificationChannel name when the config came
        from the database, "settings" when it came from NOTIFY_CHANNELS, and
        "" when the channel is not configured.
        """
        db_channel = (
            NotificationChannel.objects.filter(channel_type=channel, is_active=True)
            .order_by("name")
            .first()
        )
        if db_channel is not None:
            return dict(db_channel.config or {}), db_channel.name

        configured = getattr(settings, "NOTIFY_CHANNELS", {}) or {}
        config = configured.get(channel)
        if config:
            return dict(config), "settings"

        return None, ""


def build_test_notification(title: str = "Test Alert", severity: str = "medium"):
    """A sample alert for checking that channels are wired up."""
    from apps.notify.drivers import AlertNotification

    return AlertNotification(
        title=title,
        message="This is a test alert to verify notification channels",
        severity=severity,
        rule={
            "id": "test",
            "name": title,
            "description": "This is a test alert to verify notification channels",
            "condition_type": "success_rate",
            "operator": "<",
            "threshold": 95,
            "condition": "Success Rate less than 95",
        },
        pipeline={"id": 1, "name": "Test Pipeline", "provider": "github", "team": "Test Team"},
        build={
            "id": "test-build",
            "external_id": "test-123",
            "status": "failed",
            "branch": "main",
            "commit_hash": "abc12345",
            "commit_message": "Test commit message",
            "author": "Test User",
            "duration": 120,
        },
        dashboard_url=getattr(settings, "DASHBOARD_URL", ""),
        is_test=True,
    )
