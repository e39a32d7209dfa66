"""Django app configuration for the notify app."""

from django.apps import AppConfig
from django.conf import settings


class NotifyConfig(AppConfig):
    """Configuration for the Notify app.

    Owns the process-wide RecentNotificationFeed; read it through
    `apps.notify.feed.get_feed()`.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.notify"
    verbose_name = "Notifications"

    def ready(self):
        from apps.notify.feed import RecentNotificationFeed

        self.feed = RecentNotificationFeed(
            max_items=getattr(settings, "NOTIFY_FEED_MAX_ITEMS", 200),
            max_age_hours=getattr(settings, "NOTIFY_FEED_MAX_AGE_HOURS", 24),
        )
