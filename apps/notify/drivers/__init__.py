"""
Notification drivers, one per channel type.
"""

from apps.notify.drivers.base import AlertNotification, BaseNotifyDriver
from apps.notify.drivers.chat import ChatNotifyDriver
from apps.notify.drivers.email import EmailNotifyDriver
from apps.notify.drivers.webhook import WebhookNotifyDriver

__all__ = [
    "AlertNotification",
    "BaseNotifyDriver",
    "ChatNotifyDriver",
    "EmailNotifyDriver",
    "WebhookNotifyDriver",
    "DRIVER_REGISTRY",
    "is_notify_enabled",
]

# Registry of notification drivers, keyed by ChannelType value
DRIVER_REGISTRY: dict[str, type[BaseNotifyDriver]] = {
    "chat": ChatNotifyDriver,
    "email": EmailNotifyDriver,
    "webhook": WebhookNotifyDriver,
}


def is_notify_enabled(channel: str) -> bool:
    """
    Check if a notification channel is enabled.

    Disabled when:
    - NOTIFY_SKIP_ALL=True, or
    - channel is in NOTIFY_SKIP

    Args:
        channel: Channel type to check.

    Returns:
        True if the channel is enabled, False if skipped.
    """
    from django.conf import settings

    if getattr(settings, "NOTIFY_SKIP_ALL", False):
        return False

    skip_list = getattr(settings, "NOTIFY_SKIP", [])
    return channel not in skip_list

