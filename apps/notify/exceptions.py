"""Errors raised while delivering notifications."""


class NotificationDeliveryError(Exception):
    """A single channel failed to deliver a notification."""

    def __init__(self, channel: str, error: str):
        self.channel = channel
        self.error = error
        super().__init__(f"{channel}: {error}")
