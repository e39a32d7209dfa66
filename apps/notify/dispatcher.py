"""Notification dispatcher.

Fans a triggered alert out to its channels. Each channel is formatted and
sent independently in its own worker thread, bounded by a per-channel
timeout; a failing, slow, unknown or disabled channel is recorded as a
failed outcome and never stops the others. There are no retries here.

Transport configuration is resolved in the calling thread (it touches the
database); worker threads only run the driver's send().

Public API:
- ChannelOutcome
- DispatchResult
- NotificationDispatcher
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from django.conf import settings

from apps.notify.drivers import DRIVER_REGISTRY, AlertNotification, is_notify_enabled
from apps.notify.exceptions import NotificationDeliveryError
from apps.notify.services import ChannelConfigResolver

logger = logging.getLogger(__name__)


@dataclass
class ChannelOutcome:
    channel: str
    success: bool
    error: str | None = None
    message_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, error: NotificationDeliveryError) -> "ChannelOutcome":
        return cls(channel=error.channel, success=False, error=error.error)


@dataclass
class DispatchResult:
    """Per-channel outcomes of one dispatch, in the order channels were given."""

    outcomes: dict[str, ChannelOutcome] = field(default_factory=dict)

    @property
    def attempted(self) -> list[str]:
        return list(self.outcomes)

    @property
    def succeeded(self) -> list[str]:
        return [channel for channel, outcome in self.outcomes.items() if outcome.success]

    @property
    def failed(self) -> list[str]:
        return [channel for channel, outcome in self.outcomes.items() if not outcome.success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def error_summary(self) -> str | None:
        """One "<channel>: <error>" line per failed channel, or None."""
        lines = [
            f"{channel}: {outcome.error or 'unknown error'}"
            for channel, outcome in self.outcomes.items()
            if not outcome.success
        ]
        return "\n".join(lines) if lines else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "error": self.error_summary(),
            "outcomes": {
                channel: {
                    "success": outcome.success,
                    "error": outcome.error,
                    "message_id": outcome.message_id,
                }
                for channel, outcome in self.outcomes.items()
            },
        }


class NotificationDispatcher:
    """
    Sends one AlertNotification to a set of channels concurrently.

    Usage:
        dispatcher = NotificationDispatcher()
        result = dispatcher.dispatch(notification, ["chat", "email"])
        trigger.notification_error = result.error_summary()
    """

    def __init__(
        self,
        timeout: float | None = None,
        configs: dict[str, dict[str, Any]] | None = None,
    ):
        """
        Args:
            timeout: Per-channel timeout in seconds (default NOTIFY_CHANNEL_TIMEOUT).
            configs: Transport configs by channel, bypassing ChannelConfigResolver.
        """
        if timeout is None:
            timeout = getattr(settings, "NOTIFY_CHANNEL_TIMEOUT", 5.0)
        self.timeout = float(timeout)
        self.configs = configs

    def dispatch(self, notification: AlertNotification, channels: Iterable[str]) -> DispatchResult:
        channels = list(dict.fromkeys(channels))
        outcomes: dict[str, ChannelOutcome] = {}

        ready: list[tuple[str, Any, dict[str, Any]]] = []
        for channel in channels:
            try:
                driver, config = self._prepare(channel)
            except NotificationDeliveryError as e:
                logger.warning(f"Notification to {channel} not sent: {e.error}")
                outcomes[channel] = ChannelOutcome.failed(e)
                continue
            ready.append((channel, driver, config))

        if ready:
            outcomes.update(self._send_all(notification, ready))

        result = DispatchResult(outcomes={channel: outcomes[channel] for channel in channels})

        logger.info(
            f"Dispatched '{notification.title}': "
            f"{len(result.succeeded)}/{len(result.attempted)} channel(s) succeeded"
        )
        return result

    def _prepare(self, channel: str):
        if channel not in DRIVER_REGISTRY:
            raise NotificationDeliveryError(channel, "Unknown channel")
        if not is_notify_enabled(channel):
            raise NotificationDeliveryError(channel, "Channel disabled by NOTIFY_SKIP")

        if self.configs is not None:
            config = self.configs.get(channel)
        else:
            config, _ = ChannelConfigResolver.resolve(channel)
        if not config:
            raise NotificationDeliveryError(channel, "Channel not configured")

        driver = DRIVER_REGISTRY[channel]()
        if not driver.validate_config(config):
            raise NotificationDeliveryError(channel, f"Invalid configuration for {channel}")
        return driver, config

    def _send_all(self, notification, ready) -> dict[str, ChannelOutcome]:
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(ready), thread_name_prefix="notify"
        )
        try:
            futures = {
                channel: executor.submit(driver.send, notification, config)
                for channel, driver, config in ready
            }
            # One deadline for the whole fan-out: sends run in parallel, so
            # every channel gets the full timeout.
            done, _ = concurrent.futures.wait(futures.values(), timeout=self.timeout)
            return {
                channel: self._collect(channel, future, future in done)
                for channel, future in futures.items()
            }
        finally:
            # Timed-out sends keep running until their transport's own timeout.
            executor.shutdown(wait=False, cancel_futures=True)

    def _collect(self, channel: str, future, finished: bool) -> ChannelOutcome:
        if not finished:
            logger.warning(f"Notification to {channel} timed out after {self.timeout}s")
            return ChannelOutcome(channel, False, error=f"Timed out after {self.timeout}s")

        try:
            response = future.result()
        except Exception as e:
            logger.exception(f"Notification to {channel} failed")
            return ChannelOutcome(channel, False, error=str(e) or e.__class__.__name__)

        if not isinstance(response, dict):
            return ChannelOutcome(channel, False, error="Driver returned no result")

        if response.get("success"):
            logger.info(f"Notification to {channel} delivered")
            return ChannelOutcome(
                channel,
                True,
                message_id=response.get("message_id"),
                metadata=response.get("metadata") or {},
            )

        error = response.get("error") or "Delivery failed"
        logger.warning(f"Notification to {channel} failed: {error}")
        return ChannelOutcome(channel, False, error=error)
