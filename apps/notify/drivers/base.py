"""Base driver and data structures for notification delivery.

Drivers format a triggered alert for one channel (chat, email, webhook) and
hand it to that channel's transport. They never raise for delivery
problems: every outcome is returned as a result dict.

Public API:
- AlertNotification
- BaseNotifyDriver
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from django.utils import timezone

from apps.notify.templating import NotificationTemplatingService

logger = logging.getLogger(__name__)

SEVERITIES = ("low", "medium", "high", "critical")

# Severity mappings shared across drivers
SEVERITY_COLORS = {
    "low": "#36a64f",
    "medium": "#ffa500",
    "high": "#ff8c00",
    "critical": "#ff0000",
}

SEVERITY_LABELS = {
    "low": "Low Priority",
    "medium": "Medium Priority",
    "high": "High Priority",
    "critical": "Critical Priority",
}


@dataclass
class AlertNotification:
    """A triggered alert, flattened to plain data every driver can format."""

    # Required fields
    title: str  # rule name
    message: str
    severity: str  # "low", "medium", "high", "critical"

    # Optional fields with defaults
    rule: dict[str, Any] = field(default_factory=dict)
    pipeline: dict[str, Any] = field(default_factory=dict)
    build: dict[str, Any] | None = None
    triggered_at: datetime = field(default_factory=timezone.now)
    metric_value: float | None = None
    dashboard_url: str = ""
    is_test: bool = False
    notification_id: str = ""

    def __post_init__(self) -> None:
        self.severity = (self.severity or "").lower()
        if self.severity not in SEVERITIES:
            self.severity = "medium"
        if not self.notification_id:
            rule_id = self.rule.get("id", "test" if self.is_test else "unknown")
            self.notification_id = f"alert_{rule_id}_{int(self.triggered_at.timestamp() * 1000)}"

    @property
    def severity_color(self) -> str:
        return SEVERITY_COLORS.get(self.severity, "#808080")

    @property
    def severity_label(self) -> str:
        return SEVERITY_LABELS.get(self.severity, self.severity.title())

    @property
    def pipeline_url(self) -> str:
        pipeline_id = self.pipeline.get("id") or self.rule.get("pipeline_id")
        return f"{self.dashboard_url.rstrip('/')}/pipelines/{pipeline_id}"

    @property
    def build_url(self) -> str:
        if not self.build:
            return ""
        return self.build.get("web_url") or (
            f"{self.dashboard_url.rstrip('/')}/builds/{self.build.get('id')}"
        )


class BaseNotifyDriver(ABC):
    """Abstract base class for notification delivery drivers."""

    name: str = "base"

    _templating_service = NotificationTemplatingService()

    DEFAULT_TIMEOUT = 10

    @abstractmethod
    def validate_config(self, config: dict[str, Any]) -> bool:
        """Validate that the channel configuration is usable."""

    @abstractmethod
    def send(self, notification: AlertNotification, config: dict[str, Any]) -> dict[str, Any]:
        """Send a notification and return result metadata.

        Args:
            notification: The triggered alert to deliver
            config: Channel transport configuration

        Returns:
            Dictionary with keys like:
            - success: bool
            - message_id: str (if available)
            - error: str (if failed)
            - metadata: dict (any additional info)
        """

    def _render_message_templates(
        self, notification: AlertNotification, config: dict[str, Any]
    ) -> dict[str, str | None]:
        return self._templating_service.render_message_templates(self.name, notification, config)

    def _post_json(
        self,
        url: str,
        payload: Any,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> tuple[int, str]:
        """POST a JSON body and return (status_code, response_body).

        Raises urllib.error.HTTPError for non-2xx responses.
        """
        request_headers = {
            "Content-Type": "application/json",
            "User-Agent": "PipelineHealth/1.0",
        }
        request_headers.update(headers or {})

        request = urllib.request.Request(
            url,
            data=json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8"),
            headers=request_headers,
            method="POST",
        )
        with urllib.request.urlopen(request, timeout=timeout or self.DEFAULT_TIMEOUT) as response:
            return response.getcode(), response.read().decode("utf-8")

    def _handle_http_error(self, e: urllib.error.HTTPError, service_name: str) -> dict[str, Any]:
        """Handle HTTP errors consistently across drivers."""
        error_body = e.read().decode("utf-8") if e.fp else str(e)
        logger.error(f"{service_name} HTTP error {e.code}: {error_body}")
        return {"success": False, "error": f"{service_name} API error ({e.code}): {error_body}"}

    def _handle_url_error(self, e: urllib.error.URLError, service_name: str) -> dict[str, Any]:
        """Handle URL errors consistently across drivers."""
        logger.error(f"{service_name} URL error: {e.reason}")
        return {"success": False, "error": f"Failed to connect to {service_name}: {e.reason}"}

    def _handle_exception(self, e: Exception, service_name: str, action: str) -> dict[str, Any]:
        """Handle general exceptions consistently across drivers."""
        logger.exception(f"Failed to {action} {service_name}: {e}")
        return {"success": False, "error": f"Failed to {action} {service_name}: {e}"}
