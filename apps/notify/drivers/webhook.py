"""Generic webhook notification driver."""

import json
import logging
import urllib.error
from typing import Any

from django.utils import timezone

from apps.notify.drivers.base import AlertNotification, BaseNotifyDriver

logger = logging.getLogger(__name__)


class WebhookNotifyDriver(BaseNotifyDriver):
    """Driver posting a structured JSON envelope to a custom endpoint."""

    name = "webhook"

    def validate_config(self, config: dict[str, Any]) -> bool:
        url = config.get("endpoint") or config.get("webhook_url") or ""
        return isinstance(url, str) and url.startswith(("http://", "https://"))

    def build_payload(self, notification: AlertNotification) -> dict[str, Any]:
        """Envelope with `alert`, `pipeline`, `build` and `metadata` sections."""
        rule = notification.rule
        return {
            "alert": {
                "id": rule.get("id"),
                "name": notification.title,
                "description": rule.get("description") or notification.message,
                "severity": notification.severity,
                "condition_type": rule.get("condition_type"),
                "operator": rule.get("operator"),
                "threshold": rule.get("threshold"),
                "condition": rule.get("condition"),
                "metric_value": notification.metric_value,
                "message": notification.message,
                "triggered_at": notification.triggered_at.isoformat(),
            },
            "pipeline": notification.pipeline or None,
            "build": notification.build or None,
            "metadata": {
                "dashboard_url": notification.dashboard_url,
                "timestamp": timezone.now().isoformat(),
                "notification_id": notification.notification_id,
                "test": notification.is_test,
            },
        }

    def send(self, notification: AlertNotification, config: dict[str, Any]) -> dict[str, Any]:
        if not self.validate_config(config):
            return {
                "success": False,
                "error": "Invalid configuration (endpoint or webhook_url required)",
            }

        endpoint = config.get("endpoint") or config.get("webhook_url")

        try:
            payload = self.build_payload(notification)
            status_code, response_body = self._post_json(
                str(endpoint),
                payload,
                headers=config.get("headers") or {},
                timeout=config.get("timeout"),
            )
        except urllib.error.HTTPError as e:
            return self._handle_http_error(e, "Webhook")
        except urllib.error.URLError as e:
            return self._handle_url_error(e, "Webhook")
        except Exception as e:
            return self._handle_exception(e, "Webhook", "send notification to")

        if not 200 <= status_code < 300:
            return {"success": False, "error": f"Webhook returned status {status_code}"}

        try:
            response_data = json.loads(response_body)
        except json.JSONDecodeError:
            response_data = {"raw": response_body}

        logger.info(f"Webhook notification sent to {endpoint}: {status_code}")
        return {
            "success": True,
            "message_id": notification.notification_id,
            "metadata": {
                "endpoint": endpoint,
                "status_code": status_code,
                "response": response_data,
            },
        }
